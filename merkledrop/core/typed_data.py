"""
merkledrop/core/typed_data.py

Authorization digest — EIP-712 typed structured data.

    DOMAIN_TYPEHASH = keccak256("EIP712Domain(string name,string version,uint256 chainId,address verifyingContract)")
    CLAIM_TYPEHASH  = keccak256("AirdropClaim(address account,uint256 amount)")

    domainSeparator = keccak256(abi.encode(DOMAIN_TYPEHASH,
                                           keccak256(name), keccak256(version),
                                           chainId, verifyingContract))
    structHash      = keccak256(abi.encode(CLAIM_TYPEHASH, account, amount))
    digest          = keccak256(0x19 ++ 0x01 ++ domainSeparator ++ structHash)

The domain binds a signature to one deployed instance: the same
(account, amount) signed for instance A does not verify on instance B,
even if both hold the same root and asset.
"""

from dataclasses import dataclass, field
from typing import Any, Dict

from eth_abi import encode as abi_encode

from merkledrop.core.exceptions import ValidationError
from merkledrop.core.hashing import (
    keccak256,
    keccak_text,
    normalize_address,
    to_hex,
    validate_amount,
)


DOMAIN_TYPE = (
    "EIP712Domain(string name,string version,uint256 chainId,address verifyingContract)"
)
CLAIM_TYPE = "AirdropClaim(address account,uint256 amount)"

DOMAIN_TYPEHASH = keccak_text(DOMAIN_TYPE)
CLAIM_TYPEHASH  = keccak_text(CLAIM_TYPE)

DEFAULT_NAME    = "MerkleAirdrop"
DEFAULT_VERSION = "1"

_EIP191_TYPED_DATA_PREFIX = b"\x19\x01"


@dataclass(frozen=True)
class EIP712Domain:
    """
    Domain of one deployed distributor. The separator is computed once,
    at construction, and reused for every digest.
    """

    chain_id:           int
    verifying_contract: str
    name:               str = DEFAULT_NAME
    version:            str = DEFAULT_VERSION
    separator:          bytes = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if isinstance(self.chain_id, bool) or not isinstance(self.chain_id, int) or self.chain_id <= 0:
            raise ValidationError(
                "chain_id must be a positive int", {"chain_id": self.chain_id},
            )
        object.__setattr__(
            self, "verifying_contract", normalize_address(self.verifying_contract),
        )
        object.__setattr__(self, "separator", domain_separator(
            self.name, self.version, self.chain_id, self.verifying_contract,
        ))

    def message_hash(self, recipient: str, amount: int) -> bytes:
        """Digest the recipient signs to authorize a claim of `amount`."""
        return keccak256(
            _EIP191_TYPED_DATA_PREFIX + self.separator + claim_struct_hash(recipient, amount)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name":              self.name,
            "version":           self.version,
            "chainId":           self.chain_id,
            "verifyingContract": self.verifying_contract,
        }

    def typed_data(self, recipient: str, amount: int) -> Dict[str, Any]:
        """
        The full EIP-712 document for (recipient, amount), in the shape
        wallets accept for eth_signTypedData_v4.
        """
        return {
            "types": {
                "EIP712Domain": [
                    {"name": "name",              "type": "string"},
                    {"name": "version",           "type": "string"},
                    {"name": "chainId",           "type": "uint256"},
                    {"name": "verifyingContract", "type": "address"},
                ],
                "AirdropClaim": [
                    {"name": "account", "type": "address"},
                    {"name": "amount",  "type": "uint256"},
                ],
            },
            "primaryType": "AirdropClaim",
            "domain":      self.to_dict(),
            "message": {
                "account": normalize_address(recipient),
                "amount":  validate_amount(amount),
            },
        }


def domain_separator(name: str, version: str, chain_id: int, verifying_contract: str) -> bytes:
    return keccak256(abi_encode(
        ["bytes32", "bytes32", "bytes32", "uint256", "address"],
        [
            DOMAIN_TYPEHASH,
            keccak_text(name),
            keccak_text(version),
            chain_id,
            normalize_address(verifying_contract),
        ],
    ))


def claim_struct_hash(recipient: str, amount: int) -> bytes:
    return keccak256(abi_encode(
        ["bytes32", "address", "uint256"],
        [CLAIM_TYPEHASH, normalize_address(recipient), validate_amount(amount)],
    ))


def describe_domain(domain: EIP712Domain) -> Dict[str, str]:
    """Hex dump of the domain constants, for tooling and test vectors."""
    return {
        "domain_type":      DOMAIN_TYPE,
        "domain_typehash":  to_hex(DOMAIN_TYPEHASH),
        "claim_type":       CLAIM_TYPE,
        "claim_typehash":   to_hex(CLAIM_TYPEHASH),
        "domain_separator": to_hex(domain.separator),
    }
