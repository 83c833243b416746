"""
merkledrop/core/encoding.py

Leaf Encoder — the canonical byte layout of one entitlement.

═══════════════════════════════════════════════════════════════════
LEAF CONTRACT — identical in the builder and in every verifier
═══════════════════════════════════════════════════════════════════

    encoded = abi.encode(address recipient, uint256 amount)
            = 12 zero bytes ++ 20 address bytes ++ 32-byte big-endian amount
            (always 64 bytes)

    leaf    = keccak256(keccak256(encoded))

Solidity equivalent:
    keccak256(bytes.concat(keccak256(abi.encode(account, amount))))

The second hash keeps a leaf from ever colliding with a 64-byte internal
node (keccak256(a ++ b)), which would let a shortened proof pass.

Do NOT switch to abi.encodePacked (52 bytes) or a single hash here without
changing the on-chain verifier in lockstep: every proof would fail with
nothing but "invalid proof" to go on.
═══════════════════════════════════════════════════════════════════
"""

from eth_abi import encode as abi_encode

from merkledrop.core.hashing import keccak256, normalize_address, validate_amount


LEAF_ENCODING = "keccak256(keccak256(abi.encode(address,uint256)))"
ENCODED_LENGTH = 64


def encode_entitlement(recipient: str, amount: int) -> bytes:
    """The 64-byte ABI encoding of (recipient, amount)."""
    return abi_encode(
        ["address", "uint256"],
        [normalize_address(recipient), validate_amount(amount)],
    )


def hash_leaf(recipient: str, amount: int) -> bytes:
    """The 32-byte double-hashed leaf for (recipient, amount)."""
    return keccak256(keccak256(encode_entitlement(recipient, amount)))
