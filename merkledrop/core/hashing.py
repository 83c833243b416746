"""
merkledrop/core/hashing.py

Hashing, hex and address helpers shared by the builder and the verifier.

Every hash in the Merkle and typed-data layers is Keccak-256 (the EVM hash),
never NIST SHA3-256. Keccak comes from eth-utils; nothing here re-implements it.
"""

from typing import Union

from eth_utils import is_address, keccak as _keccak, to_checksum_address

from merkledrop.core.exceptions import ValidationError


HASH_LENGTH = 32
UINT256_MAX = 2**256 - 1


def keccak256(data: bytes) -> bytes:
    """Keccak-256 of raw bytes (32-byte digest)."""
    return _keccak(primitive=data)


def keccak_text(text: str) -> bytes:
    """Keccak-256 of a UTF-8 string. Used for EIP-712 type strings and domain fields."""
    return _keccak(text=text)


def to_hex(data: bytes) -> str:
    """Bytes to lowercase hex with 0x prefix."""
    return "0x" + bytes(data).hex()


def from_hex(value: Union[str, bytes], length: int = None) -> bytes:
    """
    Decode a 0x-prefixed hex string to bytes.

    Raises ValidationError on a missing prefix, odd length, bad characters,
    or (when `length` is given) a wrong byte length.
    Raw bytes pass through the length check unchanged.
    """
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    else:
        if not isinstance(value, str) or not value.startswith("0x"):
            raise ValidationError(
                "Hex string must start with '0x'",
                {"value": repr(value)[:24]},
            )
        try:
            raw = bytes.fromhex(value[2:])
        except ValueError as exc:
            raise ValidationError(f"Invalid hex string: {exc}") from exc

    if length is not None and len(raw) != length:
        raise ValidationError(
            f"Expected {length} bytes, got {len(raw)}",
        )
    return raw


def normalize_address(address: str) -> str:
    """
    Return the EIP-55 checksum form of an address.

    Accepts lowercase, uppercase, or correctly checksummed input. Raises
    ValidationError for anything that is not a 20-byte hex address, including
    mixed-case input whose checksum does not match.
    """
    if not isinstance(address, str) or not is_address(address.strip()):
        raise ValidationError("Invalid address", {"address": address})
    return to_checksum_address(address.strip())


def validate_amount(amount: int) -> int:
    """Return `amount` if it is an int in [0, 2**256 - 1], else raise ValidationError."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError(
            f"amount must be int, got {type(amount).__name__}",
        )
    if amount < 0 or amount > UINT256_MAX:
        raise ValidationError("amount out of uint256 range", {"amount": amount})
    return amount
