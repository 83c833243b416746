"""
merkledrop/core/models.py

MerkleDrop Data Model

═══════════════════════════════════════════════════════════════════
WIRE CONTRACTS — changing any of these changes every root and digest
═══════════════════════════════════════════════════════════════════

CONTRACT 1 — Entitlement
    recipient = 20-byte address, stored in EIP-55 checksum form
    amount    = unsigned 256-bit integer

CONTRACT 2 — Signature bytes
    raw = r (32 bytes, big-endian) ++ s (32 bytes) ++ v (1 byte)
    length is exactly 65; anything else is InvalidSignatureLengthError
    v is carried as given (27/28 expected); range checks belong to recovery

CONTRACT 3 — Artifact record
    {recipient, amount, proof, root, leaf}
    amount is a decimal string in JSON (uint256 exceeds JSON number precision)
    hashes are 0x-prefixed lowercase hex
═══════════════════════════════════════════════════════════════════
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from merkledrop.core.exceptions import InvalidSignatureLengthError, ValidationError
from merkledrop.core.hashing import (
    HASH_LENGTH,
    from_hex,
    normalize_address,
    to_hex,
    validate_amount,
)


SIGNATURE_LENGTH = 65


# ─────────────────────────────────────────────────────────────
# Entitlement
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Entitlement:
    """One (recipient, amount) pair of the pre-committed whitelist."""

    recipient: str
    amount:    int

    @classmethod
    def create(cls, recipient: str, amount: Any) -> "Entitlement":
        """
        Validate and normalize. Amounts may arrive as decimal strings
        from JSON/CSV; they are parsed as base-10 integers.
        """
        if isinstance(amount, str):
            text = amount.strip()
            if not text.isdigit():
                raise ValidationError(
                    "amount must be a non-negative integer string",
                    {"amount": amount},
                )
            amount = int(text)
        return cls(
            recipient= normalize_address(recipient),
            amount=    validate_amount(amount),
        )


# ─────────────────────────────────────────────────────────────
# Signature
# ─────────────────────────────────────────────────────────────

def split_signature(raw: bytes) -> Tuple[int, int, int]:
    """
    Decompose a 65-byte r ++ s ++ v signature into (v, r, s).
    Raises InvalidSignatureLengthError for any other length.
    """
    if len(raw) != SIGNATURE_LENGTH:
        raise InvalidSignatureLengthError(
            f"Signature must be {SIGNATURE_LENGTH} bytes, got {len(raw)}",
        )
    r = int.from_bytes(raw[0:32], "big")
    s = int.from_bytes(raw[32:64], "big")
    v = raw[64]
    return v, r, s


@dataclass(frozen=True)
class ClaimSignature:
    """A recovery-augmented ECDSA signature (v, r, s)."""

    v: int
    r: int
    s: int

    @classmethod
    def from_bytes(cls, raw: bytes) -> "ClaimSignature":
        v, r, s = split_signature(bytes(raw))
        return cls(v=v, r=r, s=s)

    @classmethod
    def from_hex(cls, value: str) -> "ClaimSignature":
        return cls.from_bytes(from_hex(value))

    def to_bytes(self) -> bytes:
        return (
            self.r.to_bytes(32, "big")
            + self.s.to_bytes(32, "big")
            + bytes([self.v])
        )

    def to_hex(self) -> str:
        return to_hex(self.to_bytes())

    @property
    def vrs(self) -> Tuple[int, int, int]:
        return self.v, self.r, self.s

    def to_dict(self) -> Dict[str, Any]:
        return {
            "v":         self.v,
            "r":         to_hex(self.r.to_bytes(32, "big")),
            "s":         to_hex(self.s.to_bytes(32, "big")),
            "signature": self.to_hex(),
        }


# ─────────────────────────────────────────────────────────────
# Artifact Record
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class DistributionEntry:
    """
    Per-recipient builder output, handed to the recipient or a relayer.
    This is the only thing claim submission needs besides a signature.
    """

    recipient: str
    amount:    int
    proof:     List[bytes]
    root:      bytes
    leaf:      bytes

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recipient": self.recipient,
            "amount":    str(self.amount),
            "proof":     [to_hex(p) for p in self.proof],
            "root":      to_hex(self.root),
            "leaf":      to_hex(self.leaf),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DistributionEntry":
        entitlement = Entitlement.create(data["recipient"], data["amount"])
        return cls(
            recipient= entitlement.recipient,
            amount=    entitlement.amount,
            proof=     [from_hex(p, HASH_LENGTH) for p in data.get("proof", [])],
            root=      from_hex(data["root"], HASH_LENGTH),
            leaf=      from_hex(data["leaf"], HASH_LENGTH),
        )


# ─────────────────────────────────────────────────────────────
# Notification
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ClaimSucceeded:
    """Emitted once per successful claim, after the transfer has committed."""

    recipient: str
    amount:    int
    sponsor:   Optional[str] = None
    sequence:  int           = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event":     "ClaimSucceeded",
            "recipient": self.recipient,
            "amount":    str(self.amount),
            "sponsor":   self.sponsor,
            "sequence":  self.sequence,
        }
