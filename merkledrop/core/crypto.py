"""
merkledrop/core/crypto.py

Authorization Verifier and secp256k1 key manager.

Key contracts:
    recover_signer(digest, v, r, s)          : @staticmethod → checksum address or None
    verify_signature(expected, digest, ...)  : @staticmethod → bool, never raises
    address                                  : @property → EIP-55 checksum address
    sign_digest(digest)                      : 32 bytes → ClaimSignature (v in {27, 28}, low s)

Recovery rejects, before any curve arithmetic:
    - v not in {27, 28}
    - r or s equal to zero, or r >= n
    - s > n / 2   (upper half of the curve order)

The last rule is what makes signatures non-malleable: for every valid
(v, r, s) the pair (v ^ 1, r, n - s) recovers the same key, and only one of
the two has s in the lower half.
"""

import json
import secrets
from pathlib import Path
from typing import Optional

from eth_account import Account
from eth_keys import keys
from eth_keys.exceptions import BadSignature
from eth_utils import ValidationError as KeyValidationError

from merkledrop.core.exceptions import ValidationError
from merkledrop.core.hashing import HASH_LENGTH, normalize_address
from merkledrop.core.models import ClaimSignature
from merkledrop.core.typed_data import EIP712Domain


SECP256K1_N      = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
SECP256K1_HALF_N = SECP256K1_N // 2

_VALID_V = (27, 28)


class Secp256k1KeyManager:
    """
    Ethereum account key used to authorize claims.

    Public surface:
        Secp256k1KeyManager.generate()                         → new random key
        Secp256k1KeyManager.from_private_bytes(key)            → raw 32-byte key
        Secp256k1KeyManager.from_file(path)                    → hex key file
        Secp256k1KeyManager.from_keystore(path, password)      → eth keystore JSON
        Secp256k1KeyManager.recover_signer(digest, v, r, s)    → @staticmethod
        Secp256k1KeyManager.verify_signature(addr, digest, ...)→ @staticmethod

        key.address                          (@property) → checksum address
        key.sign_digest(digest)                          → ClaimSignature
        key.sign_claim(domain, recipient, amount)        → ClaimSignature
        key.save_keystore(path, password)                → write keystore JSON
    """

    def __init__(self, private_key: keys.PrivateKey) -> None:
        self._private_key: keys.PrivateKey = private_key
        # Derived once; the key never changes after construction.
        self._address: str = private_key.public_key.to_checksum_address()

    # ── Construction ──────────────────────────────────────────

    @classmethod
    def generate(cls) -> "Secp256k1KeyManager":
        """Generate a new random key."""
        account = Account.create(secrets.token_hex(32))
        return cls(keys.PrivateKey(bytes(account.key)))

    @classmethod
    def from_private_bytes(cls, key: bytes) -> "Secp256k1KeyManager":
        """
        Load from a raw 32-byte private key.
        Raises ValueError if the key is not 32 bytes or not a valid scalar.
        """
        if len(key) != 32:
            raise ValueError(f"secp256k1 private key must be 32 bytes, got {len(key)}")
        try:
            return cls(keys.PrivateKey(bytes(key)))
        except KeyValidationError as exc:
            raise ValueError(f"Invalid secp256k1 private key: {exc}") from exc

    @classmethod
    def from_file(cls, path: Path) -> "Secp256k1KeyManager":
        """
        Load from a text file holding the key as hex (0x prefix optional).
        Raises FileNotFoundError if path does not exist.
        Raises ValueError if the content is not a valid key.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Key file not found: {path}")
        text = path.read_text(encoding="utf-8").strip()
        if text.startswith("0x"):
            text = text[2:]
        try:
            raw = bytes.fromhex(text)
        except ValueError as exc:
            raise ValueError(f"Key file {path} is not hex: {exc}") from exc
        return cls.from_private_bytes(raw)

    @classmethod
    def from_keystore(cls, path: Path, password: str) -> "Secp256k1KeyManager":
        """
        Load from an encrypted Ethereum keystore (Web3 Secret Storage) file.
        Raises ValueError on a wrong password or a malformed keystore.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Keystore not found: {path}")
        keyfile = json.loads(path.read_text(encoding="utf-8"))
        raw = Account.decrypt(keyfile, password)
        return cls.from_private_bytes(bytes(raw))

    # ── Identity ──────────────────────────────────────────────

    @property
    def address(self) -> str:
        return self._address

    # ── Signing ───────────────────────────────────────────────

    def sign_digest(self, digest: bytes) -> ClaimSignature:
        """
        Sign a 32-byte digest. The result has v in {27, 28} and a low s,
        so it passes recover_signer() as-is.
        """
        if len(digest) != HASH_LENGTH:
            raise ValueError(f"digest must be {HASH_LENGTH} bytes, got {len(digest)}")
        sig = self._private_key.sign_msg_hash(bytes(digest))
        v, r, s = sig.v + 27, sig.r, sig.s
        # eth-keys already normalizes; keep the invariant explicit.
        if s > SECP256K1_HALF_N:
            s = SECP256K1_N - s
            v = 55 - v
        return ClaimSignature(v=v, r=r, s=s)

    def sign_claim(self, domain: EIP712Domain, recipient: str, amount: int) -> ClaimSignature:
        """Authorize a claim of `amount` to `recipient` on the instance `domain` names."""
        return self.sign_digest(domain.message_hash(recipient, amount))

    # ── Verification — STATIC ─────────────────────────────────

    @staticmethod
    def recover_signer(digest: bytes, v: int, r: int, s: int) -> Optional[str]:
        """
        Recover the checksum address that produced (v, r, s) over `digest`.

        Returns None for any malformed or malleable encoding, and for any
        recovery failure. Never raises.
        """
        if not isinstance(digest, (bytes, bytearray)) or len(digest) != HASH_LENGTH:
            return None
        if not all(isinstance(x, int) for x in (v, r, s)):
            return None
        if v not in _VALID_V:
            return None
        if not (0 < r < SECP256K1_N):
            return None
        if not (0 < s <= SECP256K1_HALF_N):
            return None

        try:
            signature  = keys.Signature(vrs=(v - 27, r, s))
            public_key = signature.recover_public_key_from_msg_hash(bytes(digest))
        except (BadSignature, KeyValidationError, ValueError):
            return None
        return public_key.to_checksum_address()

    @staticmethod
    def verify_signature(
        expected_signer: str,
        digest:          bytes,
        v:               int,
        r:               int,
        s:               int,
    ) -> bool:
        """
        True iff (v, r, s) is a well-formed, low-s signature over `digest`
        by `expected_signer`. False for ANY failure. Never raises.
        """
        recovered = Secp256k1KeyManager.recover_signer(digest, v, r, s)
        if recovered is None:
            return False
        try:
            return recovered == normalize_address(expected_signer)
        except ValidationError:
            return False

    # ── Persistence ───────────────────────────────────────────

    def save_keystore(self, path: Path, password: str) -> None:
        """
        Write the key as an encrypted keystore JSON file.
        Creates parent directories if needed.
        Raises RuntimeError on write failure.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            keyfile = Account.encrypt(self._private_key.to_bytes(), password)
            path.write_text(json.dumps(keyfile), encoding="utf-8")
        except OSError as exc:
            raise RuntimeError(f"Failed to save keystore to {path}: {exc}") from exc

    def __repr__(self) -> str:
        return f"Secp256k1KeyManager(address={self._address})"


def verify_signature(expected_signer: str, digest: bytes, v: int, r: int, s: int) -> bool:
    """Module-level alias of Secp256k1KeyManager.verify_signature."""
    return Secp256k1KeyManager.verify_signature(expected_signer, digest, v, r, s)
