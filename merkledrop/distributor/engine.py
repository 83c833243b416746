"""
merkledrop/distributor/engine.py

Merkle Distributor — the claim operation.

claim() MUST, in this exact order:
  1. Acquire the distributor lock            : one claim at a time
  2. Verify the authorization signature      : InvalidSignatureError
  3. Check the ledger                        : AlreadyClaimedError
  4. Verify the Merkle proof                 : InvalidProofError
  5. Mark Claimed (ledger effects)           : BEFORE any external call
  6. Transfer from custody                   : TransferFailedError, rolls back 5
  7. Commit, then notify ClaimSucceeded listeners

Step 5 precedes step 6 because a Token adapter may call back into claim(),
and the re-entered call must find the recipient already Claimed.
A re-entered claim for a different recipient is refused at step 5 with
ClaimInProgressError; nothing is mutated for it.

Who submits the claim (the sponsor) has no influence on the outcome.
It is recorded for audit only.
"""

import logging
import threading
import time
from typing import Callable, List, Optional, Sequence, Union

from merkledrop.core.config import DistributorConfig
from merkledrop.core.crypto import verify_signature
from merkledrop.core.encoding import hash_leaf
from merkledrop.core.exceptions import (
    AlreadyClaimedError,
    ClaimInProgressError,
    ConfigError,
    InvalidProofError,
    InvalidSignatureError,
    TransferFailedError,
)
from merkledrop.core.hashing import HASH_LENGTH, from_hex, normalize_address, validate_amount
from merkledrop.core.merkle import verify_proof
from merkledrop.core.models import ClaimSignature, ClaimSucceeded
from merkledrop.core.typed_data import EIP712Domain
from merkledrop.custody.token import Token
from merkledrop.ledger.ledger import ClaimLedger


logger = logging.getLogger(__name__)

ClaimListener = Callable[[ClaimSucceeded], None]


class MerkleDistributor:
    """
    One distribution instance: a fixed root, a fixed asset, a fixed domain.

    The distributor's own address (domain.verifying_contract) is the custody
    account; fund it on the token before claims are submitted.
    """

    def __init__(
        self,
        root:   bytes,
        token:  Token,
        domain: EIP712Domain,
        ledger: Optional[ClaimLedger]      = None,
        clock:  Callable[[], float]        = time.time,
    ) -> None:
        """
        Args:
            root:   32-byte Merkle root. Write-once.
            token:  Asset collaborator holding the custody balance.
            domain: EIP-712 domain of THIS instance (its address is custody).
            ledger: Claim ledger; a fresh in-memory one if omitted.
            clock:  Seconds-since-epoch source for elapsed().
        """
        if not isinstance(root, (bytes, bytearray)) or len(root) != HASH_LENGTH:
            raise ConfigError(f"root must be {HASH_LENGTH} bytes")

        self._root:   bytes        = bytes(root)
        self._token:  Token        = token
        self._domain: EIP712Domain = domain
        self._ledger: ClaimLedger  = ledger if ledger is not None else ClaimLedger()
        self._clock                = clock
        self._started_at: float    = clock()

        self._lock:      threading.RLock     = threading.RLock()
        self._listeners: List[ClaimListener] = []

    @classmethod
    def from_config(
        cls,
        config: DistributorConfig,
        token:  Token,
        clock:  Callable[[], float] = time.time,
    ) -> "MerkleDistributor":
        """Build from configuration. The token must be the configured asset."""
        if normalize_address(token.address) != config.token:
            raise ConfigError(
                "Token does not match configured asset",
                {"configured": config.token, "given": token.address},
            )
        return cls(
            root=   config.root,
            token=  token,
            domain= config.domain,
            ledger= ClaimLedger(config.journal_path),
            clock=  clock,
        )

    # ── Read-only accessors ───────────────────────────────────

    @property
    def root(self) -> bytes:
        return self._root

    @property
    def token(self) -> str:
        """Asset identifier."""
        return self._token.address

    @property
    def address(self) -> str:
        """This instance's address; also the custody account."""
        return self._domain.verifying_contract

    @property
    def domain(self) -> EIP712Domain:
        return self._domain

    def recipients(self) -> List[str]:
        """Every recipient that has claimed, in claim order."""
        return self._ledger.recipients()

    def is_claimed(self, recipient: str) -> bool:
        return self._ledger.is_claimed(recipient)

    def elapsed(self) -> int:
        """Whole seconds since this instance was initialized."""
        return int(self._clock() - self._started_at)

    def message_hash(self, recipient: str, amount: int) -> bytes:
        """The exact 32 bytes `recipient` must sign to authorize this claim."""
        return self._domain.message_hash(recipient, amount)

    # ── Notifications ─────────────────────────────────────────

    def subscribe(self, listener: ClaimListener) -> None:
        """Call `listener(event)` after every committed claim."""
        self._listeners.append(listener)

    # ── Claim ─────────────────────────────────────────────────

    def claim(
        self,
        recipient: str,
        amount:    int,
        proof:     Sequence[Union[bytes, str]],
        v:         int,
        r:         int,
        s:         int,
        sponsor:   Optional[str] = None,
    ) -> ClaimSucceeded:
        """
        Pay `amount` to `recipient` if the whitelist contains exactly that
        pair, the recipient signed for it, and it has not claimed before.

        Raises (nothing mutated on any of these):
            InvalidSignatureError, AlreadyClaimedError, InvalidProofError,
            ClaimInProgressError, TransferFailedError,
            ValidationError (malformed recipient, amount or proof element)

        Proof elements are 32-byte values, as bytes or 0x-prefixed hex.
        """
        recipient = normalize_address(recipient)
        validate_amount(amount)
        proof = [from_hex(p, HASH_LENGTH) for p in proof]
        if sponsor is not None:
            sponsor = normalize_address(sponsor)

        with self._lock:
            try:
                event = self._claim_locked(recipient, amount, proof, v, r, s, sponsor)
            except (
                InvalidSignatureError, AlreadyClaimedError,
                InvalidProofError, ClaimInProgressError,
            ) as exc:
                logger.warning(
                    "claim rejected: %s recipient=%s amount=%d",
                    type(exc).__name__, recipient, amount,
                )
                raise

        logger.info(
            "claim succeeded: recipient=%s amount=%d sponsor=%s",
            recipient, amount, sponsor or recipient,
        )
        self._notify(event)
        return event

    def claim_with_signature(
        self,
        recipient: str,
        amount:    int,
        proof:     Sequence[Union[bytes, str]],
        signature: Union[ClaimSignature, bytes],
        sponsor:   Optional[str] = None,
    ) -> ClaimSucceeded:
        """
        claim() taking a ClaimSignature or a raw 65-byte signature.
        Raw bytes of any other length raise InvalidSignatureLengthError.
        """
        if not isinstance(signature, ClaimSignature):
            signature = ClaimSignature.from_bytes(signature)
        return self.claim(recipient, amount, proof, *signature.vrs, sponsor=sponsor)

    # ── Internal ──────────────────────────────────────────────

    def _claim_locked(
        self,
        recipient: str,
        amount:    int,
        proof:     Sequence[bytes],
        v:         int,
        r:         int,
        s:         int,
        sponsor:   Optional[str],
    ) -> ClaimSucceeded:
        # Checks
        digest = self.message_hash(recipient, amount)
        if not verify_signature(recipient, digest, v, r, s):
            raise InvalidSignatureError(
                "Signature does not authorize this claim", {"recipient": recipient},
            )

        if self._ledger.is_claimed(recipient):
            raise AlreadyClaimedError(
                "Recipient has already claimed", {"recipient": recipient},
            )

        leaf = hash_leaf(recipient, amount)
        if not verify_proof(proof, self._root, leaf):
            raise InvalidProofError(
                "Proof does not match root",
                {"recipient": recipient, "amount": amount},
            )

        # Effects, then interaction; any raise inside the block rolls back.
        with self._ledger.record_claim(recipient, amount, sponsor) as record:
            if not self._token.transfer(self.address, recipient, amount):
                logger.error(
                    "transfer failed, rolling back claim: recipient=%s amount=%d",
                    recipient, amount,
                )
                raise TransferFailedError(
                    "Asset transfer failed",
                    {"recipient": recipient, "amount": amount},
                )

        return ClaimSucceeded(
            recipient= recipient,
            amount=    amount,
            sponsor=   sponsor,
            sequence=  record.sequence,
        )

    def _notify(self, event: ClaimSucceeded) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                # The claim is committed; a listener cannot undo it.
                logger.exception("ClaimSucceeded listener %r failed", listener)
