"""
merkledrop/ledger/ledger.py

Claim Ledger — per-recipient claimed flag and the recipients record.

Lifecycle of an entry:
    created   empty for every address when the ledger is constructed
    mutated   exactly once, Unclaimed → Claimed, by record_claim()
    destroyed never

record_claim() is a context manager and the ONLY mutation path. On enter it
checks and sets the flag and appends the journal line (the effects). The
caller performs the asset transfer inside the block (the interaction). On a
clean exit the claim is committed; if the block raises, the flag is removed,
the journal is truncated back, and the exception propagates. No Claimed
state survives an aborted claim.

    with ledger.record_claim(recipient, amount, sponsor) as record:
        token.transfer(...)          # raise to roll back

Journal (optional) — append-only JSONL, one ClaimRecord per line:
    causal_hash  = SHA-256(JCS(prev.to_chain_dict()))
    first record = GENESIS_HASH ("0" * 64)
    sequence     = 0, 1, 2, ... in claim order
The ledger replays the journal on construction to rebuild its state.
"""

import json
import logging
import os
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from merkledrop.core.canonical import canonical_hash
from merkledrop.core.exceptions import AlreadyClaimedError, ClaimInProgressError, LedgerError
from merkledrop.core.hashing import normalize_address


logger = logging.getLogger(__name__)

GENESIS_HASH = "0" * 64


def journal_timestamp() -> str:
    """UTC time as written in the journal: YYYY-MM-DDTHH:MM:SS.mmmZ."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


# ─────────────────────────────────────────────────────────────
# Journal Record
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ClaimRecord:
    """One committed claim, as persisted in the journal."""

    sequence:    int
    record_id:   str
    recipient:   str
    amount:      int
    sponsor:     Optional[str]
    timestamp:   str
    causal_hash: str

    @classmethod
    def create(
        cls,
        sequence:  int,
        recipient: str,
        amount:    int,
        sponsor:   Optional[str],
        prev:      Optional["ClaimRecord"],
    ) -> "ClaimRecord":
        return cls(
            sequence=    sequence,
            record_id=   f"claim-{uuid.uuid4()}",
            recipient=   recipient,
            amount=      amount,
            sponsor=     sponsor,
            timestamp=   journal_timestamp(),
            causal_hash= cls.expected_causal_hash(prev),
        )

    @staticmethod
    def expected_causal_hash(prev: Optional["ClaimRecord"]) -> str:
        if prev is None:
            return GENESIS_HASH
        return canonical_hash(prev.to_chain_dict())

    def to_chain_dict(self) -> Dict[str, Any]:
        # amount as a decimal string: uint256 is outside JCS's safe number range
        return {
            "amount":      str(self.amount),
            "causal_hash": self.causal_hash,
            "record_id":   self.record_id,
            "recipient":   self.recipient,
            "sequence":    self.sequence,
            "sponsor":     self.sponsor,
            "timestamp":   self.timestamp,
        }

    def to_dict(self) -> Dict[str, Any]:
        return self.to_chain_dict()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClaimRecord":
        return cls(
            sequence=    int(data["sequence"]),
            record_id=   data["record_id"],
            recipient=   data["recipient"],
            amount=      int(data["amount"]),
            sponsor=     data.get("sponsor"),
            timestamp=   data["timestamp"],
            causal_hash= data["causal_hash"],
        )


@dataclass
class JournalReport:
    """Result of ClaimLedger.verify_journal()."""

    valid:      bool
    entries:    int
    violations: List[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.valid


# ─────────────────────────────────────────────────────────────
# Claim Ledger
# ─────────────────────────────────────────────────────────────

class ClaimLedger:
    """
    Thread-safe claimed/unclaimed store.

    The lock is re-entrant: a claim re-entered from inside its own transfer
    (same thread) gets past the lock and then sees the recipient as Claimed.
    A re-entered claim for any other recipient is refused with
    ClaimInProgressError until the open claim commits or rolls back.
    """

    def __init__(self, journal_path: Optional[Path] = None) -> None:
        self._lock:        threading.RLock       = threading.RLock()
        self._claimed:     Dict[str, bool]       = {}
        self._recipients:  List[str]             = []
        self._last_record: Optional[ClaimRecord] = None
        self._pending:     Optional[str]         = None

        self._journal_path: Optional[Path] = Path(journal_path) if journal_path else None
        if self._journal_path is not None:
            self._journal_path.parent.mkdir(parents=True, exist_ok=True)
            self._restore_state()

    # ── Queries ───────────────────────────────────────────────

    def is_claimed(self, recipient: str) -> bool:
        with self._lock:
            return self._claimed.get(normalize_address(recipient), False)

    def recipients(self) -> List[str]:
        """Recipients that completed a claim, in claim order."""
        with self._lock:
            return list(self._recipients)

    @property
    def claimed_count(self) -> int:
        with self._lock:
            return len(self._recipients)

    @property
    def journal_path(self) -> Optional[Path]:
        return self._journal_path

    # ── The single mutation path ──────────────────────────────

    @contextmanager
    def record_claim(
        self,
        recipient: str,
        amount:    int,
        sponsor:   Optional[str] = None,
    ) -> Iterator[ClaimRecord]:
        """
        Mark `recipient` Claimed for the duration of the block; commit on
        clean exit, roll back if the block raises.

        Raises AlreadyClaimedError if the recipient is already Claimed,
        ClaimInProgressError if another record_claim() block is still open
        (a claim started from inside another claim's transfer), LedgerError
        if the journal cannot be written.
        """
        recipient = normalize_address(recipient)
        with self._lock:
            if self._claimed.get(recipient, False):
                raise AlreadyClaimedError(
                    "Recipient has already claimed", {"recipient": recipient},
                )
            # At most one open claim; sequence and causal chain follow the last commit.
            if self._pending is not None:
                raise ClaimInProgressError(
                    "Another claim is in progress",
                    {"recipient": recipient, "in_progress": self._pending},
                )

            record = ClaimRecord.create(
                sequence=  len(self._recipients),
                recipient= recipient,
                amount=    amount,
                sponsor=   sponsor,
                prev=      self._last_record,
            )

            # Effects: flag first, then the durable record.
            self._claimed[recipient] = True
            try:
                offset = self._append_to_journal(record)
            except LedgerError:
                del self._claimed[recipient]
                raise

            self._pending = recipient
            try:
                yield record
            except BaseException:
                del self._claimed[recipient]
                self._truncate_journal(offset)
                logger.debug("rolled back claim for %s", recipient)
                raise
            finally:
                self._pending = None

            self._recipients.append(recipient)
            self._last_record = record

    # ── Verification ──────────────────────────────────────────

    def verify_journal(self) -> JournalReport:
        """
        Re-read the journal and check sequence, causal chain and
        recipient uniqueness. An in-memory ledger is trivially valid.
        """
        if self._journal_path is None or not self._journal_path.exists():
            return JournalReport(valid=True, entries=0)

        violations: List[str] = []
        try:
            records = self._read_journal()
        except LedgerError as exc:
            return JournalReport(valid=False, entries=0, violations=[str(exc)])

        seen: Dict[str, int] = {}
        prev: Optional[ClaimRecord] = None
        for i, record in enumerate(records):
            if record.sequence != i:
                violations.append(f"sequence gap at line {i + 1}: got {record.sequence}")
            if record.causal_hash != ClaimRecord.expected_causal_hash(prev):
                violations.append(f"chain break at sequence {record.sequence}")
            if record.recipient in seen:
                violations.append(
                    f"duplicate claim for {record.recipient} "
                    f"(sequences {seen[record.recipient]} and {record.sequence})"
                )
            seen[record.recipient] = record.sequence
            prev = record

        return JournalReport(
            valid=      not violations,
            entries=    len(records),
            violations= violations,
        )

    # ── Internal ──────────────────────────────────────────────

    def _restore_state(self) -> None:
        """
        Rebuild the claimed set and recipients record from the journal.
        Called once at construction. Raises LedgerError on a corrupt journal:
        a ledger that cannot prove who already claimed must not accept claims.
        """
        if not self._journal_path.exists():
            return

        report = self.verify_journal()
        if not report:
            raise LedgerError(
                f"Claim journal {self._journal_path} failed verification",
                {"violations": "; ".join(report.violations)},
            )

        for record in self._read_journal():
            self._claimed[record.recipient] = True
            self._recipients.append(record.recipient)
            self._last_record = record

        logger.info(
            "restored %d claims from %s", len(self._recipients), self._journal_path,
        )

    def _read_journal(self) -> List[ClaimRecord]:
        records: List[ClaimRecord] = []
        try:
            with open(self._journal_path, "r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, 1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        records.append(ClaimRecord.from_dict(json.loads(line)))
                    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
                        raise LedgerError(
                            f"Invalid journal record at line {line_num}: {exc}"
                        ) from exc
        except OSError as exc:
            raise LedgerError(f"Failed to read claim journal: {exc}") from exc
        return records

    def _append_to_journal(self, record: ClaimRecord) -> Optional[int]:
        """
        Append one record as a newline-terminated JSON line, fsync'd.
        Returns the file length before the write (the rollback point),
        or None when there is no journal.
        """
        if self._journal_path is None:
            return None
        try:
            with open(self._journal_path, "a", encoding="utf-8") as f:
                offset = f.tell()
                f.write(json.dumps(record.to_dict()) + "\n")
                f.flush()
                os.fsync(f.fileno())
            return offset
        except OSError as exc:
            raise LedgerError(f"Claim journal write failed: {exc}") from exc

    def _truncate_journal(self, offset: Optional[int]) -> None:
        if offset is None:
            return
        try:
            os.truncate(self._journal_path, offset)
        except OSError as exc:
            raise LedgerError(
                f"Claim journal rollback failed; journal holds an uncommitted record: {exc}"
            ) from exc
