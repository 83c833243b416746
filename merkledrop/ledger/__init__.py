"""
MerkleDrop Claim Ledger - one claim per recipient, ever.

The ledger is the source of truth for who has claimed.
"""

from merkledrop.ledger.ledger import ClaimLedger, ClaimRecord, JournalReport, GENESIS_HASH

__all__ = ["ClaimLedger", "ClaimRecord", "JournalReport", "GENESIS_HASH"]
