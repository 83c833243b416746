"""
tests/test_concurrency.py

Concurrency safety test for MerkleDistributor.
Simultaneous claims must never pay a recipient twice or corrupt the journal.

Run:
    pytest tests/test_concurrency.py -v --tb=short
"""

import threading

from merkledrop.core.exceptions import AlreadyClaimedError
from merkledrop.ledger.ledger import ClaimLedger

from conftest import AMOUNT, DISTRIBUTOR_ADDRESS


class TestConcurrency:

    def test_same_recipient_paid_once(self, make_distributor, distribution, accounts, token, tmp_path):
        """Eight threads racing the same valid claim: exactly one wins."""
        distributor = make_distributor(ledger=ClaimLedger(tmp_path / "claims.jsonl"))
        b    = accounts["B"]
        sig  = b.sign_digest(distributor.message_hash(b.address, AMOUNT))
        args = (b.address, AMOUNT, distribution.entry_for(b.address).proof, *sig.vrs)

        wins, losses, errors = [], [], []
        barrier = threading.Barrier(8)

        def race():
            barrier.wait()
            try:
                wins.append(distributor.claim(*args))
            except AlreadyClaimedError:
                losses.append(1)
            except Exception as e:
                errors.append(repr(e))

        threads = [threading.Thread(target=race) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == [], f"Unexpected exceptions: {errors}"
        assert len(wins) == 1
        assert len(losses) == 7
        assert token.balance_of(b.address) == AMOUNT
        assert distributor.recipients() == [b.address]
        assert len((tmp_path / "claims.jsonl").read_text().splitlines()) == 1

    def test_distinct_recipients_in_parallel(self, make_distributor, distribution, accounts, token, tmp_path):
        """Parallel claims for different recipients all land, journal stays chained."""
        ledger      = ClaimLedger(tmp_path / "claims.jsonl")
        distributor = make_distributor(ledger=ledger)
        errors = []

        def claim(name):
            key = accounts[name]
            try:
                distributor.claim(
                    key.address, AMOUNT, distribution.entry_for(key.address).proof,
                    *key.sign_digest(distributor.message_hash(key.address, AMOUNT)).vrs,
                )
            except Exception as e:
                errors.append(repr(e))

        threads = [threading.Thread(target=claim, args=(n,)) for n in "ABCD"]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert sorted(distributor.recipients()) == sorted(accounts[n].address for n in "ABCD")
        assert token.balance_of(DISTRIBUTOR_ADDRESS) == 0

        report = ledger.verify_journal()
        assert report.valid, report.violations
        assert report.entries == 4
        assert ClaimLedger(tmp_path / "claims.jsonl").claimed_count == 4
