"""
tests/test_distributor.py

The claim operation end to end: authorization, membership, uniqueness,
atomic rollback, reentrancy, cross-instance replay.

Run:
    pytest tests/test_distributor.py -v
"""

import logging

import pytest

from merkledrop.core.config import DistributorConfig
from merkledrop.core.crypto import SECP256K1_N
from merkledrop.core.exceptions import (
    AlreadyClaimedError,
    ClaimError,
    ClaimInProgressError,
    ConfigError,
    InvalidProofError,
    InvalidSignatureError,
    InvalidSignatureLengthError,
    TransferFailedError,
    ValidationError,
)
from merkledrop.core.hashing import to_hex
from merkledrop.core.models import ClaimSignature, ClaimSucceeded
from merkledrop.core.typed_data import EIP712Domain
from merkledrop.custody.token import InMemoryToken
from merkledrop.distributor.engine import MerkleDistributor
from merkledrop.ledger.ledger import ClaimLedger

from conftest import (
    AMOUNT,
    CHAIN_ID,
    DISTRIBUTOR_ADDRESS,
    OTHER_DISTRIBUTOR,
    SPONSOR_ADDRESS,
    TOKEN_ADDRESS,
)


def signed_claim(distributor, key, amount=AMOUNT):
    """(v, r, s) from `key` authorizing `amount` to key.address on this instance."""
    return key.sign_digest(distributor.message_hash(key.address, amount)).vrs


class RefusingToken(InMemoryToken):
    """Refuses every transfer by returning False."""

    def transfer(self, sender, recipient, amount):
        return False


class ExplodingToken(InMemoryToken):
    """Raises from inside the transfer."""

    def transfer(self, sender, recipient, amount):
        raise RuntimeError("asset contract reverted")


class ReentrantToken(InMemoryToken):
    """
    Calls back into the distributor once, from inside transfer().
    With refuse_after_reentry set, the outer transfer then returns False.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.distributor          = None
        self.reentry_args         = None
        self.reentry_errors       = []
        self.refuse_after_reentry = False

    def transfer(self, sender, recipient, amount):
        if self.distributor is not None and self.reentry_args is not None:
            args, self.reentry_args = self.reentry_args, None
            try:
                self.distributor.claim(*args)
            except ClaimError as exc:
                self.reentry_errors.append(exc)
            if self.refuse_after_reentry:
                return False
        return super().transfer(sender, recipient, amount)


# ─────────────────────────────────────────────────────────────
# End to end
# ─────────────────────────────────────────────────────────────

class TestEndToEnd:

    def test_sponsored_claim_for_b(self, distributor, distribution, accounts, token):
        """
        Whitelist A..D at 25·10^18 each. An unrelated sponsor submits B's
        claim with B's proof and B's signature; B is paid exactly once.
        """
        b     = accounts["B"]
        entry = distribution.entry_for(b.address)
        v, r, s = signed_claim(distributor, b)

        before = token.balance_of(b.address)
        event = distributor.claim(b.address, AMOUNT, entry.proof, v, r, s, sponsor=SPONSOR_ADDRESS)

        assert token.balance_of(b.address) == before + AMOUNT
        assert token.balance_of(SPONSOR_ADDRESS) == 0
        assert distributor.is_claimed(b.address)
        assert distributor.recipients() == [b.address]
        assert event == ClaimSucceeded(b.address, AMOUNT, SPONSOR_ADDRESS, 0)

        with pytest.raises(AlreadyClaimedError):
            distributor.claim(b.address, AMOUNT, entry.proof, v, r, s, sponsor=SPONSOR_ADDRESS)
        assert token.balance_of(b.address) == before + AMOUNT

    def test_everyone_claims(self, distributor, distribution, accounts, token):
        for name in "DACB":
            key = accounts[name]
            distributor.claim(
                key.address, AMOUNT, distribution.entry_for(key.address).proof,
                *signed_claim(distributor, key),
            )

        assert distributor.recipients() == [accounts[n].address for n in "DACB"]
        assert token.balance_of(DISTRIBUTOR_ADDRESS) == 0
        for name in "ABCD":
            assert token.balance_of(accounts[name].address) == AMOUNT

    def test_claim_with_signature_bytes(self, distributor, distribution, accounts, token):
        a   = accounts["A"]
        raw = a.sign_digest(distributor.message_hash(a.address, AMOUNT)).to_bytes()
        distributor.claim_with_signature(a.address, AMOUNT, distribution.entry_for(a.address).proof, raw)
        assert token.balance_of(a.address) == AMOUNT

    def test_signature_bytes_wrong_length(self, distributor, distribution, accounts):
        a = accounts["A"]
        with pytest.raises(InvalidSignatureLengthError):
            distributor.claim_with_signature(
                a.address, AMOUNT, distribution.entry_for(a.address).proof, b"\x00" * 64,
            )
        assert not distributor.is_claimed(a.address)


# ─────────────────────────────────────────────────────────────
# Rejections
# ─────────────────────────────────────────────────────────────

class TestRejections:

    def test_signature_from_other_key(self, distributor, distribution, accounts, token):
        b = accounts["B"]
        v, r, s = accounts["C"].sign_digest(distributor.message_hash(b.address, AMOUNT)).vrs

        with pytest.raises(InvalidSignatureError):
            distributor.claim(b.address, AMOUNT, distribution.entry_for(b.address).proof, v, r, s)
        assert token.balance_of(b.address) == 0
        assert not distributor.is_claimed(b.address)

    def test_absent_recipient_every_proof(self, distributor, distribution, accounts):
        e = accounts["E"]
        v, r, s = signed_claim(distributor, e)
        for entry in distribution.entries:
            with pytest.raises(InvalidProofError):
                distributor.claim(e.address, AMOUNT, entry.proof, v, r, s)
        assert distributor.recipients() == []

    def test_wrong_amount(self, distributor, distribution, accounts, token):
        b = accounts["B"]
        v, r, s = signed_claim(distributor, b, AMOUNT * 2)
        with pytest.raises(InvalidProofError):
            distributor.claim(b.address, AMOUNT * 2, distribution.entry_for(b.address).proof, v, r, s)
        assert token.balance_of(b.address) == 0

    def test_malleable_signature_rejected(self, distributor, distribution, accounts):
        b     = accounts["B"]
        proof = distribution.entry_for(b.address).proof
        v, r, s = signed_claim(distributor, b)

        with pytest.raises(InvalidSignatureError):
            distributor.claim(b.address, AMOUNT, proof, 55 - v, r, SECP256K1_N - s)
        assert not distributor.is_claimed(b.address)

        distributor.claim(b.address, AMOUNT, proof, v, r, s)
        with pytest.raises((InvalidSignatureError, AlreadyClaimedError)):
            distributor.claim(b.address, AMOUNT, proof, 55 - v, r, SECP256K1_N - s)

    def test_signature_checked_before_ledger(self, distributor, distribution, accounts):
        b     = accounts["B"]
        proof = distribution.entry_for(b.address).proof
        distributor.claim(b.address, AMOUNT, proof, *signed_claim(distributor, b))

        v, r, s = accounts["C"].sign_digest(distributor.message_hash(b.address, AMOUNT)).vrs
        with pytest.raises(InvalidSignatureError):
            distributor.claim(b.address, AMOUNT, proof, v, r, s)

    def test_ledger_checked_before_proof(self, distributor, distribution, accounts):
        b = accounts["B"]
        v, r, s = signed_claim(distributor, b)
        distributor.claim(b.address, AMOUNT, distribution.entry_for(b.address).proof, v, r, s)

        with pytest.raises(AlreadyClaimedError):
            distributor.claim(b.address, AMOUNT, [], v, r, s)

    def test_malformed_recipient(self, distributor):
        with pytest.raises(ValidationError):
            distributor.claim("0x1234", AMOUNT, [], 27, 1, 1)

    def test_hex_proof_accepted(self, distributor, distribution, accounts, token):
        b     = accounts["B"]
        proof = [to_hex(p) for p in distribution.entry_for(b.address).proof]
        distributor.claim(b.address, AMOUNT, proof, *signed_claim(distributor, b))
        assert token.balance_of(b.address) == AMOUNT

    @pytest.mark.parametrize("element", [32, b"\x01" * 31, "ab" * 32, "0x" + "ab" * 31])
    def test_malformed_proof_element(self, distributor, distribution, accounts, element):
        b     = accounts["B"]
        proof = list(distribution.entry_for(b.address).proof)
        proof[0] = element

        with pytest.raises(ValidationError):
            distributor.claim(b.address, AMOUNT, proof, *signed_claim(distributor, b))
        assert not distributor.is_claimed(b.address)

    def test_rejection_logged(self, distributor, distribution, accounts, caplog):
        e = accounts["E"]
        with caplog.at_level(logging.WARNING, logger="merkledrop.distributor.engine"):
            with pytest.raises(InvalidProofError):
                distributor.claim(e.address, AMOUNT, [], *signed_claim(distributor, e))
        assert "InvalidProofError" in caplog.text

    def test_retryable_flags(self):
        assert InvalidSignatureError("x").retryable
        assert InvalidProofError("x").retryable
        assert TransferFailedError("x").retryable
        assert ClaimInProgressError("x").retryable
        assert not AlreadyClaimedError("x").retryable


# ─────────────────────────────────────────────────────────────
# Atomicity
# ─────────────────────────────────────────────────────────────

class TestAtomicity:

    def test_refused_transfer_rolls_back(self, make_distributor, distribution, accounts):
        token = RefusingToken(TOKEN_ADDRESS)
        distributor = make_distributor(token_=token)
        b = accounts["B"]

        with pytest.raises(TransferFailedError):
            distributor.claim(
                b.address, AMOUNT, distribution.entry_for(b.address).proof,
                *signed_claim(distributor, b),
            )
        assert not distributor.is_claimed(b.address)
        assert distributor.recipients() == []

    def test_unfunded_custody_then_funded(self, make_distributor, distribution, accounts):
        token = InMemoryToken(TOKEN_ADDRESS)
        distributor = make_distributor(token_=token)
        b = accounts["B"]
        args = (b.address, AMOUNT, distribution.entry_for(b.address).proof, *signed_claim(distributor, b))

        with pytest.raises(TransferFailedError):
            distributor.claim(*args)
        assert not distributor.is_claimed(b.address)

        token.mint(DISTRIBUTOR_ADDRESS, AMOUNT)
        distributor.claim(*args)
        assert token.balance_of(b.address) == AMOUNT

    def test_raising_transfer_rolls_back_journal(self, make_distributor, distribution, accounts, tmp_path):
        path = tmp_path / "claims.jsonl"
        distributor = make_distributor(token_=ExplodingToken(TOKEN_ADDRESS), ledger=ClaimLedger(path))
        b = accounts["B"]

        with pytest.raises(RuntimeError):
            distributor.claim(
                b.address, AMOUNT, distribution.entry_for(b.address).proof,
                *signed_claim(distributor, b),
            )
        assert not distributor.is_claimed(b.address)
        assert path.read_text() == ""

    def test_reentrant_claim_sees_claimed(self, make_distributor, distribution, accounts):
        token = ReentrantToken(TOKEN_ADDRESS)
        token.mint(DISTRIBUTOR_ADDRESS, distribution.total_amount)
        distributor = make_distributor(token_=token)
        token.distributor = distributor

        b    = accounts["B"]
        args = (b.address, AMOUNT, distribution.entry_for(b.address).proof, *signed_claim(distributor, b))
        token.reentry_args = args

        distributor.claim(*args)

        assert len(token.reentry_errors) == 1
        assert isinstance(token.reentry_errors[0], AlreadyClaimedError)
        assert token.balance_of(b.address) == AMOUNT
        assert distributor.recipients() == [b.address]

    def test_nested_claim_for_other_recipient_refused(self, make_distributor, distribution, accounts, tmp_path):
        path   = tmp_path / "claims.jsonl"
        ledger = ClaimLedger(path)
        token  = ReentrantToken(TOKEN_ADDRESS)
        token.mint(DISTRIBUTOR_ADDRESS, distribution.total_amount)
        distributor = make_distributor(token_=token, ledger=ledger)
        token.distributor = distributor

        a, b   = accounts["A"], accounts["B"]
        a_args = (a.address, AMOUNT, distribution.entry_for(a.address).proof, *signed_claim(distributor, a))
        b_args = (b.address, AMOUNT, distribution.entry_for(b.address).proof, *signed_claim(distributor, b))
        token.reentry_args = b_args

        distributor.claim(*a_args)

        assert len(token.reentry_errors) == 1
        assert isinstance(token.reentry_errors[0], ClaimInProgressError)
        assert token.reentry_errors[0].retryable
        assert token.balance_of(b.address) == 0
        assert not distributor.is_claimed(b.address)
        assert distributor.recipients() == [a.address]
        assert ledger.verify_journal().valid

        # The refused claim goes through once the first has committed.
        distributor.claim(*b_args)
        assert token.balance_of(b.address) == AMOUNT

        restarted = ClaimLedger(path)
        assert restarted.recipients() == [a.address, b.address]
        report = restarted.verify_journal()
        assert report.valid and report.entries == 2

    def test_nested_claim_then_outer_rollback(self, make_distributor, distribution, accounts, tmp_path):
        path  = tmp_path / "claims.jsonl"
        token = ReentrantToken(TOKEN_ADDRESS)
        token.mint(DISTRIBUTOR_ADDRESS, distribution.total_amount)
        distributor = make_distributor(token_=token, ledger=ClaimLedger(path))
        token.distributor          = distributor
        token.refuse_after_reentry = True

        a, b   = accounts["A"], accounts["B"]
        a_args = (a.address, AMOUNT, distribution.entry_for(a.address).proof, *signed_claim(distributor, a))
        b_args = (b.address, AMOUNT, distribution.entry_for(b.address).proof, *signed_claim(distributor, b))
        token.reentry_args = b_args

        with pytest.raises(TransferFailedError):
            distributor.claim(*a_args)

        assert isinstance(token.reentry_errors[0], ClaimInProgressError)
        assert token.balance_of(a.address) == 0
        assert token.balance_of(b.address) == 0
        assert distributor.recipients() == []
        assert path.read_text() == ""

        # Paid state and journal agree after a restart: B claims exactly once.
        restarted = make_distributor(token_=token, ledger=ClaimLedger(path))
        assert not restarted.is_claimed(b.address)
        restarted.claim(*b_args)
        with pytest.raises(AlreadyClaimedError):
            restarted.claim(*b_args)
        assert token.balance_of(b.address) == AMOUNT
        assert ClaimLedger(path).recipients() == [b.address]


# ─────────────────────────────────────────────────────────────
# Instance binding
# ─────────────────────────────────────────────────────────────

class TestInstanceBinding:

    def test_signature_replay_across_instances(self, make_distributor, distribution, accounts, token):
        token.mint(OTHER_DISTRIBUTOR, distribution.total_amount)
        first  = make_distributor()
        second = make_distributor(
            domain_=EIP712Domain(chain_id=CHAIN_ID, verifying_contract=OTHER_DISTRIBUTOR),
        )
        assert first.root == second.root and first.token == second.token

        b     = accounts["B"]
        proof = distribution.entry_for(b.address).proof
        v, r, s = signed_claim(first, b)

        first.claim(b.address, AMOUNT, proof, v, r, s)
        with pytest.raises(InvalidSignatureError):
            second.claim(b.address, AMOUNT, proof, v, r, s)
        assert token.balance_of(b.address) == AMOUNT

        second.claim(b.address, AMOUNT, proof, *signed_claim(second, b))
        assert token.balance_of(b.address) == 2 * AMOUNT

    def test_journal_survives_restart(self, make_distributor, distribution, accounts, tmp_path):
        path = tmp_path / "claims.jsonl"
        b     = accounts["B"]
        proof = distribution.entry_for(b.address).proof

        first = make_distributor(ledger=ClaimLedger(path))
        args  = (b.address, AMOUNT, proof, *signed_claim(first, b))
        first.claim(*args)

        restarted = make_distributor(ledger=ClaimLedger(path))
        assert restarted.recipients() == [b.address]
        with pytest.raises(AlreadyClaimedError):
            restarted.claim(*args)


# ─────────────────────────────────────────────────────────────
# Accessors and notifications
# ─────────────────────────────────────────────────────────────

class TestAccessors:

    def test_read_only_accessors(self, distributor, distribution, domain):
        assert distributor.root == distribution.root
        assert distributor.token == TOKEN_ADDRESS
        assert distributor.address == DISTRIBUTOR_ADDRESS
        assert distributor.domain == domain
        assert distributor.recipients() == []

    def test_message_hash_matches_domain(self, distributor, domain, accounts):
        a = accounts["A"].address
        assert distributor.message_hash(a, AMOUNT) == domain.message_hash(a, AMOUNT)

    def test_elapsed(self, distributor, clock):
        assert distributor.elapsed() == 0
        clock.advance(90.7)
        assert distributor.elapsed() == 90

    def test_bad_root_rejected(self, make_distributor):
        with pytest.raises(ConfigError):
            make_distributor(root=b"\x00" * 31)

    def test_listener_notified(self, distributor, distribution, accounts):
        events = []
        distributor.subscribe(events.append)
        a = accounts["A"]
        distributor.claim(
            a.address, AMOUNT, distribution.entry_for(a.address).proof,
            *signed_claim(distributor, a),
        )
        assert events == [ClaimSucceeded(a.address, AMOUNT, None, 0)]
        assert events[0].to_dict()["amount"] == str(AMOUNT)

    def test_failing_listener_does_not_undo_claim(self, distributor, distribution, accounts, token):
        def broken(event):
            raise RuntimeError("listener down")

        distributor.subscribe(broken)
        a = accounts["A"]
        distributor.claim(
            a.address, AMOUNT, distribution.entry_for(a.address).proof,
            *signed_claim(distributor, a),
        )
        assert distributor.is_claimed(a.address)
        assert token.balance_of(a.address) == AMOUNT

    def test_no_event_on_failure(self, distributor, accounts):
        events = []
        distributor.subscribe(events.append)
        e = accounts["E"]
        with pytest.raises(InvalidProofError):
            distributor.claim(e.address, AMOUNT, [], *signed_claim(distributor, e))
        assert events == []


class TestFromConfig:

    def test_from_config(self, distribution, token, tmp_path, accounts):
        config = DistributorConfig(
            chain_id=     CHAIN_ID,
            address=      DISTRIBUTOR_ADDRESS,
            token=        TOKEN_ADDRESS,
            root=         distribution.root,
            journal_path= tmp_path / "claims.jsonl",
        )
        distributor = MerkleDistributor.from_config(config, token)

        a = accounts["A"]
        distributor.claim(
            a.address, AMOUNT, distribution.entry_for(a.address).proof,
            *signed_claim(distributor, a),
        )
        assert (tmp_path / "claims.jsonl").exists()

    def test_token_mismatch(self, distribution):
        config = DistributorConfig(
            chain_id= CHAIN_ID,
            address=  DISTRIBUTOR_ADDRESS,
            token=    TOKEN_ADDRESS,
            root=     distribution.root,
        )
        with pytest.raises(ConfigError):
            MerkleDistributor.from_config(config, InMemoryToken(OTHER_DISTRIBUTOR))
