"""
tests/conftest.py

Shared fixtures: four deterministic recipient keys, the 4 × 25·10^18
whitelist, a funded token, and a distributor factory.
"""

from typing import Callable, Dict, List, Optional

import pytest

from merkledrop.builder.distribution import Distribution, build_distribution
from merkledrop.core.crypto import Secp256k1KeyManager
from merkledrop.core.hashing import keccak256
from merkledrop.core.models import Entitlement
from merkledrop.core.typed_data import EIP712Domain
from merkledrop.custody.token import InMemoryToken
from merkledrop.distributor.engine import MerkleDistributor
from merkledrop.ledger.ledger import ClaimLedger


CHAIN_ID            = 31337
DISTRIBUTOR_ADDRESS = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
OTHER_DISTRIBUTOR   = "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"
TOKEN_ADDRESS       = "0x9fE46736679d2D9a65F0992F2272dE9f3c7fa6e0"
SPONSOR_ADDRESS     = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"

AMOUNT = 25 * 10**18


def key_for(name: str) -> Secp256k1KeyManager:
    """Deterministic test key derived from a name. NOT a security key."""
    return Secp256k1KeyManager.from_private_bytes(keccak256(name.encode("utf-8")))


class FakeClock:
    """Settable clock for elapsed() tests."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ─────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────

@pytest.fixture(scope="session")
def accounts() -> Dict[str, Secp256k1KeyManager]:
    """Recipients A..D plus an outsider E who is not whitelisted."""
    return {name: key_for(f"merkledrop-test-{name}") for name in "ABCDE"}


@pytest.fixture
def whitelist(accounts) -> List[Entitlement]:
    return [Entitlement(accounts[name].address, AMOUNT) for name in "ABCD"]


@pytest.fixture
def distribution(whitelist) -> Distribution:
    return build_distribution(whitelist)


@pytest.fixture
def domain() -> EIP712Domain:
    return EIP712Domain(chain_id=CHAIN_ID, verifying_contract=DISTRIBUTOR_ADDRESS)


@pytest.fixture
def token(distribution) -> InMemoryToken:
    """Token with the distributor's custody balance funded for the whole drop."""
    t = InMemoryToken(TOKEN_ADDRESS, symbol="DROP")
    t.mint(DISTRIBUTOR_ADDRESS, distribution.total_amount)
    return t


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_distributor(distribution, token, domain, clock) -> Callable[..., MerkleDistributor]:
    """Factory; every argument defaults to the shared fixtures."""

    def _make(
        root:   Optional[bytes]        = None,
        token_: Optional[InMemoryToken] = None,
        domain_: Optional[EIP712Domain] = None,
        ledger: Optional[ClaimLedger]  = None,
    ) -> MerkleDistributor:
        return MerkleDistributor(
            root=   root if root is not None else distribution.root,
            token=  token_ if token_ is not None else token,
            domain= domain_ if domain_ is not None else domain,
            ledger= ledger,
            clock=  clock,
        )

    return _make


@pytest.fixture
def distributor(make_distributor) -> MerkleDistributor:
    return make_distributor()
