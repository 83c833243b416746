"""
merkledrop/custody/token.py

Fungible-asset collaborator.

The distributor depends on, but does not implement, the asset. It needs:
    address                              asset identifier
    balance_of(holder)                   standard balance semantics
    transfer(sender, recipient, amount)  True on success, False on refusal

InMemoryToken is a complete single-process implementation used for local
simulation and the test suite. Anything satisfying Token (for example an
adapter over a real ERC-20 contract) can be passed to MerkleDistributor.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict

from merkledrop.core.exceptions import ValidationError
from merkledrop.core.hashing import normalize_address, validate_amount


logger = logging.getLogger(__name__)


class Token(ABC):
    """Minimal fungible-asset interface the distributor calls."""

    @property
    @abstractmethod
    def address(self) -> str:
        ...

    @abstractmethod
    def balance_of(self, holder: str) -> int:
        ...

    @abstractmethod
    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        """Move `amount` from `sender` to `recipient`. False if refused."""
        ...


class InMemoryToken(Token):
    """
    Balance-map token. transfer() refuses (returns False) when the sender's
    balance is insufficient; balances never go negative, so total outflow
    from any holder is bounded by what it was minted or sent.
    """

    def __init__(self, address: str, symbol: str = "TKN", decimals: int = 18) -> None:
        self._address  = normalize_address(address)
        self.symbol    = symbol
        self.decimals  = decimals
        self._balances: Dict[str, int] = {}
        self._supply   = 0
        self._lock     = threading.RLock()

    @property
    def address(self) -> str:
        return self._address

    @property
    def total_supply(self) -> int:
        return self._supply

    def balance_of(self, holder: str) -> int:
        with self._lock:
            return self._balances.get(normalize_address(holder), 0)

    def mint(self, to: str, amount: int) -> None:
        to = normalize_address(to)
        validate_amount(amount)
        with self._lock:
            self._balances[to] = self._balances.get(to, 0) + amount
            self._supply += amount
        logger.debug("minted %d %s to %s", amount, self.symbol, to)

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        try:
            sender    = normalize_address(sender)
            recipient = normalize_address(recipient)
            validate_amount(amount)
        except ValidationError:
            return False

        with self._lock:
            balance = self._balances.get(sender, 0)
            if balance < amount:
                logger.debug(
                    "transfer refused: %s holds %d, needs %d", sender, balance, amount,
                )
                return False
            self._balances[sender]    = balance - amount
            self._balances[recipient] = self._balances.get(recipient, 0) + amount
            return True

    def __repr__(self) -> str:
        return f"InMemoryToken(address={self._address}, symbol={self.symbol!r})"
