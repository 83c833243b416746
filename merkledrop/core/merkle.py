"""
merkledrop/core/merkle.py

Tree Builder (off-chain) and Proof Verifier (stateless).

Commitment Rules (hard contracts, shared with the on-chain verifier):
1. Leaf:    hash_leaf(recipient, amount)  (core/encoding.py)
2. Parent:  keccak256(min(a, b) ++ max(a, b)), byte-lexicographic order,
            so a proof is a plain list of siblings with no left/right flags
3. Odd level: the last unpaired node is carried up unchanged (never duplicated)
4. Root:    the single node left when a level has length 1
5. Proof:   siblings collected bottom-up; a carried node contributes nothing
            at that level, so proof lengths may differ by one

Determinism: leaf order is the whitelist order. Nothing here sorts leaves;
the same ordered input always yields the same root and the same proofs.
"""

import logging
from typing import Dict, List, Sequence

from merkledrop.core.encoding import hash_leaf
from merkledrop.core.exceptions import ValidationError
from merkledrop.core.hashing import keccak256, normalize_address
from merkledrop.core.models import DistributionEntry, Entitlement


logger = logging.getLogger(__name__)


def hash_pair(a: bytes, b: bytes) -> bytes:
    """Commutative parent hash: keccak256 of the sorted concatenation."""
    if a <= b:
        return keccak256(a + b)
    return keccak256(b + a)


def verify_proof(proof: Sequence[bytes], root: bytes, leaf: bytes) -> bool:
    """
    Recompute a root from `leaf` and its sibling path and compare to `root`.

    Pure. Never raises for well-typed input; a False result is mapped to
    InvalidProofError by the caller.
    """
    computed = leaf
    for sibling in proof:
        computed = hash_pair(computed, sibling)
    return computed == root


class MerkleTree:
    """
    Binary hash tree over an ordered entitlement list.

    Usage:
        tree  = MerkleTree.build(entitlements)
        root  = tree.root
        proof = tree.proof(2)
        entry = tree.entry_for("0xAbC...")
    """

    def __init__(self, entitlements: Sequence[Entitlement], levels: List[List[bytes]]) -> None:
        self._entitlements: List[Entitlement] = list(entitlements)
        self._levels:       List[List[bytes]] = levels
        self._index:        Dict[str, int]    = {
            e.recipient: i for i, e in enumerate(self._entitlements)
        }

    # ── Construction ──────────────────────────────────────────

    @classmethod
    def build(cls, entitlements: Sequence[Entitlement]) -> "MerkleTree":
        """
        Build the tree level by level.

        Raises ValidationError for an empty list or a repeated recipient:
        a second entitlement for an address could never be claimed, since the
        ledger allows one claim per recipient.
        """
        if not entitlements:
            raise ValidationError("Cannot build a tree from an empty whitelist")

        seen: Dict[str, int] = {}
        for i, e in enumerate(entitlements):
            if e.recipient in seen:
                raise ValidationError(
                    "Duplicate recipient in whitelist",
                    {"recipient": e.recipient, "first": seen[e.recipient], "again": i},
                )
            seen[e.recipient] = i

        level = [hash_leaf(e.recipient, e.amount) for e in entitlements]
        levels = [level]

        while len(level) > 1:
            parents: List[bytes] = []
            for i in range(0, len(level) - 1, 2):
                parents.append(hash_pair(level[i], level[i + 1]))
            if len(level) % 2 == 1:
                parents.append(level[-1])
            level = parents
            levels.append(level)

        tree = cls(entitlements, levels)
        logger.debug(
            "built merkle tree: leaves=%d depth=%d root=0x%s",
            len(entitlements), tree.depth, tree.root.hex(),
        )
        return tree

    # ── Queries ───────────────────────────────────────────────

    @property
    def root(self) -> bytes:
        return self._levels[-1][0]

    @property
    def leaves(self) -> List[bytes]:
        return list(self._levels[0])

    @property
    def depth(self) -> int:
        """Number of hashing levels above the leaves (0 for a single leaf)."""
        return len(self._levels) - 1

    def __len__(self) -> int:
        return len(self._entitlements)

    def index_of(self, recipient: str) -> int:
        """Position of `recipient` in the whitelist. KeyError if absent."""
        address = normalize_address(recipient)
        if address not in self._index:
            raise KeyError(f"{address} is not in the whitelist")
        return self._index[address]

    def proof(self, index: int) -> List[bytes]:
        """Sibling path for the leaf at `index`, bottom-up."""
        if index < 0 or index >= len(self._entitlements):
            raise IndexError(
                f"Leaf index {index} out of range for {len(self._entitlements)} leaves"
            )

        siblings: List[bytes] = []
        position = index
        for level in self._levels[:-1]:
            sibling = position ^ 1
            # Unpaired last node: carried up, nothing to record.
            if sibling < len(level):
                siblings.append(level[sibling])
            position //= 2
        return siblings

    def proof_for(self, recipient: str) -> List[bytes]:
        return self.proof(self.index_of(recipient))

    def entry(self, index: int) -> DistributionEntry:
        """The artifact record for the leaf at `index`."""
        e = self._entitlements[index]
        return DistributionEntry(
            recipient= e.recipient,
            amount=    e.amount,
            proof=     self.proof(index),
            root=      self.root,
            leaf=      self._levels[0][index],
        )

    def entry_for(self, recipient: str) -> DistributionEntry:
        return self.entry(self.index_of(recipient))

    def entries(self) -> List[DistributionEntry]:
        return [self.entry(i) for i in range(len(self._entitlements))]
