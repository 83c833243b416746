"""
merkledrop/builder/distribution.py

Distribution artifact — the builder's output.

    {
      "leaf_encoding": "keccak256(keccak256(abi.encode(address,uint256)))",
      "root":          "0x...",
      "total_amount":  "...",
      "entries":       [{recipient, amount, proof, root, leaf}, ...]
    }

The root is published to the distributor; each entry goes to its recipient
(or a relayer). commitment() is a SHA-256 over the RFC 8785 form of the
artifact, so two parties can confirm they hold the same file.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Sequence

from merkledrop.core.canonical import canonical_hash
from merkledrop.core.encoding import LEAF_ENCODING
from merkledrop.core.exceptions import ValidationError
from merkledrop.core.hashing import HASH_LENGTH, from_hex, normalize_address, to_hex
from merkledrop.core.merkle import MerkleTree
from merkledrop.core.models import DistributionEntry, Entitlement


logger = logging.getLogger(__name__)


@dataclass
class Distribution:
    """A root plus every recipient's artifact record, in whitelist order."""

    root:          bytes
    entries:       List[DistributionEntry]
    leaf_encoding: str = LEAF_ENCODING
    _index:        Dict[str, int] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self._index = {e.recipient: i for i, e in enumerate(self.entries)}

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def total_amount(self) -> int:
        """Sum of all entitlements: the custody balance needed to fund the drop."""
        return sum(e.amount for e in self.entries)

    def entry_for(self, recipient: str) -> DistributionEntry:
        """The artifact record for `recipient`. KeyError if not listed."""
        address = normalize_address(recipient)
        if address not in self._index:
            raise KeyError(f"{address} is not in this distribution")
        return self.entries[self._index[address]]

    def commitment(self) -> str:
        return canonical_hash(self.to_dict())

    # ── Serialization ─────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "leaf_encoding": self.leaf_encoding,
            "root":          to_hex(self.root),
            "total_amount":  str(self.total_amount),
            "entries":       [e.to_dict() for e in self.entries],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Distribution":
        if not isinstance(data, dict):
            raise ValidationError("Distribution must be a JSON object")
        for key in ("root", "entries"):
            if key not in data:
                raise ValidationError(f"Distribution missing '{key}'")

        leaf_encoding = data.get("leaf_encoding", LEAF_ENCODING)
        if leaf_encoding != LEAF_ENCODING:
            raise ValidationError(
                "Unsupported leaf encoding",
                {"leaf_encoding": leaf_encoding, "expected": LEAF_ENCODING},
            )

        try:
            entries = [DistributionEntry.from_dict(e) for e in data["entries"]]
        except (KeyError, TypeError) as exc:
            raise ValidationError(f"Malformed distribution entry: {exc}") from exc

        return cls(
            root=          from_hex(data["root"], HASH_LENGTH),
            entries=       entries,
            leaf_encoding= leaf_encoding,
        )

    def save(self, path: Path) -> None:
        """Write the artifact as indented JSON. Creates parent directories."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_dict(), indent=2) + "\n", encoding="utf-8")
        logger.info("wrote distribution with %d entries to %s", len(self), path)

    @classmethod
    def load(cls, path: Path) -> "Distribution":
        """
        Read an artifact written by save().
        Raises FileNotFoundError, or ValidationError on malformed content.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Distribution not found: {path}")
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValidationError(f"Distribution {path} is not valid JSON: {exc}") from exc
        return cls.from_dict(data)


def build_distribution(entitlements: Sequence[Entitlement]) -> Distribution:
    """
    Build the tree over `entitlements` and collect every recipient's record.
    Raises ValidationError for an empty whitelist or a repeated recipient.
    """
    tree = MerkleTree.build(entitlements)
    return Distribution(root=tree.root, entries=tree.entries())
