"""
merkledrop/verification/verify.py

Offline verification of a distribution artifact.

Every entry is recomputed from its (recipient, amount) alone:
    leaf_mismatch   stored leaf != hash_leaf(recipient, amount)
    root_mismatch   entry root differs from the artifact (or expected) root
    invalid_proof   the proof does not recompute the root from the leaf
    duplicate       the recipient appears more than once

A clean report means every listed recipient can claim exactly its amount
against that root. verify_distribution() never raises for a loaded artifact.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from merkledrop.builder.distribution import Distribution
from merkledrop.core.encoding import hash_leaf
from merkledrop.core.hashing import to_hex
from merkledrop.core.merkle import verify_proof


@dataclass
class DistributionViolation:
    """One problem found in an artifact."""
    index:          Optional[int]
    recipient:      Optional[str]
    violation_type: str
    detail:         str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index":          self.index,
            "recipient":      self.recipient,
            "violation_type": self.violation_type,
            "detail":         self.detail,
        }


@dataclass
class DistributionReport:
    """Result of verify_distribution()."""
    root:          str
    total_entries: int
    total_amount:  int
    commitment:    str
    violations:    List[DistributionViolation] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.violations

    def __bool__(self) -> bool:
        return self.valid

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid":         self.valid,
            "root":          self.root,
            "total_entries": self.total_entries,
            "total_amount":  str(self.total_amount),
            "commitment":    self.commitment,
            "violations":    [v.to_dict() for v in self.violations],
        }


def verify_distribution(
    distribution:  Distribution,
    expected_root: Optional[bytes] = None,
) -> DistributionReport:
    """
    Recompute every leaf and proof in `distribution`.

    Args:
        distribution:  Loaded artifact.
        expected_root: Root published to the distributor, if known. When
                       given, proofs are checked against it, not the
                       artifact's own root field.
    """
    root = expected_root if expected_root is not None else distribution.root
    report = DistributionReport(
        root=          to_hex(root),
        total_entries= len(distribution.entries),
        total_amount=  distribution.total_amount,
        commitment=    distribution.commitment(),
    )

    if not distribution.entries:
        report.violations.append(DistributionViolation(
            None, None, "empty", "distribution has no entries",
        ))

    if expected_root is not None and distribution.root != expected_root:
        report.violations.append(DistributionViolation(
            None, None, "root_mismatch",
            f"artifact root {to_hex(distribution.root)} != expected {to_hex(expected_root)}",
        ))

    seen: Dict[str, int] = {}
    for i, entry in enumerate(distribution.entries):
        if entry.recipient in seen:
            report.violations.append(DistributionViolation(
                i, entry.recipient, "duplicate",
                f"already listed at index {seen[entry.recipient]}",
            ))
        else:
            seen[entry.recipient] = i

        leaf = hash_leaf(entry.recipient, entry.amount)
        if leaf != entry.leaf:
            report.violations.append(DistributionViolation(
                i, entry.recipient, "leaf_mismatch",
                f"stored {to_hex(entry.leaf)}, computed {to_hex(leaf)}",
            ))

        if entry.root != root:
            report.violations.append(DistributionViolation(
                i, entry.recipient, "root_mismatch",
                f"entry root {to_hex(entry.root)}",
            ))

        if not verify_proof(entry.proof, root, leaf):
            report.violations.append(DistributionViolation(
                i, entry.recipient, "invalid_proof",
                f"proof of length {len(entry.proof)} does not reach the root",
            ))

    return report
