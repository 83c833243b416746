"""MerkleDrop offline verification and test vectors."""

from merkledrop.verification.vectors import build_vector_bundle
from merkledrop.verification.verify import (
    DistributionReport,
    DistributionViolation,
    verify_distribution,
)

__all__ = [
    "DistributionReport",
    "DistributionViolation",
    "verify_distribution",
    "build_vector_bundle",
]
