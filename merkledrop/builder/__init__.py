"""
MerkleDrop Builder - whitelist in, root and per-recipient proofs out.
"""

from merkledrop.builder.distribution import Distribution, build_distribution
from merkledrop.builder.whitelist import load_whitelist, parse_whitelist

__all__ = [
    "Distribution",
    "build_distribution",
    "load_whitelist",
    "parse_whitelist",
]
