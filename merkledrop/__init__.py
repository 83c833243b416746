"""
merkledrop/__init__.py

MerkleDrop: Merkle-tree token distribution with delegated EIP-712 claims.

A fixed whitelist of (recipient, amount) pairs is committed to a single
root. Each recipient collects its exact amount once, either directly or
through a relayer carrying the recipient's signature.
"""

__version__ = "0.1.0"

from merkledrop.core.encoding import LEAF_ENCODING, encode_entitlement, hash_leaf
from merkledrop.core.merkle import MerkleTree, hash_pair, verify_proof
from merkledrop.core.typed_data import EIP712Domain
from merkledrop.core.crypto import Secp256k1KeyManager, verify_signature
from merkledrop.core.models import (
    ClaimSignature,
    ClaimSucceeded,
    DistributionEntry,
    Entitlement,
    split_signature,
)
from merkledrop.core.config import DistributorConfig
from merkledrop.core.exceptions import (
    AlreadyClaimedError,
    ClaimError,
    ClaimInProgressError,
    ConfigError,
    InvalidProofError,
    InvalidSignatureError,
    InvalidSignatureLengthError,
    LedgerError,
    MerkleDropError,
    TransferFailedError,
    ValidationError,
)
from merkledrop.ledger.ledger import ClaimLedger
from merkledrop.custody.token import InMemoryToken, Token
from merkledrop.distributor.engine import MerkleDistributor
from merkledrop.builder.distribution import Distribution, build_distribution
from merkledrop.builder.whitelist import load_whitelist

__all__ = [
    # Builder / verifier
    "Entitlement",
    "MerkleTree",
    "Distribution",
    "DistributionEntry",
    "build_distribution",
    "load_whitelist",
    "hash_leaf",
    "hash_pair",
    "encode_entitlement",
    "verify_proof",
    # Authorization
    "EIP712Domain",
    "ClaimSignature",
    "Secp256k1KeyManager",
    "split_signature",
    "verify_signature",
    # Distributor
    "MerkleDistributor",
    "ClaimLedger",
    "ClaimSucceeded",
    "DistributorConfig",
    "Token",
    "InMemoryToken",
    # Errors
    "MerkleDropError",
    "ValidationError",
    "InvalidSignatureLengthError",
    "ConfigError",
    "LedgerError",
    "ClaimError",
    "InvalidSignatureError",
    "AlreadyClaimedError",
    "InvalidProofError",
    "TransferFailedError",
    "ClaimInProgressError",
    # Constants
    "LEAF_ENCODING",
]
