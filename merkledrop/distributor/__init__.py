"""
MerkleDrop Distributor

The Distributor executes claims against a fixed root:
- Authorization: the recipient's EIP-712 signature, whoever submits it
- Membership: a Merkle proof of (recipient, amount)
- Uniqueness: the claim ledger, marked before the asset moves

Critical Invariants:
- Each recipient is paid at most once
- A rejected or failed claim leaves no trace
- The root, asset and domain never change after initialization
"""

from merkledrop.distributor.engine import ClaimListener, MerkleDistributor

__all__ = ["MerkleDistributor", "ClaimListener"]
