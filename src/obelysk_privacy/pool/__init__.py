"""
Privacy pool chain access and the Merkle proof fallback service.
"""
from .contract import PrivacyPoolsContract
from .coordinator import CoordinatorClient
from .merkle_proofs import CommitmentCache, MerkleProofService

__all__ = [
    "CommitmentCache",
    "CoordinatorClient",
    "MerkleProofService",
    "PrivacyPoolsContract",
]
