"""
API module for the privacy pool.

Provides the FastAPI app serving Merkle proofs from the local deposit tree.
"""

from obelysk_privacy.api.models import PoolStatsResponse, ProofResponse

__all__ = [
    "PoolStatsResponse",
    "ProofResponse",
]
