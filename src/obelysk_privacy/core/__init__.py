"""core module init"""
from obelysk_privacy.core.errors import (
    ConnectivityError,
    DecryptionError,
    IntegrityFailure,
    NotFoundError,
    PrivacyPoolError,
    StarknetRpcError,
    ValidationError,
)
from obelysk_privacy.core.models import (
    CoordinatorProof,
    DepositEvent,
    MerkleProofResult,
    PoolStats,
    PrivacyNote,
)
from obelysk_privacy.core.node import StarknetNode

__all__ = [
    "ConnectivityError",
    "CoordinatorProof",
    "DecryptionError",
    "DepositEvent",
    "IntegrityFailure",
    "MerkleProofResult",
    "NotFoundError",
    "PoolStats",
    "PrivacyNote",
    "PrivacyPoolError",
    "StarknetNode",
    "StarknetRpcError",
    "ValidationError",
]
