"""
obelysk-privacy: Python SDK for the Obelysk privacy pool on Starknet.

Usage:
    from obelysk_privacy import MerkleProofService, StarknetNode
    from obelysk_privacy.crypto import commit, encrypt, derive_nullifier
"""

from obelysk_privacy.config import NetworkConfig, load_network_config
from obelysk_privacy.core.node import StarknetNode
from obelysk_privacy.pool.contract import PrivacyPoolsContract
from obelysk_privacy.pool.coordinator import CoordinatorClient
from obelysk_privacy.pool.merkle_proofs import MerkleProofService

__version__ = "0.1.0"
__all__ = [
    "CoordinatorClient",
    "MerkleProofService",
    "NetworkConfig",
    "PrivacyPoolsContract",
    "StarknetNode",
    "load_network_config",
]
