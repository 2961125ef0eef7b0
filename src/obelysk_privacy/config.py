"""
Network configuration for the privacy pool client.

Built-in table for devnet / sepolia / mainnet, overridable from the
environment:

    OBELYSK_NETWORK        network name (default: sepolia)
    STARKNET_RPC_URL       JSON-RPC endpoint
    PRIVACY_POOLS_ADDRESS  PrivacyPools contract address
    COORDINATOR_URL        coordinator API base URL
    COORDINATOR_TIMEOUT    coordinator request timeout, seconds (default: 5)
    EVENT_CHUNK_SIZE       starknet_getEvents page size (default: 1000)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace

from obelysk_privacy.core.errors import ValidationError

DEFAULT_NETWORK = "sepolia"
DEFAULT_COORDINATOR_URL = "http://localhost:8080"
DEFAULT_COORDINATOR_TIMEOUT = 5.0
DEFAULT_EVENT_CHUNK_SIZE = 1000

UNDEPLOYED_ADDRESS = "0x0"


@dataclass(frozen=True)
class NetworkConfig:
    name: str
    chain_id: str
    rpc_url: str
    privacy_pools_address: str = UNDEPLOYED_ADDRESS
    coordinator_url: str = DEFAULT_COORDINATOR_URL
    coordinator_timeout: float = DEFAULT_COORDINATOR_TIMEOUT
    event_chunk_size: int = DEFAULT_EVENT_CHUNK_SIZE

    @property
    def is_deployed(self) -> bool:
        return bool(self.privacy_pools_address) and int(self.privacy_pools_address, 16) != 0

    def require_privacy_pools(self) -> str:
        """
        Return the PrivacyPools address.

        Raises:
            ValidationError: If the contract is not deployed on this network.
        """
        if not self.is_deployed:
            raise ValidationError(f"Privacy Pools not deployed on {self.name}")
        return self.privacy_pools_address


NETWORK_CONFIG: dict[str, NetworkConfig] = {
    "devnet": NetworkConfig(
        name="devnet",
        chain_id="0x534e5f5345504f4c4941",
        rpc_url="http://localhost:5050",
    ),
    "sepolia": NetworkConfig(
        name="sepolia",
        chain_id="0x534e5f5345504f4c4941",
        rpc_url="https://starknet-sepolia.g.alchemy.com/starknet/version/rpc/v0_7/demo",
        privacy_pools_address="0xd85ad03dcd91a075bef0f4226149cb7e43da795d2c1d33e3227c68bfbb78a7",
    ),
    "mainnet": NetworkConfig(
        name="mainnet",
        chain_id="0x534e5f4d41494e",
        rpc_url="https://starknet-mainnet.public.blastapi.io",
    ),
}


def load_network_config(network: str | None = None) -> NetworkConfig:
    """
    Resolve the config for a network and apply environment overrides.

    Args:
        network: Network name; falls back to OBELYSK_NETWORK, then sepolia.

    Raises:
        ValidationError: On an unknown network or a non-numeric override.
    """
    name = network or os.getenv("OBELYSK_NETWORK", DEFAULT_NETWORK)
    base = NETWORK_CONFIG.get(name)
    if base is None:
        raise ValidationError(f"Unknown network: {name}. Available: {sorted(NETWORK_CONFIG)}")

    try:
        timeout = float(os.getenv("COORDINATOR_TIMEOUT", base.coordinator_timeout))
        chunk_size = int(os.getenv("EVENT_CHUNK_SIZE", base.event_chunk_size))
    except ValueError as err:
        raise ValidationError(f"Invalid numeric setting: {err}") from err

    return replace(
        base,
        rpc_url=os.getenv("STARKNET_RPC_URL", base.rpc_url),
        privacy_pools_address=os.getenv("PRIVACY_POOLS_ADDRESS", base.privacy_pools_address),
        coordinator_url=os.getenv("COORDINATOR_URL", base.coordinator_url).rstrip("/"),
        coordinator_timeout=timeout,
        event_chunk_size=chunk_size,
    )
