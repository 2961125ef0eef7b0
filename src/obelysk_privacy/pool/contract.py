"""
Read-only view of the PrivacyPools contract.

    get_pp_stats()            -> (u64 deposits, u64 withdrawals, u256, u256)
    get_global_deposit_root() -> felt252
    PPDepositExecuted event   keys = [selector, commitment, ...]
"""

from __future__ import annotations

import logging

from obelysk_privacy.core.models import DepositEvent, PoolStats
from obelysk_privacy.core.node import StarknetNode
from obelysk_privacy.crypto.curve import to_felt_hex
from obelysk_privacy.crypto.poseidon import get_selector_from_name

logger = logging.getLogger("obelysk_privacy.contract")

DEPOSIT_EVENT_NAME = "PPDepositExecuted"
DEPOSIT_EVENT_SELECTOR = get_selector_from_name(DEPOSIT_EVENT_NAME)


class PrivacyPoolsContract:
    """
    Args:
        node: Connected StarknetNode.
        address: Deployed PrivacyPools address (see NetworkConfig.require_privacy_pools).
    """

    def __init__(self, node: StarknetNode, address: str) -> None:
        self.node = node
        self.address = address

    async def get_pp_stats(self) -> PoolStats:
        return PoolStats.from_felts(await self.node.call(self.address, "get_pp_stats"))

    async def get_deposit_count(self) -> int:
        stats = await self.get_pp_stats()
        return stats.total_deposits

    async def get_global_deposit_root(self) -> int:
        result = await self.node.call(self.address, "get_global_deposit_root")
        return result[0] if result else 0

    async def is_nullifier_spent(self, nullifier: str) -> bool:
        result = await self.node.call(self.address, "is_pp_nullifier_used", [int(nullifier, 16)])
        return bool(result and result[0])

    async def fetch_deposit_events(self, from_block: int = 0, chunk_size: int = 1000) -> list[DepositEvent]:
        """
        Fetch every PPDepositExecuted event, following continuation tokens
        until the node stops returning one. Pages are requested serially.

        Returns:
            Events in the order the node returned them (callers sort).
        """
        events: list[DepositEvent] = []
        token: str | None = None
        pages = 0
        while True:
            page = await self.node.get_events(
                self.address,
                keys=[[to_felt_hex(DEPOSIT_EVENT_SELECTOR)]],
                from_block=from_block,
                chunk_size=chunk_size,
                continuation_token=token,
            )
            pages += 1
            events.extend(
                e for e in page.events
                if e.keys and int(e.keys[0], 16) == DEPOSIT_EVENT_SELECTOR
            )
            token = page.continuation_token
            if not token:
                break
        logger.info(f"Fetched {len(events)} deposit events in {pages} page(s)")
        return events
