"""
StarknetNode: async JSON-RPC client for a Starknet full node.

Only the handful of methods the privacy pool needs: starknet_call,
starknet_getEvents and starknet_blockNumber.
"""

from __future__ import annotations

import itertools
import logging
from typing import Any

import httpx

from obelysk_privacy.core.errors import ConnectivityError, StarknetRpcError
from obelysk_privacy.core.models import DepositEvent, EventsPage
from obelysk_privacy.crypto.curve import to_felt_hex
from obelysk_privacy.crypto.poseidon import get_selector_from_name

logger = logging.getLogger("obelysk_privacy.node")


class StarknetNode:
    """
    Async client for a Starknet JSON-RPC endpoint.

    Usage:
        async with StarknetNode(rpc_url) as node:
            height = await node.get_block_number()

    Tests inject an httpx.MockTransport via `transport`.
    """

    def __init__(
        self,
        rpc_url: str,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.rpc_url = rpc_url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            headers={"Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )
        self._ids = itertools.count(1)

    async def __aenter__(self) -> StarknetNode:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Chain reads
    # ------------------------------------------------------------------

    async def get_block_number(self) -> int:
        return int(await self._rpc("starknet_blockNumber", []))

    async def call(
        self,
        contract_address: str,
        function_name: str,
        calldata: list[int] | None = None,
        block_id: str = "latest",
    ) -> list[int]:
        """
        Call a view function and return its raw felt outputs.

        Raises:
            StarknetRpcError: If the node rejects the call.
            ConnectivityError: If the node cannot be reached.
        """
        params = {
            "request": {
                "contract_address": contract_address,
                "entry_point_selector": to_felt_hex(get_selector_from_name(function_name)),
                "calldata": [to_felt_hex(c) for c in calldata or []],
            },
            "block_id": block_id,
        }
        result = await self._rpc("starknet_call", params)
        return [int(felt, 16) for felt in result]

    async def get_events(
        self,
        address: str,
        keys: list[list[str]] | None = None,
        from_block: int = 0,
        to_block: int | str = "latest",
        chunk_size: int = 1000,
        continuation_token: str | None = None,
    ) -> EventsPage:
        """Fetch one page of events emitted by `address`."""
        event_filter: dict[str, Any] = {
            "from_block": {"block_number": from_block},
            "to_block": to_block if to_block == "latest" else {"block_number": to_block},
            "address": to_felt_hex(int(address, 16)),
            "chunk_size": chunk_size,
        }
        if keys:
            event_filter["keys"] = keys
        if continuation_token:
            event_filter["continuation_token"] = continuation_token

        result = await self._rpc("starknet_getEvents", {"filter": event_filter})
        return EventsPage(
            events=[DepositEvent.model_validate(e) for e in result.get("events", [])],
            continuation_token=result.get("continuation_token"),
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _rpc(self, method: str, params: Any) -> Any:
        payload = {"jsonrpc": "2.0", "method": method, "params": params, "id": next(self._ids)}
        try:
            response = await self._client.post(self.rpc_url, json=payload)
        except httpx.HTTPError as err:
            raise ConnectivityError(f"Starknet RPC unreachable ({method}): {err}") from err

        if response.status_code != 200:
            raise ConnectivityError(
                f"Starknet RPC HTTP {response.status_code} for {method}: {response.text}"
            )
        try:
            body = response.json()
        except ValueError as err:
            raise ConnectivityError(f"Starknet RPC returned invalid JSON for {method}") from err
        if "error" in body:
            error = body["error"]
            raise StarknetRpcError(method, error.get("message", str(error)), error.get("code"))
        logger.debug(f"{method} ok")
        return body["result"]
