"""
Client for the coordinator's proof endpoint (the fast path).
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from obelysk_privacy.config import DEFAULT_COORDINATOR_TIMEOUT
from obelysk_privacy.core.errors import ConnectivityError
from obelysk_privacy.core.models import CoordinatorProof

logger = logging.getLogger("obelysk_privacy.coordinator")


class CoordinatorClient:
    """
    GET {base_url}/api/privacy/proof/{commitment}

    Usage:
        coordinator = CoordinatorClient("http://localhost:8080")
        proof = await coordinator.get_proof("0x1234")
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_COORDINATOR_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout, transport=transport)

    async def __aenter__(self) -> CoordinatorClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def get_proof(self, commitment: str) -> CoordinatorProof | None:
        """
        Ask the coordinator for a proof.

        Returns:
            The proof, or None when the coordinator does not know the commitment.

        Raises:
            ConnectivityError: On timeout, transport failure, non-2xx status, or
                               an unparseable body.
        """
        url = f"{self.base_url}/api/privacy/proof/{commitment}"
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as err:
            raise ConnectivityError(f"Coordinator unreachable: {err}") from err

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise ConnectivityError(f"Coordinator error {response.status_code}: {response.text}")

        try:
            proof = CoordinatorProof.model_validate(response.json())
        except (ValueError, PydanticValidationError) as err:
            raise ConnectivityError(f"Coordinator returned a malformed proof: {err}") from err

        if not proof.found or proof.effective_root is None or proof.leaf_index is None:
            return None
        return proof
