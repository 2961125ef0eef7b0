"""
Merkle proof retrieval with a local fallback.

Fast path: ask the coordinator (5 s timeout).
Slow path: rebuild the global deposit tree from PPDepositExecuted events:

    1. read the deposit count from get_pp_stats
    2. reuse cached commitments when the count has not moved
    3. otherwise page through every deposit event (serially, by continuation token)
    4. sort by block number ascending; commitment = keys[1]
    5. locate the target leaf, build the proof off the event loop
    6. compare the local root with get_global_deposit_root

A root mismatch is reported (root_matches_chain=False) but never blocks the
proof: the contract is the final arbiter at withdrawal time.
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from obelysk_privacy.config import NetworkConfig
from obelysk_privacy.core.errors import (
    ConnectivityError,
    NotFoundError,
    StarknetRpcError,
)
from obelysk_privacy.core.models import CoordinatorProof, MerkleProofResult
from obelysk_privacy.core.node import StarknetNode
from obelysk_privacy.crypto.constants import TREE_DEPTH
from obelysk_privacy.crypto.curve import parse_felt, to_felt_hex
from obelysk_privacy.crypto.merkle import (
    DEFAULT_HASHER,
    MerkleHasher,
    TreeMode,
    build_proof,
    proof_to_contract_format,
    tree_root,
)
from obelysk_privacy.pool.contract import PrivacyPoolsContract
from obelysk_privacy.pool.coordinator import CoordinatorClient

logger = logging.getLogger("obelysk_privacy.merkle_proofs")


class CommitmentCache:
    """
    Ordered deposit commitments per network, plus the in-flight fetch for
    each network so concurrent misses share one event scan.

    One instance can be shared between services.
    """

    def __init__(self) -> None:
        self._commitments: dict[str, list[str]] = {}
        self._inflight: dict[str, asyncio.Task[list[str]]] = {}

    def get(self, network: str, deposit_count: int) -> list[str] | None:
        """Cached commitments, only if they cover exactly deposit_count deposits."""
        cached = self._commitments.get(network)
        if cached is not None and len(cached) == deposit_count:
            return cached
        return None

    def put(self, network: str, commitments: list[str]) -> None:
        self._commitments[network] = commitments

    def invalidate(self, network: str | None = None) -> None:
        if network is None:
            self._commitments.clear()
        else:
            self._commitments.pop(network, None)

    def inflight(self, network: str) -> asyncio.Task[list[str]] | None:
        return self._inflight.get(network)

    def track(self, network: str, task: asyncio.Task[list[str]]) -> None:
        self._inflight[network] = task
        task.add_done_callback(lambda _: self._inflight.pop(network, None))


class MerkleProofService:
    """
    Usage:
        service = MerkleProofService(contract, "sepolia", coordinator=coordinator)
        result = await service.fetch_proof(note.commitment)

    Args:
        contract: PrivacyPools view reader.
        network: Network name; keys the commitment cache.
        coordinator: Optional coordinator client for the fast path.
        cache: Commitment cache; a private one is created if omitted.
        tree_mode: DYNAMIC (on-chain encoding) or FIXED (depth-padded).
        hasher: Node hasher; domain-separated by default.
        chunk_size: starknet_getEvents page size.
        depth: Tree depth, FIXED mode only.
    """

    def __init__(
        self,
        contract: PrivacyPoolsContract,
        network: str = "sepolia",
        coordinator: CoordinatorClient | None = None,
        cache: CommitmentCache | None = None,
        tree_mode: TreeMode = TreeMode.DYNAMIC,
        hasher: MerkleHasher = DEFAULT_HASHER,
        chunk_size: int = 1000,
        depth: int = TREE_DEPTH,
    ) -> None:
        self.contract = contract
        self.network = network
        self.coordinator = coordinator
        self.cache = cache if cache is not None else CommitmentCache()
        self.tree_mode = tree_mode
        self.hasher = hasher
        self.chunk_size = chunk_size
        self.depth = depth
        self._last_root: int | None = None

    @classmethod
    def from_config(
        cls,
        config: NetworkConfig,
        use_coordinator: bool = True,
        cache: CommitmentCache | None = None,
        rpc_transport: httpx.AsyncBaseTransport | None = None,
        coordinator_transport: httpx.AsyncBaseTransport | None = None,
    ) -> MerkleProofService:
        """
        Wire node, contract and (optionally) coordinator from a NetworkConfig.

        The coordinator itself serves proofs, so it builds its service with
        use_coordinator=False. Close with aclose().

        Raises:
            ValidationError: If Privacy Pools is not deployed on the network.
        """
        address = config.require_privacy_pools()
        node = StarknetNode(config.rpc_url, transport=rpc_transport)
        coordinator = None
        if use_coordinator:
            coordinator = CoordinatorClient(
                config.coordinator_url,
                timeout=config.coordinator_timeout,
                transport=coordinator_transport,
            )
        return cls(
            PrivacyPoolsContract(node, address),
            network=config.name,
            coordinator=coordinator,
            cache=cache,
            chunk_size=config.event_chunk_size,
        )

    async def aclose(self) -> None:
        await self.contract.node.aclose()
        if self.coordinator is not None:
            await self.coordinator.aclose()

    # ------------------------------------------------------------------
    # Proofs
    # ------------------------------------------------------------------

    async def fetch_proof(self, commitment: str) -> MerkleProofResult:
        """
        Coordinator first, local reconstruction if it is down or does not
        know the commitment.

        Raises:
            NotFoundError: If the commitment is not in the on-chain deposit set.
            ConnectivityError: If the chain itself cannot be reached.
        """
        if self.coordinator is not None:
            try:
                proof = await self.coordinator.get_proof(commitment)
            except ConnectivityError as err:
                logger.warning(f"Coordinator unavailable, building local Merkle tree: {err}")
            else:
                if proof is None:
                    logger.info("Coordinator does not know this commitment, building local Merkle tree")
                elif len(proof.siblings) != len(proof.path_indices):
                    logger.warning("Coordinator proof is malformed, building local Merkle tree")
                else:
                    logger.info("Using coordinator proof")
                    return _from_coordinator(proof)
        return await self.fetch_proof_local(commitment)

    async def fetch_proof_local(self, commitment: str) -> MerkleProofResult:
        """
        Rebuild the deposit tree from chain events and prove commitment.

        Raises:
            ValidationError: If commitment is not a felt.
            NotFoundError: If no deposits exist or the commitment is not among them.
        """
        target = parse_felt(commitment)
        commitments = await self.fetch_deposit_commitments()
        if not commitments:
            raise NotFoundError("No deposits found on chain")

        leaves = [int(c, 16) for c in commitments]
        try:
            index = leaves.index(target)
        except ValueError:
            raise NotFoundError(
                f"Commitment {to_felt_hex(target)} not found in {len(leaves)} on-chain deposits "
                "(deposit may not be indexed yet)"
            ) from None
        logger.info(f"Found commitment at index {index} of {len(leaves)}")

        proof = await asyncio.to_thread(build_proof, index, leaves, self.tree_mode, self.hasher, self.depth)
        self._last_root = proof.root
        formatted = proof_to_contract_format(proof)

        return MerkleProofResult(
            siblings=formatted["pathElements"],
            path_indices=formatted["pathIndices"],
            root=formatted["root"],
            leaf_index=formatted["leafIndex"],
            source="local",
            tree_size=len(leaves),
            root_matches_chain=await self._check_root(proof.root),
        )

    # ------------------------------------------------------------------
    # Deposit commitments
    # ------------------------------------------------------------------

    async def fetch_deposit_commitments(self) -> list[str]:
        """All deposit commitments in insertion order, cached per network."""
        count = await self.contract.get_deposit_count()
        cached = self.cache.get(self.network, count)
        if cached is not None:
            logger.info(f"Using cached commitments ({len(cached)} deposits)")
            return cached

        task = self.cache.inflight(self.network)
        if task is None:
            task = asyncio.ensure_future(self._load_commitments(count))
            self.cache.track(self.network, task)
        return await asyncio.shield(task)

    async def _load_commitments(self, count: int) -> list[str]:
        logger.info(f"Fetching deposit events from chain ({count} total deposits)")
        events = await self.contract.fetch_deposit_events(chunk_size=self.chunk_size)
        # stable: same-block events keep the node's order
        events.sort(key=lambda e: e.block_number)
        commitments = [e.commitment for e in events if e.commitment]
        if len(commitments) != count:
            logger.warning(
                f"Event scan found {len(commitments)} commitments but get_pp_stats reports {count}"
            )
        self.cache.put(self.network, commitments)
        return commitments

    def invalidate_cache(self) -> None:
        """Drop cached commitments for this network, e.g. after a new deposit."""
        self.cache.invalidate(self.network)
        self._last_root = None

    # ------------------------------------------------------------------
    # Consistency
    # ------------------------------------------------------------------

    async def verify_root_against_chain(self) -> bool:
        """
        Compare the local root (last built, or rebuilt from events) with
        get_global_deposit_root.

        Raises:
            ConnectivityError, StarknetRpcError: If the chain cannot be read.
        """
        root = self._last_root
        if root is None:
            leaves = [int(c, 16) for c in await self.fetch_deposit_commitments()]
            root = await asyncio.to_thread(tree_root, leaves, self.tree_mode, self.hasher, self.depth)
            self._last_root = root
        return root == await self.contract.get_global_deposit_root()

    async def _check_root(self, local_root: int) -> bool | None:
        try:
            on_chain = await self.contract.get_global_deposit_root()
        except (ConnectivityError, StarknetRpcError) as err:
            logger.warning(f"Could not validate root against chain: {err}")
            return None
        if on_chain != local_root:
            logger.warning(
                f"Root mismatch: local {to_felt_hex(local_root)}, on-chain {to_felt_hex(on_chain)}. "
                "Tree may be stale; the contract will validate."
            )
            return False
        logger.info("Root validated against on-chain state")
        return True


def _from_coordinator(proof: CoordinatorProof) -> MerkleProofResult:
    return MerkleProofResult(
        siblings=proof.siblings,
        path_indices=proof.path_indices,
        root=proof.effective_root,
        leaf_index=proof.leaf_index,
        source="coordinator",
    )
