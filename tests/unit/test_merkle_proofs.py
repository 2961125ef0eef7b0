"""
Unit tests for obelysk_privacy.pool.merkle_proofs — coordinator fast path and
local tree reconstruction from deposit events.

The chain and coordinator are in-memory fakes behind httpx.MockTransport
(see fakes.py); request counters stand in for network fetches.
"""

import asyncio
import logging

import httpx
import pytest

from obelysk_privacy.config import NetworkConfig
from obelysk_privacy.core.errors import NotFoundError, ValidationError
from obelysk_privacy.crypto.merkle import MerkleProof, TreeMode, verify_merkle_proof
from obelysk_privacy.pool.merkle_proofs import CommitmentCache, MerkleProofService

from fakes import (
    COMMITMENTS,
    COORDINATOR_URL,
    POOL_ADDRESS,
    RPC_URL,
    FakeChain,
    FakeCoordinator,
    make_contract,
    make_coordinator,
)


def _as_proof(result, leaf):
    return MerkleProof(
        leaf=int(leaf, 16),
        leaf_index=result.leaf_index,
        path_elements=[int(s, 16) for s in result.siblings],
        path_indices=result.path_indices,
        root=int(result.root, 16),
    )


# ==============================================================================
# Local reconstruction
# ==============================================================================


class TestLocalProof:

    async def test_proof_reproduces_chain_root(self, chain, contract):
        service = MerkleProofService(contract)
        result = await service.fetch_proof_local("0x3333")
        assert result.source == "local"
        assert result.leaf_index == 2
        assert result.tree_size == 5
        assert int(result.root, 16) == chain.local_root()
        assert result.root_matches_chain is True
        assert verify_merkle_proof(_as_proof(result, "0x3333"))

    async def test_every_commitment_proves(self, contract):
        service = MerkleProofService(contract)
        for i, commitment in enumerate(COMMITMENTS):
            result = await service.fetch_proof_local(commitment)
            assert result.leaf_index == i
            assert verify_merkle_proof(_as_proof(result, commitment))

    async def test_integer_normalized_lookup(self, contract):
        service = MerkleProofService(contract)
        padded = "0x" + "0" * 60 + "3333"
        result = await service.fetch_proof_local(padded)
        assert result.leaf_index == 2
        decimal = await service.fetch_proof_local(str(0x3333))
        assert decimal.leaf_index == 2

    async def test_fixed_mode(self):
        chain = FakeChain(COMMITMENTS)
        chain.root = chain.local_root(TreeMode.FIXED)
        service = MerkleProofService(make_contract(chain), tree_mode=TreeMode.FIXED)
        result = await service.fetch_proof_local("0x1111")
        assert len(result.siblings) == 20
        assert result.root_matches_chain is True

    async def test_events_sorted_by_block(self):
        # node returns newest first; insertion order is by block
        chain = FakeChain(["0xc", "0xb", "0xa"], blocks=[30, 20, 10])
        service = MerkleProofService(make_contract(chain))
        assert await service.fetch_deposit_commitments() == ["0xa", "0xb", "0xc"]
        result = await service.fetch_proof_local("0xa")
        assert result.leaf_index == 0
        assert result.root_matches_chain is True

    async def test_same_block_keeps_node_order(self):
        chain = FakeChain(["0x1", "0x2", "0x3"], blocks=[5, 5, 4])
        service = MerkleProofService(make_contract(chain))
        assert await service.fetch_deposit_commitments() == ["0x3", "0x1", "0x2"]

    async def test_pagination_follows_continuation(self, chain, contract):
        service = MerkleProofService(contract, chunk_size=2)
        await service.fetch_deposit_commitments()
        assert chain.calls["starknet_getEvents"] == 3
        assert [f.get("continuation_token") for f in chain.filters] == [None, "2", "4"]
        assert all(f["chunk_size"] == 2 for f in chain.filters)

    async def test_unknown_commitment(self, contract):
        service = MerkleProofService(contract)
        with pytest.raises(NotFoundError, match="not found"):
            await service.fetch_proof_local("0x9999")

    async def test_no_deposits(self):
        service = MerkleProofService(make_contract(FakeChain([])))
        with pytest.raises(NotFoundError, match="No deposits"):
            await service.fetch_proof_local("0x1")

    async def test_invalid_commitment(self, contract):
        service = MerkleProofService(contract)
        with pytest.raises(ValidationError):
            await service.fetch_proof_local("not-a-felt")


# ==============================================================================
# Root consistency
# ==============================================================================


class TestRootConsistency:

    async def test_mismatch_is_reported_not_raised(self, chain, contract, caplog):
        chain.root = 0xdead
        service = MerkleProofService(contract)
        with caplog.at_level(logging.WARNING, logger="obelysk_privacy.merkle_proofs"):
            result = await service.fetch_proof_local("0x1111")
        assert result.root_matches_chain is False
        assert "Root mismatch" in caplog.text

    async def test_failed_root_check_is_unknown(self, chain, contract, caplog):
        chain.fail_root = True
        service = MerkleProofService(contract)
        with caplog.at_level(logging.WARNING, logger="obelysk_privacy.merkle_proofs"):
            result = await service.fetch_proof_local("0x1111")
        assert result.root_matches_chain is None
        assert "Could not validate root" in caplog.text

    async def test_verify_root_against_chain(self, chain, contract):
        service = MerkleProofService(contract)
        assert await service.verify_root_against_chain() is True
        chain.root = 0xdead
        assert await service.verify_root_against_chain() is False


# ==============================================================================
# Cache
# ==============================================================================


class TestCommitmentCache:

    async def test_unchanged_count_is_cache_hit(self, chain, contract):
        service = MerkleProofService(contract)
        first = await service.fetch_proof_local("0x2222")
        fetches = chain.calls["starknet_getEvents"]
        second = await service.fetch_proof_local("0x2222")
        assert chain.calls["starknet_getEvents"] == fetches
        assert second.root == first.root

    async def test_new_deposit_refetches(self, chain, contract):
        service = MerkleProofService(contract)
        await service.fetch_deposit_commitments()
        fetches = chain.calls["starknet_getEvents"]
        chain.add_deposit("0x6666", 200)
        commitments = await service.fetch_deposit_commitments()
        assert commitments[-1] == "0x6666"
        assert chain.calls["starknet_getEvents"] > fetches

    async def test_invalidate_forces_refetch(self, chain, contract):
        service = MerkleProofService(contract)
        await service.fetch_deposit_commitments()
        fetches = chain.calls["starknet_getEvents"]
        service.invalidate_cache()
        await service.fetch_deposit_commitments()
        assert chain.calls["starknet_getEvents"] == 2 * fetches

    async def test_cache_is_per_network(self, chain, contract):
        cache = CommitmentCache()
        sepolia = MerkleProofService(contract, network="sepolia", cache=cache)
        devnet = MerkleProofService(contract, network="devnet", cache=cache)
        await sepolia.fetch_deposit_commitments()
        fetches = chain.calls["starknet_getEvents"]
        await devnet.fetch_deposit_commitments()
        assert chain.calls["starknet_getEvents"] == 2 * fetches
        devnet.invalidate_cache()
        assert cache.get("sepolia", len(COMMITMENTS)) is not None
        assert cache.get("devnet", len(COMMITMENTS)) is None

    async def test_shared_cache_between_services(self, chain, contract):
        cache = CommitmentCache()
        await MerkleProofService(contract, cache=cache).fetch_deposit_commitments()
        fetches = chain.calls["starknet_getEvents"]
        await MerkleProofService(contract, cache=cache).fetch_deposit_commitments()
        assert chain.calls["starknet_getEvents"] == fetches

    async def test_concurrent_misses_share_one_scan(self, chain, contract):
        service = MerkleProofService(contract)
        results = await asyncio.gather(
            service.fetch_proof_local("0x1111"),
            service.fetch_proof_local("0x5555"),
            service.fetch_proof_local("0x3333"),
        )
        assert [r.leaf_index for r in results] == [0, 4, 2]
        assert chain.calls["starknet_getEvents"] == 3  # one scan of 3 pages


# ==============================================================================
# Coordinator fast path
# ==============================================================================


class TestFastPath:

    async def test_coordinator_proof_used(self, chain, contract):
        coordinator = FakeCoordinator(
            {"0x1111": {"siblings": ["0x2222"], "path_indices": [0], "root": "0xabc", "leaf_index": 0}}
        )
        service = MerkleProofService(contract, coordinator=make_coordinator(coordinator))
        result = await service.fetch_proof("0x1111")
        assert result.source == "coordinator"
        assert result.root == "0xabc"
        assert chain.calls["starknet_getEvents"] == 0

    async def test_current_root_preferred(self, contract):
        coordinator = FakeCoordinator(
            {"0x1111": {"siblings": [], "path_indices": [], "root": "0x1", "current_root": "0x2", "leaf_index": 0}}
        )
        service = MerkleProofService(contract, coordinator=make_coordinator(coordinator))
        assert (await service.fetch_proof("0x1111")).root == "0x2"

    async def test_coordinator_down_falls_back(self, chain, contract, caplog):
        coordinator = FakeCoordinator(down=True)
        service = MerkleProofService(contract, coordinator=make_coordinator(coordinator))
        with caplog.at_level(logging.WARNING, logger="obelysk_privacy.merkle_proofs"):
            result = await service.fetch_proof("0x4444")
        assert result.source == "local"
        assert result.leaf_index == 3
        assert coordinator.requests == 1
        assert "Coordinator unavailable" in caplog.text

    async def test_coordinator_timeout_falls_back(self, contract):
        coordinator = FakeCoordinator(slow=True)
        service = MerkleProofService(contract, coordinator=make_coordinator(coordinator))
        result = await service.fetch_proof("0x2222")
        assert result.source == "local"
        assert result.leaf_index == 1
        assert coordinator.requests == 1

    async def test_coordinator_miss_falls_back(self, contract):
        service = MerkleProofService(contract, coordinator=make_coordinator(FakeCoordinator()))
        result = await service.fetch_proof("0x4444")
        assert result.source == "local"

    async def test_malformed_coordinator_proof_falls_back(self, contract):
        coordinator = FakeCoordinator(
            {"0x1111": {"siblings": ["0x2"], "path_indices": [], "root": "0x1", "leaf_index": 0}}
        )
        service = MerkleProofService(contract, coordinator=make_coordinator(coordinator))
        assert (await service.fetch_proof("0x1111")).source == "local"

    async def test_no_coordinator_goes_local(self, contract):
        result = await MerkleProofService(contract).fetch_proof("0x5555")
        assert result.source == "local"
        assert result.leaf_index == 4

    async def test_unknown_everywhere(self, contract):
        service = MerkleProofService(contract, coordinator=make_coordinator(FakeCoordinator()))
        with pytest.raises(NotFoundError):
            await service.fetch_proof("0x9999")


# ==============================================================================
# Construction from NetworkConfig
# ==============================================================================


def _config(**overrides):
    values = dict(
        name="devnet",
        chain_id="0x1",
        rpc_url=RPC_URL,
        privacy_pools_address=POOL_ADDRESS,
        coordinator_url=COORDINATOR_URL,
        coordinator_timeout=2.5,
        event_chunk_size=2,
    )
    values.update(overrides)
    return NetworkConfig(**values)


class TestFromConfig:

    async def test_wires_coordinator_from_config(self, chain):
        coordinator = FakeCoordinator(
            {"0x1111": {"siblings": [], "path_indices": [], "root": "0xabc", "leaf_index": 0}}
        )
        service = MerkleProofService.from_config(
            _config(),
            rpc_transport=httpx.MockTransport(chain.handler),
            coordinator_transport=httpx.MockTransport(coordinator.handler),
        )
        assert service.network == "devnet"
        assert service.chunk_size == 2
        assert service.contract.address == POOL_ADDRESS
        assert service.coordinator.base_url == COORDINATOR_URL
        assert service.coordinator._client.timeout == httpx.Timeout(2.5)

        assert (await service.fetch_proof("0x1111")).source == "coordinator"
        local = await service.fetch_proof("0x4444")
        assert local.source == "local"
        assert local.root_matches_chain is True
        await service.aclose()

    async def test_without_coordinator(self, chain):
        service = MerkleProofService.from_config(
            _config(), use_coordinator=False, rpc_transport=httpx.MockTransport(chain.handler)
        )
        assert service.coordinator is None
        assert (await service.fetch_proof("0x5555")).source == "local"
        await service.aclose()

    def test_undeployed_network(self):
        with pytest.raises(ValidationError, match="not deployed"):
            MerkleProofService.from_config(_config(privacy_pools_address="0x0"))
