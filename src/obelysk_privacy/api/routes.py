import logging

from fastapi import APIRouter, HTTPException, Request

from obelysk_privacy.api.models import PoolStatsResponse, ProofResponse
from obelysk_privacy.core.errors import ConnectivityError, NotFoundError, StarknetRpcError
from obelysk_privacy.pool.merkle_proofs import MerkleProofService

logger = logging.getLogger("obelysk_privacy.api")

router = APIRouter(prefix="/api/privacy", tags=["Privacy Pool"])


def get_proof_service(request: Request) -> MerkleProofService:
    """Dependency to retrieve the initialized MerkleProofService from app state."""
    service = getattr(request.app.state, "proof_service", None)
    if not service:
        raise HTTPException(status_code=500, detail="proof service not initialized")
    return service


@router.get("/proof/{commitment}", response_model=ProofResponse)
async def get_proof(request: Request, commitment: str):
    """
    Merkle inclusion proof for a deposit commitment.

    Built from on-chain deposit events. Unknown commitments return
    `found: false` rather than an error so clients can poll.
    """
    service = get_proof_service(request)
    try:
        result = await service.fetch_proof_local(commitment)
    except NotFoundError as err:
        logger.info(f"Proof lookup miss: {err}")
        return ProofResponse(found=False)
    except (ConnectivityError, StarknetRpcError) as err:
        raise HTTPException(status_code=503, detail=str(err)) from err

    return ProofResponse(
        found=True,
        siblings=result.siblings,
        path_indices=result.path_indices,
        root=result.root,
        current_root=result.root,
        leaf_index=result.leaf_index,
        tree_size=result.tree_size,
    )


@router.get("/stats", response_model=PoolStatsResponse)
async def get_stats(request: Request):
    """Deposit and withdrawal counters from the PrivacyPools contract."""
    service = get_proof_service(request)
    try:
        stats = await service.contract.get_pp_stats()
    except (ConnectivityError, StarknetRpcError) as err:
        raise HTTPException(status_code=503, detail=str(err)) from err
    return PoolStatsResponse(
        total_deposits=stats.total_deposits,
        total_withdrawals=stats.total_withdrawals,
        total_volume_deposited=str(stats.total_volume_deposited),
        total_volume_withdrawn=str(stats.total_volume_withdrawn),
    )


@router.post("/cache/invalidate")
async def invalidate_cache(request: Request):
    """Force the next proof lookup to rescan deposit events."""
    get_proof_service(request).invalidate_cache()
    return {"status": "ok"}
