import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from obelysk_privacy.api.routes import router
from obelysk_privacy.config import load_network_config
from obelysk_privacy.pool.merkle_proofs import MerkleProofService

logger = logging.getLogger("obelysk_privacy.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Tests (or an embedding app) may attach their own service before startup
    if getattr(app.state, "proof_service", None) is not None:
        yield
        return

    config = load_network_config()
    # This process is the coordinator, so no coordinator fast path here
    service = MerkleProofService.from_config(config, use_coordinator=False)
    app.state.proof_service = service
    logger.info(f"Serving Merkle proofs for {config.name} ({config.privacy_pools_address})")

    yield
    await service.aclose()
    app.state.proof_service = None


app = FastAPI(
    title="Obelysk Privacy Pool - Merkle Proof API",
    description="Serves deposit-tree inclusion proofs rebuilt from on-chain events",
    version="0.1.0",
    lifespan=lifespan,
)

# Allow CORS for easy frontend integration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(
        status_code=400,
        content={"detail": str(exc)},
    )


@app.get("/health")
async def health_check():
    """Simple health check endpoint."""
    return {"status": "ok"}
