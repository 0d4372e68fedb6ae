"""
FastAPI Application for the Returns & Exchanges Orchestrator.

Exposes quote, return, exchange and resume endpoints for completed sales,
and the bulk defective-item actions, on top of the remote commerce backend.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from api_client import CommerceApiClient, client_manager
from core.data import RemoteCallError
from core.domain import SagaValidationError
from core.orchestration import SagaNotResumableError, StageOrderError
from core.session import SagaInProgressError
from use_cases.defects import (
    BulkDefectRequest,
    BulkDisposalCoordinator,
    BulkVendorReturnCoordinator,
    DefectService,
)
from use_cases.returns import (
    CancelRequest,
    ExchangeSubmission,
    QuoteRequest,
    ReturnsOrchestrator,
    ReturnSubmission,
    SagaResult,
)

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Reduce HTTP client logging verbosity
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

# Global instances
orchestrator: Optional[ReturnsOrchestrator] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - handles startup and shutdown."""
    global orchestrator

    logger.info("Starting Returns & Exchanges Orchestrator...")

    # Open the shared connection pool up front
    client_manager.get_http()
    logger.info(f"Commerce backend: {settings.commerce_api_url}")

    orchestrator = ReturnsOrchestrator()
    logger.info("Returns orchestrator initialized")

    yield

    # Cleanup
    logger.info("Shutting down...")
    await client_manager.close()


# Create FastAPI app
app = FastAPI(
    title="Returns & Exchanges Orchestrator",
    description="Client-driven saga for returns, refunds and exchanges against a remote commerce backend",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc"
)

# CORS middleware for the operator console
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_commerce_client(request: Request) -> CommerceApiClient:
    """Commerce client bound to the caller's bearer token, or the configured one."""
    auth_header = request.headers.get("Authorization", "")
    token = auth_header.replace("Bearer ", "") if auth_header.startswith("Bearer ") else None
    return client_manager.for_token(token)


def get_orchestrator() -> ReturnsOrchestrator:
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Orchestrator is not initialized")
    return orchestrator


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(SagaValidationError)
async def validation_error_handler(request: Request, exc: SagaValidationError):
    return JSONResponse(
        status_code=422,
        content={"detail": str(exc), "errors": [e.to_dict() for e in exc.errors]},
    )


@app.exception_handler(SagaInProgressError)
@app.exception_handler(StageOrderError)
@app.exception_handler(SagaNotResumableError)
async def conflict_handler(request: Request, exc: Exception):
    logger.warning(f"{request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(RemoteCallError)
async def remote_error_handler(request: Request, exc: RemoteCallError):
    return JSONResponse(
        status_code=502,
        content={"detail": exc.message, "upstream_status": exc.status_code},
    )


def _saga_response(orch: ReturnsOrchestrator, result: SagaResult) -> dict:
    return {
        "result": result.to_dict(),
        "status_color": orch.composer.theme.get_status_color(result.status.value),
        "notification": orch.composer.compose_saga_result(result).to_dict(),
    }


# =============================================================================
# ENDPOINTS
# =============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": "1.0.0",
        "use_case": "returns_exchanges",
        "commerce_api_configured": bool(settings.commerce_api_url),
    }


@app.get("/api/orders/{order_id}")
async def get_order(
    order_id: int,
    client: CommerceApiClient = Depends(get_commerce_client),
    orch: ReturnsOrchestrator = Depends(get_orchestrator),
):
    """Order snapshot with its line items."""
    order = await orch.load_order(client, order_id)
    return order.model_dump()


@app.post("/api/orders/{order_id}/cancel")
async def cancel_order(
    order_id: int,
    body: CancelRequest,
    client: CommerceApiClient = Depends(get_commerce_client),
    orch: ReturnsOrchestrator = Depends(get_orchestrator),
):
    return await orch.cancel_order(client, order_id, body.reason)


@app.post("/api/orders/{order_id}/quote")
async def quote(
    order_id: int,
    body: QuoteRequest,
    client: CommerceApiClient = Depends(get_commerce_client),
    orch: ReturnsOrchestrator = Depends(get_orchestrator),
):
    """
    Price a selection and replacement set.

    Nothing is written to the backend; the console calls this on every edit.
    """
    return await orch.quote(client, order_id, body)


@app.post("/api/orders/{order_id}/return")
async def start_return(
    order_id: int,
    body: ReturnSubmission,
    client: CommerceApiClient = Depends(get_commerce_client),
    orch: ReturnsOrchestrator = Depends(get_orchestrator),
):
    result = await orch.start_return(client, order_id, body)
    return _saga_response(orch, result)


@app.post("/api/orders/{order_id}/exchange")
async def start_exchange(
    order_id: int,
    body: ExchangeSubmission,
    client: CommerceApiClient = Depends(get_commerce_client),
    orch: ReturnsOrchestrator = Depends(get_orchestrator),
):
    result = await orch.start_exchange(client, order_id, body)
    return _saga_response(orch, result)


@app.get("/api/sagas/{saga_id}")
async def get_saga(saga_id: str, orch: ReturnsOrchestrator = Depends(get_orchestrator)):
    result = orch.saga_result(saga_id)
    if result is None:
        raise HTTPException(status_code=404, detail=f"Saga {saga_id} not found")
    return _saga_response(orch, result)


@app.post("/api/sagas/{saga_id}/resume")
async def resume_saga(
    saga_id: str,
    client: CommerceApiClient = Depends(get_commerce_client),
    orch: ReturnsOrchestrator = Depends(get_orchestrator),
):
    """Continue a failed saga from the backend's current state."""
    if orch.saga_result(saga_id) is None:
        raise HTTPException(status_code=404, detail=f"Saga {saga_id} not found")
    result = await orch.resume(client, saga_id)
    return _saga_response(orch, result)


@app.post("/api/defects/return-to-vendor")
async def bulk_return_to_vendor(
    body: BulkDefectRequest,
    client: CommerceApiClient = Depends(get_commerce_client),
):
    coordinator = BulkVendorReturnCoordinator(DefectService(client))
    result = await coordinator.run(body)
    return {"result": result.to_dict(), "notification": coordinator.compose(result).to_dict()}


@app.post("/api/defects/dispose")
async def bulk_dispose(
    body: BulkDefectRequest,
    client: CommerceApiClient = Depends(get_commerce_client),
):
    coordinator = BulkDisposalCoordinator(DefectService(client))
    result = await coordinator.run(body)
    return {"result": result.to_dict(), "notification": coordinator.compose(result).to_dict()}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=False,
        log_level=settings.log_level.lower()
    )
