"""
NRIC Identity Gateway FastAPI Main Application
Entry point for the registrar gateway.
"""

import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from identity_gateway import __version__
from identity_gateway.config import Config, config
from identity_gateway.errors import GatewayError
from identity_gateway.routes import evidence, identity
from identity_gateway.services.ipfs import EvidenceStore
from identity_gateway.services.ledger import LedgerClient
from identity_gateway.services.workflow import IdentityWorkflow

logger = logging.getLogger(__name__)


def build_workflow(settings: Config) -> IdentityWorkflow:
    """Construct the ledger and evidence clients from configuration."""
    if not settings.is_ipfs_configured():
        logger.warning("IPFS credentials missing; evidence uploads will fail")
    return IdentityWorkflow(
        ledger=LedgerClient.from_config(settings),
        evidence_store=EvidenceStore.from_config(settings),
    )


def create_app(workflow: Optional[IdentityWorkflow] = None, settings: Config = config) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        workflow: Pre-built workflow engine; built from settings on startup when omitted
        settings: Configuration used to build the clients
    """
    app = FastAPI(
        title="NRIC Identity Gateway",
        description="Registrar gateway binding NRICs to wallets and recording deaths as soul-bound tokens",
        version=__version__,
    )
    app.state.workflow = workflow

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(evidence.router, tags=["Evidence"])
    app.include_router(identity.router, tags=["Identity"])

    @app.exception_handler(GatewayError)
    async def on_gateway_error(request: Request, exc: GatewayError):
        if exc.status_code >= 500:
            details = getattr(exc, "details", None)
            logger.error(f"{request.method} {request.url.path} failed: {exc.message} {details or ''}".rstrip())
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def on_request_validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request body", "details": jsonable_errors(exc)},
        )

    @app.exception_handler(Exception)
    async def on_unexpected_error(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content={"error": str(exc) or "Internal server error"})

    @app.on_event("startup")
    async def startup_event():
        """Connect the ledger and evidence clients on startup."""
        if app.state.workflow is None:
            app.state.workflow = build_workflow(settings)

    @app.on_event("shutdown")
    async def shutdown_event():
        if app.state.workflow is not None:
            app.state.workflow.evidence_store.close()

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        workflow = app.state.workflow
        return {
            "status": "healthy",
            "service": "NRIC Identity Gateway",
            "version": __version__,
            "ledgerConnected": workflow.ledger.is_connected() if workflow else False,
        }

    return app


def jsonable_errors(exc: RequestValidationError):
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")}
        for error in exc.errors()
    ]


logging.basicConfig(
    level=config.API_LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "identity_gateway.main:app",
        host=config.API_HOST,
        port=config.API_PORT,
        log_level=config.API_LOG_LEVEL,
    )
