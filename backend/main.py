# backend/main.py
"""
WireGuard Peer Manager - Main Application
FastAPI application entry point
"""

import uvicorn
import logging
from datetime import datetime
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from api.v1 import peers
from config import Settings, get_settings
from core.exceptions import PeerManagerError
from core.ipam import AddressAllocator
from core.key_store import KeyCustodyStore
from core.keygen import KeyGenerator
from core.peer_service import PeerProvisioner
from core.reconciler import Reconciler
from core.router_client import RouterClient
from database.session import Database
from schemas.base import HealthResponse, ErrorResponse

logger = logging.getLogger(__name__)


def build_provisioner(settings: Settings, router: RouterClient, database: Database) -> PeerProvisioner:
    """Wire the core components together from one settings object"""
    key_store = KeyCustodyStore(database)
    return PeerProvisioner(
        settings=settings,
        router=router,
        key_store=key_store,
        keygen=KeyGenerator.from_settings(settings),
        allocator=AddressAllocator.from_settings(router, settings),
        reconciler=Reconciler(router, key_store),
    )


def _error_response(status_code: int, error: str, error_code: str, details: Optional[dict] = None) -> JSONResponse:
    body = ErrorResponse(error=error, error_code=error_code, details=details)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def create_app(
    settings: Optional[Settings] = None,
    provisioner: Optional[PeerProvisioner] = None,
    database: Optional[Database] = None,
) -> FastAPI:
    """
    Build the FastAPI application

    When provisioner is given it is used as is (tests); otherwise the
    router client and database are built from settings at startup.
    """
    settings = settings or get_settings()

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan events
        - Startup: Initialize database, wire components
        - Shutdown: Close router client and database
        """
        logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
        logger.info(f"Environment: {settings.ENV}")

        router_client = None
        if app.state.provisioner is None:
            app.state.database = app.state.database or Database.from_settings(settings)
            router_client = RouterClient.from_settings(settings)
            app.state.provisioner = build_provisioner(settings, router_client, app.state.database)
            app.state.router_client = router_client

        if app.state.database is not None:
            app.state.database.init_db()
        app.state.startup_time = datetime.utcnow()

        logger.info("Application started successfully")

        yield

        logger.info("Shutting down application")
        if router_client is not None:
            await router_client.close()
            app.state.database.dispose()

    app = FastAPI(
        title=settings.APP_NAME,
        description="""
    WireGuard Peer Manager API

    Provisions WireGuard peers on a MikroTik router and keeps their private
    keys in a local custody store:
    - Create, update, regenerate, toggle and delete peers
    - Download client configs
    - Remove custody records whose router peer disappeared
    """,
        version=settings.APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan
    )

    app.state.settings = settings
    app.state.provisioner = provisioner
    app.state.database = database
    app.state.router_client = None
    app.state.startup_time = None

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # === Exception Handlers ===

    @app.exception_handler(PeerManagerError)
    async def peer_manager_exception_handler(request: Request, exc: PeerManagerError):
        """Map core errors to their HTTP status"""
        if exc.status_code >= 500:
            logger.error(f"{exc.error_code}: {exc.message}")
        return _error_response(exc.status_code, exc.message, exc.error_code, exc.details or None)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle Pydantic validation errors"""
        errors = []
        for error in exc.errors():
            errors.append({
                "field": ".".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
                "type": error["type"]
            })

        return _error_response(
            status.HTTP_400_BAD_REQUEST,
            "Validation error",
            "VALIDATION_ERROR",
            {"errors": errors},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions"""
        logger.exception(f"Unexpected error: {exc}")

        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal server error",
            "INTERNAL_ERROR",
            {"message": str(exc)} if settings.DEBUG else None,
        )

    # === Include Routers ===

    app.include_router(
        peers.router,
        prefix=settings.API_PREFIX,
        tags=["Peers"]
    )

    # === Root Endpoints ===

    @app.get(
        "/health",
        response_model=HealthResponse,
        summary="Health check",
        description="Check database and router connectivity"
    )
    async def health_check():
        """Health check endpoint for monitoring"""
        database_ = app.state.database
        db_status = "connected" if database_ is None or database_.check_connection() else "disconnected"

        router_client = app.state.router_client
        router_status = "unknown"
        if router_client is not None:
            router_status = "connected" if await router_client.check_connection() else "disconnected"

        uptime = None
        if app.state.startup_time:
            uptime = (datetime.utcnow() - app.state.startup_time).total_seconds()

        return HealthResponse(
            status="healthy" if db_status == "connected" else "unhealthy",
            version=settings.APP_VERSION,
            uptime_seconds=uptime,
            database=db_status,
            router=router_status,
        )

    return app


if __name__ == "__main__":
    settings = get_settings()

    uvicorn.run(
        "main:create_app",
        factory=True,
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.is_development,
        log_level=settings.LOG_LEVEL.lower()
    )
