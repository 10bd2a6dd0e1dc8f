"""
FastAPI application entry point.
Configures middleware, routers, and lifecycle events.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from datatrust.chain.runtime import LedgerRuntime
from datatrust.core.config import get_settings
from datatrust.core.errors import LedgerError
from datatrust.core.logging import configure_logging, get_logger
from datatrust.core.middleware import RequestContextMiddleware
from datatrust.modules.access.requests import AccessRequestStore
from datatrust.modules.access.router import router as access_router
from datatrust.modules.audit.router import router as audit_router
from datatrust.modules.data.router import router as data_router
from datatrust.modules.institutions.router import router as institutions_router

# Configure logging before anything else
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Builds the chain runtime once; missing configuration or broken ABI
    artifacts abort startup.
    """
    settings = get_settings()
    logger.info(
        "starting_application",
        environment=settings.environment,
        version=settings.version,
    )

    app.state.ledger = LedgerRuntime.from_settings(settings)
    app.state.access_requests = AccessRequestStore()
    logger.info("ledger_initialized")

    yield

    await app.state.ledger.close()
    logger.info("application_shutdown_complete")


def create_application() -> FastAPI:
    """
    Application factory function.

    Creates and configures the FastAPI application with all middleware,
    routers, and settings applied.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.project_name,
        version=settings.version,
        openapi_url=f"{settings.api_v1_prefix}/openapi.json",
        docs_url=f"{settings.api_v1_prefix}/docs",
        redoc_url=f"{settings.api_v1_prefix}/redoc",
        lifespan=lifespan,
    )

    # ==========================================================================
    # Middleware Configuration
    # ==========================================================================

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Content-Type", "Accept", "Origin", "X-Request-ID", "X-Wallet-Address"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    # ==========================================================================
    # Exception Handlers
    # ==========================================================================

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        # Write bodies carry private keys, so submitted values are never echoed.
        errors = [
            {key: value for key, value in error.items() if key not in ("input", "ctx")}
            for error in exc.errors()
        ]
        logger.info(
            "request_validation_failed",
            path=request.url.path,
            fields=[".".join(str(part) for part in error["loc"]) for error in errors],
        )
        return JSONResponse(status_code=422, content={"detail": jsonable_encoder(errors)})

    # ==========================================================================
    # Router Registration
    # ==========================================================================

    @app.get("/health", tags=["Health"])
    async def health_check(request: Request) -> dict[str, object]:
        checks: dict[str, str] = {}
        latest_block: int | None = None

        ledger: LedgerRuntime | None = getattr(request.app.state, "ledger", None)
        if ledger is None:
            checks["chain"] = "unavailable"
        else:
            try:
                latest_block = await ledger.client.block_number()
                checks["chain"] = "ok"
            except LedgerError as exc:
                logger.warning("health_chain_probe_failed", error=exc.kind)
                checks["chain"] = "unavailable"

        overall = "healthy" if all(v == "ok" for v in checks.values()) else "degraded"
        return {
            "status": overall,
            "version": settings.version,
            "checks": checks,
            "latest_block": latest_block,
        }

    app.include_router(
        institutions_router,
        prefix=f"{settings.api_v1_prefix}/institutions",
        tags=["Institutions"],
    )
    app.include_router(
        data_router,
        prefix=f"{settings.api_v1_prefix}/data",
        tags=["Data Records"],
    )
    app.include_router(
        access_router,
        prefix=f"{settings.api_v1_prefix}/access",
        tags=["Access Control"],
    )
    app.include_router(
        audit_router,
        prefix=f"{settings.api_v1_prefix}/audit",
        tags=["Audit Trail"],
    )

    return app


# Application instance
app = create_application()
