"""
Catalog Records - audited record store for product lines and products.

FastAPI application entry point.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.app.core.config import get_settings
from backend.app.core.logging import setup_logging, get_logger
from backend.app.core.errors import RecordServiceError
from backend.app.core.registry import WRITABLE_COLLECTIONS
from backend.app.api import auth, health, records
from backend.app.middleware.trace import TracingMiddleware

settings = get_settings()

# Initialize logging
setup_logging(level=settings.log_level)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")

    if settings.create_tables_on_startup:
        from backend.app.core.database import create_tables
        await create_tables()

    if settings.admin_password:
        from backend.app.core.database import async_session_maker
        from backend.app.services.auth_service import seed_admin_user
        async with async_session_maker() as session:
            await seed_admin_user(session, settings.admin_username, settings.admin_password)

    yield
    # Shutdown
    logger.info(f"Shutting down {settings.app_name}")

    from backend.app.core.database import engine
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    description="Audited record store with attachment consistency",
    version=settings.app_version,
    lifespan=lifespan,
)


@app.exception_handler(RecordServiceError)
async def record_service_error_handler(request: Request, exc: RecordServiceError) -> JSONResponse:
    """Render domain errors; server-side detail stays in the logs."""
    log = logger.warning if exc.public else logger.error
    log(
        f"{request.method} {request.url.path} failed: {exc.error_code.value}",
        extra={"extra_data": {"error_code": exc.error_code.value, "detail": exc.message}},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.public_message, "code": exc.error_code.value},
    )


# Add Middleware
app.add_middleware(TracingMiddleware)

# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Correlation-ID"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(
    auth.router,
    prefix=f"{settings.api_prefix}/auth",
    tags=["Authentication"]
)
app.include_router(
    records.router,
    prefix=settings.api_prefix,
    tags=["Records"]
)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "collections": sorted(WRITABLE_COLLECTIONS),
        "docs": "/docs",
    }
