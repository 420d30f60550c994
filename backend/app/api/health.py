"""Health check endpoints."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.database import get_db
from backend.app.services.attachment_store import FilesystemAttachmentStore, get_attachment_store

router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness_check(
    db: AsyncSession = Depends(get_db),
    store: FilesystemAttachmentStore = Depends(get_attachment_store),
):
    """
    Readiness check - verify dependencies are available.
    Fails if the database or the upload directory is unusable.
    """
    health_status = {
        "status": "ready",
        "checks": {
            "database": "unknown",
            "attachments": "unknown",
        }
    }

    try:
        await db.execute(text("SELECT 1"))
        health_status["checks"]["database"] = "ok"
    except Exception as e:
        health_status["checks"]["database"] = f"failed: {str(e)}"
        health_status["status"] = "not_ready"

    if store.healthy():
        health_status["checks"]["attachments"] = "ok"
    else:
        health_status["checks"]["attachments"] = "failed: upload directory not writable"
        health_status["status"] = "not_ready"

    if health_status["status"] != "ready":
        return JSONResponse(content=health_status, status_code=503)

    return health_status
