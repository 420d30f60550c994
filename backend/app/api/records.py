"""
Universal Records API Router.

Maps ``/{collection}`` and ``/{collection}/{id}`` onto the TransactionCoordinator.
Writes accept JSON or multipart form data; file parts on attachment-capable
fields are handed to the coordinator as uploads, which it saves and
compensates as part of the mutation.
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, Security
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import UploadFile

from backend.app.core.database import async_session_maker, get_db
from backend.app.core.errors import NotFound, ValidationFailed
from backend.app.core.registry import get_collection
from backend.app.core.security import (
    AUDIT_READ,
    RECORDS_READ,
    RECORDS_WRITE,
    Principal,
    get_current_principal,
)
from backend.app.services.attachment_store import (
    AttachmentUpload,
    FilesystemAttachmentStore,
    get_attachment_store,
)
from backend.app.services.record_repository import RecordRepository
from backend.app.services.transaction_coordinator import TransactionCoordinator

logger = logging.getLogger(__name__)
router = APIRouter()

_FORM_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


def get_coordinator() -> TransactionCoordinator:
    """Dependency for the write path; one coordinator per request."""
    return TransactionCoordinator(async_session_maker, get_attachment_store())


async def _read_payload(request: Request) -> Dict[str, Any]:
    """Parse a JSON object or form body into a field mapping."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(_FORM_TYPES):
        form = await request.form()
        payload: Dict[str, Any] = {}
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                payload[key] = AttachmentUpload(
                    content=await value.read(),
                    filename=value.filename or key,
                )
            else:
                payload[key] = value
        return payload

    raw = await request.body()
    if not raw:
        return {}
    try:
        body = await request.json()
    except ValueError:
        raise ValidationFailed("Request body must be a JSON object.")
    if not isinstance(body, dict):
        raise ValidationFailed("Request body must be a JSON object.")
    return body


@router.get("/records/{collection}")
async def list_records(
    collection: str,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Security(get_current_principal, scopes=[RECORDS_READ]),
):
    """List a collection; the audit trail is returned newest first."""
    if collection == "audit_logs" and AUDIT_READ not in principal.scopes:
        raise HTTPException(
            status_code=403,
            detail=f"Not enough permissions. Required scope: {AUDIT_READ}",
        )
    return await RecordRepository(db).list_records(collection, limit=limit, offset=offset)


@router.get("/records/{collection}/{record_id}")
async def get_record(
    collection: str,
    record_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Security(get_current_principal, scopes=[RECORDS_READ]),
):
    spec = get_collection(collection)
    record = await RecordRepository(db).get(spec, record_id)
    if record is None:
        raise NotFound(f"{spec.name} record {record_id} not found.")
    return record


@router.post("/records/{collection}", status_code=201)
async def create_record(
    collection: str,
    request: Request,
    coordinator: TransactionCoordinator = Depends(get_coordinator),
    principal: Principal = Security(get_current_principal, scopes=[RECORDS_WRITE]),
):
    """Create a record; returns the persisted entity."""
    payload = await _read_payload(request)
    result = await coordinator.create(collection, payload, principal)
    return result.entity


@router.put("/records/{collection}/{record_id}")
async def update_record(
    collection: str,
    record_id: int,
    request: Request,
    coordinator: TransactionCoordinator = Depends(get_coordinator),
    principal: Principal = Security(get_current_principal, scopes=[RECORDS_WRITE]),
):
    """Partially update a record; returns the persisted entity."""
    payload = await _read_payload(request)
    result = await coordinator.update(collection, record_id, payload, principal)
    return result.entity


@router.delete("/records/{collection}/{record_id}", status_code=204)
async def delete_record(
    collection: str,
    record_id: int,
    coordinator: TransactionCoordinator = Depends(get_coordinator),
    principal: Principal = Security(get_current_principal, scopes=[RECORDS_WRITE]),
) -> Response:
    await coordinator.delete(collection, record_id, principal)
    return Response(status_code=204)


@router.get("/attachments/{token:path}")
async def download_attachment(
    token: str,
    store: FilesystemAttachmentStore = Depends(get_attachment_store),
    principal: Principal = Security(get_current_principal, scopes=[RECORDS_READ]),
) -> FileResponse:
    try:
        path = store.path_for(token)
    except ValueError:
        raise NotFound("Attachment not found.")
    if not path.is_file():
        raise NotFound("Attachment not found.")
    return FileResponse(path, filename=path.name.split("_", 1)[-1])
