"""
Transaction Coordinator - atomic record mutations with audit and attachment cleanup.

Every create/update/delete runs as one database transaction holding both the
primary row change and its audit entry. Attachment files cannot join that
transaction, so they are compensated explicitly around it:

    BEGIN -> PRIMARY_WRITE -> AUDIT_WRITE -> COMMIT -> POST_COMMIT_CLEANUP -> DONE
    failure in PRIMARY_WRITE, AUDIT_WRITE or COMMIT:
        ROLLBACK -> CLEANUP_NEW_ATTACHMENT -> FAILED

- Uploads saved for this attempt are provisional until COMMIT succeeds; on
  any failure they are deleted.
- Blobs superseded by an update, or referenced by a deleted row, are deleted
  only after COMMIT succeeds.
- Cleanup failures are logged and never change the operation's outcome.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Set

from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.app.core.errors import (
    Conflict,
    Internal,
    NotFound,
    RecordServiceError,
    StorageUnavailable,
    ValidationFailed,
)
from backend.app.core.registry import CollectionSpec, get_collection
from backend.app.core.security import Principal
from backend.app.services.attachment_store import AttachmentUpload, FilesystemAttachmentStore
from backend.app.services.audit_log import AuditAction, AuditLog, snapshot
from backend.app.services.record_repository import RecordRepository

logger = logging.getLogger(__name__)


class Operation(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class CoordinatorState(str, Enum):
    BEGIN = "begin"
    PRIMARY_WRITE = "primary_write"
    AUDIT_WRITE = "audit_write"
    COMMIT = "commit"
    POST_COMMIT_CLEANUP = "post_commit_cleanup"
    DONE = "done"
    ROLLBACK = "rollback"
    CLEANUP_NEW_ATTACHMENT = "cleanup_new_attachment"
    FAILED = "failed"


_RESULT_STATUS = {
    Operation.CREATE: "created",
    Operation.UPDATE: "updated",
    Operation.DELETE: "deleted",
}

_AUDIT_ACTION = {
    Operation.CREATE: AuditAction.CREATE,
    Operation.UPDATE: AuditAction.UPDATE,
    Operation.DELETE: AuditAction.DELETE,
}


@dataclass
class MutationResult:
    status: str
    entity: Dict[str, Any]
    states: List[CoordinatorState] = field(default_factory=list)


@dataclass
class _Attempt:
    """Per-invocation bookkeeping; never shared across requests."""
    spec: CollectionSpec
    operation: Operation
    record_id: Optional[int]
    new_tokens: List[str] = field(default_factory=list)
    superseded_tokens: List[str] = field(default_factory=list)
    states: List[CoordinatorState] = field(default_factory=list)

    def enter(self, state: CoordinatorState) -> None:
        self.states.append(state)
        logger.debug(
            f"{self.operation.value} {self.spec.name}/{self.record_id}: {state.value}"
        )


def _is_storage_failure(exc: SQLAlchemyError) -> bool:
    if isinstance(exc, (OperationalError, InterfaceError, DisconnectionError)):
        return True
    return bool(getattr(exc, "connection_invalidated", False))


def _token_value(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value.strip() or None
    return None


def _attachment_tokens(spec: CollectionSpec, row: Mapping[str, Any]) -> Set[str]:
    """Every attachment token a row references, across all its attachment fields."""
    return {row[name] for name in spec.attachments if row.get(name)}


class TransactionCoordinator:
    """Runs record mutations and their audit entries as one atomic unit."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        attachment_store: FilesystemAttachmentStore,
        audit_log: Optional[AuditLog] = None,
    ):
        self._session_factory = session_factory
        self._attachments = attachment_store
        self._audit_log = audit_log or AuditLog()

    async def create(self, entity_type: str, payload: Mapping[str, Any], principal: Principal) -> MutationResult:
        return await self.execute(entity_type, Operation.CREATE, payload, principal)

    async def update(
        self, entity_type: str, record_id: int, payload: Mapping[str, Any], principal: Principal
    ) -> MutationResult:
        return await self.execute(entity_type, Operation.UPDATE, payload, principal, record_id=record_id)

    async def delete(self, entity_type: str, record_id: int, principal: Principal) -> MutationResult:
        return await self.execute(entity_type, Operation.DELETE, {}, principal, record_id=record_id)

    async def execute(
        self,
        entity_type: str,
        operation: Operation,
        payload: Mapping[str, Any],
        principal: Principal,
        record_id: Optional[int] = None,
    ) -> MutationResult:
        """
        Execute one mutation end to end.

        Raises:
            RecordServiceError: InvalidCollection, ValidationFailed, NotFound,
                Conflict, StorageUnavailable or Internal. Nothing is left
                behind when an error is raised.
        """
        operation = Operation(operation)
        spec = get_collection(entity_type)
        if operation is not Operation.CREATE and record_id is None:
            raise ValidationFailed(f"A record id is required to {operation.value} {spec.name}.")

        fields: Dict[str, Any] = {}
        if operation is not Operation.DELETE:
            fields = spec.writable(payload)
            missing = spec.missing_required(fields, partial=operation is Operation.UPDATE)
            if missing:
                raise ValidationFailed(f"Missing required field(s): {', '.join(missing)}.")
            misplaced = sorted(
                name for name, value in fields.items()
                if isinstance(value, AttachmentUpload) and name not in spec.attachments
            )
            if misplaced:
                raise ValidationFailed(f"Field(s) {', '.join(misplaced)} do not accept file uploads.")

        attempt = _Attempt(spec=spec, operation=operation, record_id=record_id)
        try:
            fields = await self._save_uploads(attempt, fields)
            entity = await self._run_transaction(attempt, fields, principal)
        except RecordServiceError as e:
            await self._compensate(attempt, e)
            raise
        except SQLAlchemyError as e:
            await self._compensate(attempt, e)
            if _is_storage_failure(e):
                raise StorageUnavailable(f"Storage unavailable during {operation.value} on {spec.name}.") from e
            raise Internal(f"Database error during {operation.value} on {spec.name}.") from e
        except Exception as e:
            await self._compensate(attempt, e)
            raise Internal(f"Unexpected error during {operation.value} on {spec.name}.") from e
        except BaseException as e:
            # Cancellation: uploads must not outlive the attempt
            await self._compensate(attempt, e)
            raise

        if attempt.superseded_tokens:
            attempt.enter(CoordinatorState.POST_COMMIT_CLEANUP)
            await self._discard(attempt.superseded_tokens)
        attempt.enter(CoordinatorState.DONE)

        logger.info(
            f"{spec.name} record {entity.get('id')} {_RESULT_STATUS[operation]} by {principal.id}",
            extra={"extra_data": {"collection": spec.name, "record_id": entity.get("id"),
                                  "operation": operation.value}},
        )
        return MutationResult(status=_RESULT_STATUS[operation], entity=entity, states=attempt.states)

    async def _save_uploads(self, attempt: _Attempt, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Replace AttachmentUpload values with freshly saved tokens."""
        resolved = dict(fields)
        for name in sorted(attempt.spec.attachments & fields.keys()):
            value = fields[name]
            if isinstance(value, AttachmentUpload):
                token = await self._attachments.save(value.content, value.filename)
                attempt.new_tokens.append(token)
                resolved[name] = token
        return resolved

    async def _check_adopted_tokens(
        self,
        attempt: _Attempt,
        repo: RecordRepository,
        fields: Dict[str, Any],
        before: Optional[Dict[str, Any]],
    ) -> None:
        """
        Existing tokens named in a payload must exist and belong to no other record.

        A token may also be held by only one attachment field of the record,
        counting the fields the payload leaves untouched.
        """
        spec = attempt.spec
        resulting = {name: (before or {}).get(name) for name in spec.attachments}
        for name in spec.attachments & fields.keys():
            resulting[name] = _token_value(fields[name])
        held = [token for token in resulting.values() if token]
        if len(held) != len(set(held)):
            raise ValidationFailed("An attachment can be referenced by only one field of a record.")

        for name in sorted(spec.attachments & fields.keys()):
            token = _token_value(fields[name])
            if token is None or token in attempt.new_tokens:
                continue
            if before is not None and token in _attachment_tokens(spec, before):
                continue
            if not await self._attachments.exists(token):
                raise ValidationFailed(f"Unknown attachment reference for {name!r}.")
            exclude = (spec.name, attempt.record_id) if attempt.record_id is not None else None
            if await repo.attachment_in_use(token, exclude=exclude):
                raise Conflict(f"Attachment for {name!r} is already referenced by another record.")

    async def _run_transaction(
        self,
        attempt: _Attempt,
        fields: Dict[str, Any],
        principal: Principal,
    ) -> Dict[str, Any]:
        spec = attempt.spec
        async with self._session_factory() as session:
            attempt.enter(CoordinatorState.BEGIN)
            repo = RecordRepository(session)
            try:
                attempt.enter(CoordinatorState.PRIMARY_WRITE)
                if attempt.operation is Operation.CREATE:
                    await self._check_adopted_tokens(attempt, repo, fields, None)
                    entity = await repo.create(spec, fields, principal)
                    details = snapshot(entity)
                    superseded: List[str] = []
                elif attempt.operation is Operation.UPDATE:
                    before = await repo.get(spec, attempt.record_id, for_update=True)
                    if before is None:
                        raise NotFound(f"{spec.name} record {attempt.record_id} not found.")
                    await self._check_adopted_tokens(attempt, repo, fields, before)
                    entity = await repo.update(spec, attempt.record_id, fields, principal)
                    details = {"old": snapshot(before), "new": snapshot(entity)}
                    superseded = sorted(
                        _attachment_tokens(spec, before) - _attachment_tokens(spec, entity)
                    )
                else:
                    entity = await repo.delete(spec, attempt.record_id)
                    details = {"old": snapshot(entity), "message": "Record deleted."}
                    superseded = sorted(_attachment_tokens(spec, entity))

                attempt.enter(CoordinatorState.AUDIT_WRITE)
                await self._audit_log.append(
                    session,
                    _AUDIT_ACTION[attempt.operation],
                    spec.name,
                    entity["id"],
                    principal,
                    details,
                )

                attempt.enter(CoordinatorState.COMMIT)
                try:
                    await session.commit()
                except SQLAlchemyError as e:
                    raise StorageUnavailable(f"Commit failed for {spec.name}/{entity['id']}.") from e
            except BaseException:
                attempt.enter(CoordinatorState.ROLLBACK)
                await self._rollback(session)
                raise

        attempt.superseded_tokens = superseded
        return entity

    async def _rollback(self, session: AsyncSession) -> None:
        try:
            await session.rollback()
        except SQLAlchemyError:
            # Connection is gone; the pool discards it and the server aborts the transaction
            logger.warning("Rollback failed", exc_info=True)

    async def _compensate(self, attempt: _Attempt, error: BaseException) -> None:
        """Undo uploads from a failed attempt and log the failure."""
        if attempt.new_tokens:
            attempt.enter(CoordinatorState.CLEANUP_NEW_ATTACHMENT)
            await self._discard(attempt.new_tokens)
        attempt.enter(CoordinatorState.FAILED)

        message = (
            f"{attempt.operation.value} on {attempt.spec.name}/{attempt.record_id} failed: {error}"
        )
        if isinstance(error, RecordServiceError) and error.public:
            logger.info(message)
        else:
            logger.error(message, exc_info=error)

    async def _discard(self, tokens: List[str]) -> None:
        for token in tokens:
            try:
                await self._attachments.delete(token)
            except Exception:
                logger.error(f"Failed to delete attachment {token}", exc_info=True)
