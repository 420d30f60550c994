"""
Record Repository - Database operations for catalog collections.

Handles create/update/delete against the collection tables. Every method runs
on the caller's session and never commits; the TransactionCoordinator owns the
transaction so the mutation can be composed with its audit entry.
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import delete, desc, insert, select, update
from sqlalchemy.exc import DataError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.errors import Conflict, NotFound, RecordServiceError, ValidationFailed
from backend.app.core.registry import (
    WRITABLE_COLLECTIONS,
    CollectionSpec,
    FieldKind,
    get_readable_table,
)
from backend.app.core.security import Principal


def coerce_value(
    field: str,
    kind: FieldKind,
    value: Any,
    precision: Optional[int] = None,
    scale: Optional[int] = None,
) -> Any:
    """
    Convert a payload value to the column's Python type.

    NUMERIC values are rounded to ``scale`` places and must fit ``precision``
    digits, as a NUMERIC(precision, scale) column stores them.
    """
    if value is None:
        return None

    if kind is FieldKind.NUMERIC:
        if isinstance(value, str) and not value.strip():
            return None
        if isinstance(value, bool):
            raise ValidationFailed(f"Field {field!r} must be numeric.")
        try:
            number = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationFailed(f"Field {field!r} must be numeric, got {value!r}.")
        if not number.is_finite():
            raise ValidationFailed(f"Field {field!r} must be a finite number.")
        if precision is not None:
            _check_magnitude(field, number, precision, scale or 0)
        if scale is not None:
            number = number.quantize(Decimal(1).scaleb(-scale), rounding=ROUND_HALF_UP)
        if precision is not None:
            _check_magnitude(field, number, precision, scale or 0)
        return number

    if kind is FieldKind.INTEGER:
        if isinstance(value, str) and not value.strip():
            return None
        if isinstance(value, bool):
            raise ValidationFailed(f"Field {field!r} must be an integer.")
        try:
            return int(str(value).strip())
        except ValueError:
            raise ValidationFailed(f"Field {field!r} must be an integer, got {value!r}.")

    if isinstance(value, (dict, list, bytes)):
        raise ValidationFailed(f"Field {field!r} must be a scalar value.")
    if kind is FieldKind.ATTACHMENT:
        if not isinstance(value, str):
            raise ValidationFailed(f"Field {field!r} must be an attachment reference.")
        return value.strip() or None
    return str(value)


def _check_magnitude(field: str, number: Decimal, precision: int, scale: int) -> None:
    integer_digits = precision - scale
    if number and number.adjusted() >= integer_digits:
        raise ValidationFailed(
            f"Field {field!r} must be less than 10^{integer_digits} in magnitude, got {number}."
        )


def _translate_integrity_error(spec: CollectionSpec, exc: IntegrityError) -> RecordServiceError:
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    text = str(orig).lower()
    if code == "23505" or "unique" in text:
        return Conflict(f"A {spec.name} record with the same unique value already exists.")
    return ValidationFailed(f"Invalid {spec.name} record: {orig}")


class RecordRepository:
    """Repository for catalog record database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _coerce(self, spec: CollectionSpec, fields: Mapping[str, Any]) -> Dict[str, Any]:
        return {
            name: coerce_value(
                name,
                spec.fields[name],
                value,
                getattr(spec.table.c[name].type, "precision", None),
                getattr(spec.table.c[name].type, "scale", None),
            )
            for name, value in spec.writable(fields).items()
        }

    async def get(
        self,
        spec: CollectionSpec,
        record_id: int,
        for_update: bool = False,
    ) -> Optional[Dict[str, Any]]:
        """Get a record by id, optionally taking a row lock."""
        table = spec.table
        stmt = select(table).where(table.c.id == record_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        row = result.mappings().one_or_none()
        return dict(row) if row is not None else None

    async def create(
        self,
        spec: CollectionSpec,
        fields: Mapping[str, Any],
        principal: Principal,
    ) -> Dict[str, Any]:
        """Insert a record; id and created_at are assigned by the store."""
        values = self._coerce(spec, fields)
        values["created_by"] = principal.id
        values["updated_by"] = principal.id

        table = spec.table
        try:
            result = await self.session.execute(
                insert(table).values(**values).returning(*table.c)
            )
        except IntegrityError as e:
            raise _translate_integrity_error(spec, e) from e
        except DataError as e:
            raise ValidationFailed(f"Invalid {spec.name} record: {e.orig}") from e
        return dict(result.mappings().one())

    async def update(
        self,
        spec: CollectionSpec,
        record_id: int,
        fields: Mapping[str, Any],
        principal: Principal,
    ) -> Dict[str, Any]:
        """Apply a partial update; raises NotFound when no row matches."""
        values = self._coerce(spec, fields)
        values["updated_by"] = principal.id
        values["updated_at"] = datetime.now(timezone.utc)

        table = spec.table
        try:
            result = await self.session.execute(
                update(table)
                .where(table.c.id == record_id)
                .values(**values)
                .returning(*table.c)
            )
        except IntegrityError as e:
            raise _translate_integrity_error(spec, e) from e
        except DataError as e:
            raise ValidationFailed(f"Invalid {spec.name} record: {e.orig}") from e

        row = result.mappings().one_or_none()
        if row is None:
            raise NotFound(f"{spec.name} record {record_id} not found.")
        return dict(row)

    async def delete(self, spec: CollectionSpec, record_id: int) -> Dict[str, Any]:
        """
        Delete a record and return the row as it was.

        The row is read first so the caller can clean up its attachments.
        """
        existing = await self.get(spec, record_id, for_update=True)
        if existing is None:
            raise NotFound(f"{spec.name} record {record_id} not found.")

        table = spec.table
        try:
            result = await self.session.execute(
                delete(table).where(table.c.id == record_id)
            )
        except IntegrityError as e:
            raise _translate_integrity_error(spec, e) from e

        if result.rowcount == 0:
            raise NotFound(f"{spec.name} record {record_id} not found.")
        return existing

    async def attachment_in_use(
        self,
        token: str,
        exclude: Optional[tuple[str, int]] = None,
    ) -> bool:
        """True if any live record references the attachment token."""
        for spec in WRITABLE_COLLECTIONS.values():
            table = spec.table
            for name in sorted(spec.attachments):
                stmt = select(table.c.id).where(table.c[name] == token)
                if exclude is not None and exclude[0] == spec.name:
                    stmt = stmt.where(table.c.id != exclude[1])
                result = await self.session.execute(stmt.limit(1))
                if result.first() is not None:
                    return True
        return False

    async def list_records(
        self,
        collection: str,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """List rows of a readable collection (audit trail newest first)."""
        table = get_readable_table(collection)
        if collection == "audit_logs":
            order = [desc(table.c.logged_at), desc(table.c.id)]
        else:
            order = [table.c.id]

        result = await self.session.execute(
            select(table).order_by(*order).limit(limit).offset(offset)
        )
        return [dict(row) for row in result.mappings().all()]
