"""
Collection registry.

Static table of the record shapes the service accepts writes for. Each
collection lists its writable fields (with the kind used for coercion), the
fields required on create, and the attachment-capable fields whose values are
AttachmentStore tokens.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping

from sqlalchemy import Table

from backend.app.core.errors import InvalidCollection
from backend.app.models.audit_orm import AuditLogORM
from backend.app.models.record_orm import ProductLineORM, ProductORM


class FieldKind(str, Enum):
    TEXT = "text"
    NUMERIC = "numeric"
    INTEGER = "integer"
    ATTACHMENT = "attachment"


# Never settable from a caller payload
SERVER_MANAGED_FIELDS: FrozenSet[str] = frozenset(
    {"id", "created_at", "created_by", "updated_at", "updated_by"}
)


@dataclass(frozen=True)
class CollectionSpec:
    name: str
    table: Table
    fields: Mapping[str, FieldKind]
    required: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def attachments(self) -> FrozenSet[str]:
        return frozenset(
            name for name, kind in self.fields.items() if kind is FieldKind.ATTACHMENT
        )

    def writable(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        """Drop unknown and server-managed keys from a caller payload."""
        return {
            key: value
            for key, value in payload.items()
            if key in self.fields and key not in SERVER_MANAGED_FIELDS
        }

    def missing_required(self, fields: Mapping[str, Any], partial: bool = False) -> list[str]:
        """
        Required fields that are absent or blank.

        For partial updates only the required fields actually present are checked.
        """
        missing = []
        for name in sorted(self.required):
            if name not in fields:
                if not partial:
                    missing.append(name)
                continue
            value = fields[name]
            if value is None or (isinstance(value, str) and not value.strip()):
                missing.append(name)
        return missing


PRODUCT_LINES = CollectionSpec(
    name="product_lines",
    table=ProductLineORM.__table__,
    fields={
        "name": FieldKind.TEXT,
        "type_of_products": FieldKind.TEXT,
        "product_line_manager": FieldKind.TEXT,
        "strength": FieldKind.TEXT,
        "weakness": FieldKind.TEXT,
    },
    required=frozenset({"name"}),
)

PRODUCTS = CollectionSpec(
    name="products",
    table=ProductORM.__table__,
    fields={
        "name": FieldKind.TEXT,
        "product_line": FieldKind.TEXT,
        "description": FieldKind.TEXT,
        "capacity": FieldKind.TEXT,
        "gmdc_pct": FieldKind.NUMERIC,
        "product_pictures": FieldKind.ATTACHMENT,
        "spec_sheet": FieldKind.ATTACHMENT,
    },
    required=frozenset({"name"}),
)

WRITABLE_COLLECTIONS: Dict[str, CollectionSpec] = {
    spec.name: spec for spec in (PRODUCT_LINES, PRODUCTS)
}

# Read-only listing also exposes the audit trail; users are never listed.
READABLE_TABLES: Dict[str, Table] = {
    **{name: spec.table for name, spec in WRITABLE_COLLECTIONS.items()},
    "audit_logs": AuditLogORM.__table__,
}


def get_collection(name: str) -> CollectionSpec:
    """Resolve a writable collection, rejecting audit/identity tables."""
    spec = WRITABLE_COLLECTIONS.get(name)
    if spec is None:
        raise InvalidCollection(f"Invalid collection name: {name!r}.")
    return spec


def get_readable_table(name: str) -> Table:
    table = READABLE_TABLES.get(name)
    if table is None:
        raise InvalidCollection(f"Invalid collection name: {name!r}.")
    return table
