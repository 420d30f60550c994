"""
Unit tests for collection whitelisting and value coercion.
"""
from decimal import Decimal

import pytest

from backend.app.core.errors import InvalidCollection, ValidationFailed
from backend.app.core.registry import FieldKind, PRODUCTS, get_collection, get_readable_table
from backend.app.services.record_repository import coerce_value


def test_writable_drops_unknown_and_server_managed_keys():
    payload = {
        "name": "X100",
        "gmdc_pct": "35.50",
        "id": 999,
        "created_by": "mallory",
        "created_at": "2001-01-01",
        "updated_by": "mallory",
        "updated_at": "2001-01-01",
        "is_admin": True,
    }
    assert PRODUCTS.writable(payload) == {"name": "X100", "gmdc_pct": "35.50"}


def test_attachment_fields_are_derived_from_field_kinds():
    assert PRODUCTS.attachments == {"product_pictures", "spec_sheet"}
    assert get_collection("product_lines").attachments == frozenset()


def test_missing_required_on_create_and_partial_update():
    assert PRODUCTS.missing_required({}) == ["name"]
    assert PRODUCTS.missing_required({"name": "  "}) == ["name"]
    assert PRODUCTS.missing_required({"name": "X100"}) == []
    # Partial updates only check required fields that were sent
    assert PRODUCTS.missing_required({"description": "d"}, partial=True) == []
    assert PRODUCTS.missing_required({"name": None}, partial=True) == ["name"]


@pytest.mark.parametrize("name", ["audit_logs", "users", "nope", ""])
def test_get_collection_rejects_non_writable_names(name):
    with pytest.raises(InvalidCollection):
        get_collection(name)


def test_audit_logs_readable_but_users_never_listed():
    assert get_readable_table("audit_logs").name == "audit_logs"
    with pytest.raises(InvalidCollection):
        get_readable_table("users")


def test_coerce_numeric_keeps_exact_decimal():
    assert coerce_value("gmdc_pct", FieldKind.NUMERIC, "35.50") == Decimal("35.50")
    assert coerce_value("gmdc_pct", FieldKind.NUMERIC, 12) == Decimal("12")
    assert coerce_value("gmdc_pct", FieldKind.NUMERIC, "") is None
    assert coerce_value("gmdc_pct", FieldKind.NUMERIC, None) is None


@pytest.mark.parametrize("value", ["abc", "NaN", "Infinity", True, [1]])
def test_coerce_numeric_rejects_garbage(value):
    with pytest.raises(ValidationFailed):
        coerce_value("gmdc_pct", FieldKind.NUMERIC, value)


def test_coerce_text_and_attachment():
    assert coerce_value("capacity", FieldKind.TEXT, 1000) == "1000"
    assert coerce_value("product_pictures", FieldKind.ATTACHMENT, "") is None
    with pytest.raises(ValidationFailed):
        coerce_value("product_pictures", FieldKind.ATTACHMENT, 42)
    with pytest.raises(ValidationFailed):
        coerce_value("description", FieldKind.TEXT, {"nested": True})
