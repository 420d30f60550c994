"""
Tests for RecordRepository value coercion and table constraints.
"""
from decimal import Decimal

import pytest

from backend.app.core.errors import Conflict, ValidationFailed
from backend.app.core.registry import PRODUCTS, FieldKind
from backend.app.services.record_repository import RecordRepository, coerce_value


@pytest.mark.parametrize("raw,expected", [
    ("35.50", Decimal("35.50")),
    (12, Decimal("12.00")),
    ("999.99", Decimal("999.99")),
    ("-999.99", Decimal("-999.99")),
    ("12.345", Decimal("12.35")),
    ("0", Decimal("0.00")),
    ("", None),
])
def test_numeric_fits_column_precision(raw, expected):
    assert coerce_value("gmdc_pct", FieldKind.NUMERIC, raw, precision=5, scale=2) == expected


@pytest.mark.parametrize("raw", ["1000", "-1000", "999.999", "1e30"])
def test_numeric_out_of_range_rejected(raw):
    with pytest.raises(ValidationFailed):
        coerce_value("gmdc_pct", FieldKind.NUMERIC, raw, precision=5, scale=2)


def test_numeric_without_precision_is_unbounded():
    assert coerce_value("x", FieldKind.NUMERIC, "123456789.123") == Decimal("123456789.123")


@pytest.mark.asyncio
async def test_create_rounds_numeric_to_column_scale(db_session, principal):
    repo = RecordRepository(db_session)
    entity = await repo.create(PRODUCTS, {"name": "X100", "gmdc_pct": "12.345"}, principal)
    assert entity["gmdc_pct"] == Decimal("12.35")


@pytest.mark.asyncio
async def test_attachment_column_is_unique_across_records(db_session, principal):
    """Two records cannot hold the same attachment token, even past the coordinator."""
    repo = RecordRepository(db_session)
    await repo.create(PRODUCTS, {"name": "X100", "spec_sheet": "uploads/a_s.pdf"}, principal)

    with pytest.raises(Conflict):
        await repo.create(PRODUCTS, {"name": "X200", "spec_sheet": "uploads/a_s.pdf"}, principal)


@pytest.mark.asyncio
async def test_unset_attachments_do_not_collide(db_session, principal):
    repo = RecordRepository(db_session)
    await repo.create(PRODUCTS, {"name": "X100"}, principal)
    await repo.create(PRODUCTS, {"name": "X200"}, principal)

    rows = await repo.list_records("products")
    assert [r["spec_sheet"] for r in rows] == [None, None]
