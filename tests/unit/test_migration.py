"""
The alembic revision must build the same tables the ORM maps.
"""
import importlib.util
from pathlib import Path

import sqlalchemy as sa
from alembic.migration import MigrationContext
from alembic.operations import Operations

from backend.app.core.database import Base
import backend.app.models  # noqa: F401

MIGRATION = (
    Path(__file__).resolve().parents[2]
    / "backend" / "alembic" / "versions" / "001_create_record_tables.py"
)


def _load_migration():
    spec = importlib.util.spec_from_file_location("create_record_tables", MIGRATION)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_upgrade_creates_orm_tables_and_downgrade_drops_them():
    migration = _load_migration()
    engine = sa.create_engine("sqlite://")

    with engine.begin() as conn:
        with Operations.context(MigrationContext.configure(conn)):
            migration.upgrade()

        inspector = sa.inspect(conn)
        tables = set(inspector.get_table_names())
        assert tables == set(Base.metadata.tables)
        for name, table in Base.metadata.tables.items():
            columns = {c["name"] for c in inspector.get_columns(name)}
            assert columns == set(table.columns.keys()), name

        with Operations.context(MigrationContext.configure(conn)):
            migration.downgrade()
        assert sa.inspect(conn).get_table_names() == []

    engine.dispose()
