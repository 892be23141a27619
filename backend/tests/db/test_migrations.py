"""Tests that the migration builds the same schema as the models."""
import importlib.util
from pathlib import Path
from types import ModuleType

import pytest
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import Connection

from models.base import Base

VERSIONS_DIR = Path(__file__).resolve().parents[2] / "src" / "db" / "migrations" / "versions"


def _load_migrations() -> list[ModuleType]:
    modules = []
    for path in sorted(VERSIONS_DIR.glob("*.py")):
        spec = importlib.util.spec_from_file_location(path.stem, path)
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        modules.append(module)
    return modules


def _run(connection: Connection, step: str) -> None:
    """Run upgrade() or downgrade() of every migration, as alembic would."""
    modules = _load_migrations()
    if step == "downgrade":
        modules.reverse()
    context = MigrationContext.configure(connection)
    with Operations.context(context):
        for module in modules:
            getattr(module, step)()


@pytest.fixture
def connection() -> Connection:
    engine = create_engine("sqlite://")
    with engine.connect() as conn:
        yield conn
    engine.dispose()


def test_migrations_form_a_single_chain() -> None:
    """Every revision except the first points at an existing earlier revision."""
    modules = _load_migrations()
    revisions = {module.revision for module in modules}
    roots = [module for module in modules if module.down_revision is None]
    assert len(roots) == 1
    for module in modules:
        if module.down_revision is not None:
            assert module.down_revision in revisions


def test_upgrade_creates_model_tables_and_columns(connection: Connection) -> None:
    _run(connection, "upgrade")

    inspector = inspect(connection)
    for table in Base.metadata.sorted_tables:
        columns = {column["name"] for column in inspector.get_columns(table.name)}
        assert columns == {column.name for column in table.columns}, table.name


def test_upgrade_creates_change_log_indexes(connection: Connection) -> None:
    _run(connection, "upgrade")

    inspector = inspect(connection)
    task_indexes = {index["name"]: index for index in inspector.get_indexes("task_history")}
    note_indexes = {index["name"]: index for index in inspector.get_indexes("note_changes")}
    assert task_indexes["ix_task_history_task_created"]["column_names"] == [
        "task_id", "created_at", "id",
    ]
    assert note_indexes["ix_note_changes_note_created"]["column_names"] == [
        "note_id", "created_at", "id",
    ]


def test_downgrade_removes_all_tables(connection: Connection) -> None:
    _run(connection, "upgrade")
    _run(connection, "downgrade")
    assert inspect(connection).get_table_names() == []
