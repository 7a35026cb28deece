"""Tests for database migration helpers."""
import pytest
import sqlalchemy.exc
from sqlalchemy import inspect, text
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine

from sencesync.db.migrations import DECLARATION_KEY_INDEX, run_migrations

LEGACY_DDL = (
    "CREATE TABLE declaration ("
    "id INTEGER PRIMARY KEY, "
    "external_course_id VARCHAR NOT NULL, "
    "participant_rut VARCHAR NOT NULL, "
    "status VARCHAR)"
)
INSERT = (
    "INSERT INTO declaration (external_course_id, participant_rut, status) "
    "VALUES (:course, :rut, 'Pendiente')"
)


@pytest.fixture(name="legacy_engine")
def legacy_engine_fixture():
    """In-memory SQLite with the declaration table as it was before the unique key."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    with engine.begin() as conn:
        conn.execute(text(LEGACY_DDL))
    yield engine
    engine.dispose()


def _index_names(engine):
    return {idx["name"] for idx in inspect(engine).get_indexes("declaration")}


def _row_count(engine):
    with engine.connect() as conn:
        return conn.execute(text("SELECT COUNT(*) FROM declaration")).scalar()


class TestRunMigrations:
    def test_fresh_schema_is_left_alone(self, engine):
        """create_all already emits the unique constraint; nothing to add."""
        run_migrations(engine)
        assert DECLARATION_KEY_INDEX not in _index_names(engine)

    def test_run_migrations_is_idempotent(self, legacy_engine):
        run_migrations(legacy_engine)
        run_migrations(legacy_engine)
        assert DECLARATION_KEY_INDEX in _index_names(legacy_engine)

    def test_legacy_table_gets_unique_index(self, legacy_engine):
        run_migrations(legacy_engine)
        with legacy_engine.begin() as conn:
            conn.execute(text(INSERT), {"course": "S1", "rut": "1-9"})
        with pytest.raises(sqlalchemy.exc.IntegrityError):
            with legacy_engine.begin() as conn:
                conn.execute(text(INSERT), {"course": "S1", "rut": "1-9"})

    def test_duplicates_block_index_and_are_kept(self, legacy_engine):
        with legacy_engine.begin() as conn:
            conn.execute(text(INSERT), {"course": "S1", "rut": "1-9"})
            conn.execute(text(INSERT), {"course": "S1", "rut": "1-9"})
        run_migrations(legacy_engine)
        assert DECLARATION_KEY_INDEX not in _index_names(legacy_engine)
        assert _row_count(legacy_engine) == 2
