"""
Database migrations for the sync service.

Databases created before the declaration table carried its unique key get a
unique index on (external_course_id, participant_rut). Each migration is
idempotent and runs from get_engine() after create_all().
"""
import logging

from sqlalchemy import inspect, text

logger = logging.getLogger(__name__)

DECLARATION_TABLE = "declaration"
DECLARATION_KEY_COLUMNS = ("external_course_id", "participant_rut")
DECLARATION_KEY_INDEX = "uq_declaration_course_rut_idx"


def run_migrations(engine) -> None:
    """Apply all pending schema migrations. Safe to call multiple times.

    Args:
        engine: SQLAlchemy engine (SQLModel create_engine result).
    """
    with engine.connect() as conn:
        if _has_unique_key(conn, DECLARATION_TABLE, DECLARATION_KEY_COLUMNS):
            return

        # Declarations are never deleted here; duplicates must be fixed by hand
        duplicates = conn.execute(
            text(
                f"SELECT COUNT(*) FROM (SELECT 1 FROM {DECLARATION_TABLE} "
                "GROUP BY external_course_id, participant_rut "
                "HAVING COUNT(*) > 1) AS dup"
            )
        ).scalar()
        if duplicates:
            logger.warning(
                "%d duplicated declaration key(s); unique index %s not created",
                duplicates,
                DECLARATION_KEY_INDEX,
            )
            return

        conn.execute(
            text(
                f"CREATE UNIQUE INDEX IF NOT EXISTS {DECLARATION_KEY_INDEX} "
                f"ON {DECLARATION_TABLE} ({', '.join(DECLARATION_KEY_COLUMNS)})"
            )
        )
        conn.commit()


def _has_unique_key(conn, table: str, columns) -> bool:
    """True if table has a unique constraint or unique index on exactly columns."""
    insp = inspect(conn)
    wanted = set(columns)
    for uc in insp.get_unique_constraints(table):
        if set(uc["column_names"]) == wanted:
            return True
    for idx in insp.get_indexes(table):
        if idx.get("unique") and set(idx["column_names"]) == wanted:
            return True
    return False
