"""
DeclarationReconciler: merges remote declaration data into local rows.

Input is the list of result blocks the SENCE automation returns:

    [
        {"data": [
            {"codigo_curso": "SENCE-001", "RUT": "11111111-1",
             "Nombre": "Ana", "Sesiones": 5,
             "Estado_Declaracion_Jurada": "Aprobado"},
            ...
        ]},
        ...
    ]

Every entry is upserted on (external_course_id, participant_rut) in its own
DB session, so one bad entry is counted and skipped while the rest of the
batch still lands. Only a top-level shape that cannot be walked at all
raises MalformedPayloadError, and it does so before anything is written.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from sencesync.models.declaration import (
    STATUS_APPROVED,
    STATUS_IN_REVIEW,
    STATUS_PENDING,
    STATUS_REJECTED,
    STATUS_SENT,
    DeclarationRecord,
)
from sencesync.sence.errors import MalformedPayloadError

logger = logging.getLogger(__name__)

# SENCE vocabulary → internal status. Anything not listed becomes Pendiente.
STATUS_MAP: Dict[str, str] = {
    "Aprobado": STATUS_APPROVED,
    "Enviada": STATUS_SENT,
    "Pendiente": STATUS_PENDING,
    "Rechazado": STATUS_REJECTED,
    "En Revisión": STATUS_IN_REVIEW,
    "Emitida": STATUS_APPROVED,
    "Pendiente de emitir": STATUS_PENDING,
}
_STATUS_MAP_FOLDED = {k.casefold(): v for k, v in STATUS_MAP.items()}


@dataclass
class ReconciliationSummary:
    processed: int = 0
    failed: int = 0
    record_count: int = 0


def normalize_status(raw_status: Any) -> str:
    """Map a SENCE status string to the internal enumeration. Never raises."""
    if not isinstance(raw_status, str):
        return STATUS_PENDING
    key = raw_status.strip()
    if key in STATUS_MAP:
        return STATUS_MAP[key]
    return _STATUS_MAP_FOLDED.get(key.casefold(), STATUS_PENDING)


def flatten_blocks(blocks: Any) -> List[Any]:
    """
    Collect the entries of every block in input order.

    Raises:
        MalformedPayloadError: if blocks is not a list of mappings.
    """
    if not isinstance(blocks, (list, tuple)):
        raise MalformedPayloadError(
            f"Expected a list of result blocks, got {type(blocks).__name__}"
        )
    entries: List[Any] = []
    for i, block in enumerate(blocks):
        if not isinstance(block, Mapping):
            raise MalformedPayloadError(
                f"Result block {i} is {type(block).__name__}, expected an object"
            )
        data = block.get("data")
        # Blocks without a data list (e.g. a course with no declarations)
        if isinstance(data, list):
            entries.extend(data)
    return entries


def coerce_sessions(value: Any) -> Optional[int]:
    """Session count as an int. Accepts 5, "5" and "5.0"; blank is None."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        return int(float(value))
    except OverflowError:
        raise ValueError(f"Sesiones out of range: {value!r}")


def normalize_entry(entry: Any) -> Dict[str, Any]:
    """
    Convert one raw SENCE entry into DeclarationRecord field values.

    Raises:
        ValueError: if the entry lacks its key fields or has bad sessions.
    """
    if not isinstance(entry, Mapping):
        raise ValueError(f"Entry is {type(entry).__name__}, expected an object")

    course_id = entry.get("codigo_curso")
    rut = entry.get("RUT")
    if course_id is None or str(course_id).strip() == "":
        raise ValueError("Entry has no codigo_curso")
    if rut is None or str(rut).strip() == "":
        raise ValueError("Entry has no RUT")

    return {
        "external_course_id": str(course_id).strip(),
        "participant_rut": str(rut).strip(),
        "participant_name": entry.get("Nombre"),
        "sessions_attended": coerce_sessions(entry.get("Sesiones")),
        "status": normalize_status(entry.get("Estado_Declaracion_Jurada")),
    }


class DeclarationReconciler:
    """Idempotent upsert of remote declarations into the declaration table."""

    def __init__(self, engine):
        """
        Args:
            engine: SQLAlchemy engine (SQLModel create_engine result).
        """
        self.engine = engine

    def reconcile(
        self, blocks: Any, summary: Optional[ReconciliationSummary] = None
    ) -> ReconciliationSummary:
        """
        Upsert every declaration entry found in blocks.

        Args:
            blocks: Result blocks as returned by the remote call.
            summary: Filled in place when given, so a caller still sees the
                counts reached if an unexpected error aborts the batch.

        Returns:
            ReconciliationSummary with processed/failed counts and the total
            number of entries seen.

        Raises:
            MalformedPayloadError: if blocks cannot be walked as result blocks.
        """
        entries = flatten_blocks(blocks)
        if summary is None:
            summary = ReconciliationSummary()
        summary.record_count = len(entries)

        for index, entry in enumerate(entries):
            try:
                fields = normalize_entry(entry)
                self._upsert(fields)
            except (ValueError, TypeError, SQLAlchemyError) as exc:
                summary.failed += 1
                logger.warning("Skipping declaration entry %d: %s", index, exc)
                continue
            summary.processed += 1

        logger.info(
            "Reconciled %d declaration(s): %d processed, %d failed",
            summary.record_count,
            summary.processed,
            summary.failed,
        )
        return summary

    def _upsert(self, fields: Dict[str, Any]) -> DeclarationRecord:
        with Session(self.engine) as s:
            existing = s.exec(
                select(DeclarationRecord).where(
                    DeclarationRecord.external_course_id == fields["external_course_id"],
                    DeclarationRecord.participant_rut == fields["participant_rut"],
                )
            ).first()

            if existing:
                existing.participant_name = fields["participant_name"]
                existing.sessions_attended = fields["sessions_attended"]
                existing.status = fields["status"]
                existing.updated_at = datetime.utcnow()
                s.add(existing)
                s.commit()
                s.refresh(existing)
                return existing

            record = DeclarationRecord(**fields)
            s.add(record)
            s.commit()
            s.refresh(record)
            return record
