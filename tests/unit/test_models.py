"""Tests for DB models."""
import pytest
import sqlalchemy.exc
from sqlmodel import Session, select

from sencesync.models.course import Course
from sencesync.models.declaration import DeclarationRecord
from sencesync.models.sync import SyncSession, SyncStatus, SyncStatusRecord


class TestDeclarationRecord:
    def test_default_status_is_pending(self):
        record = DeclarationRecord(external_course_id="SENCE-001", participant_rut="1-9")
        assert record.status == "Pendiente"

    def test_persists_and_retrieves(self, test_session: Session):
        test_session.add(
            DeclarationRecord(
                external_course_id="SENCE-001",
                participant_rut="11111111-1",
                participant_name="Ana",
                sessions_attended=5,
                status="Aprobado",
            )
        )
        test_session.commit()
        row = test_session.exec(
            select(DeclarationRecord).where(DeclarationRecord.participant_rut == "11111111-1")
        ).first()
        assert row is not None
        assert row.sessions_attended == 5

    def test_course_and_rut_pair_is_unique(self, test_session: Session):
        """Reconciliation guard: duplicate (course, rut) fails at DB level."""
        test_session.add(DeclarationRecord(external_course_id="S1", participant_rut="1-9"))
        test_session.commit()
        test_session.add(DeclarationRecord(external_course_id="S1", participant_rut="1-9"))
        with pytest.raises(sqlalchemy.exc.IntegrityError):
            test_session.commit()

    def test_same_rut_allowed_in_other_course(self, test_session: Session):
        test_session.add(DeclarationRecord(external_course_id="S1", participant_rut="1-9"))
        test_session.add(DeclarationRecord(external_course_id="S2", participant_rut="1-9"))
        test_session.commit()
        assert len(test_session.exec(select(DeclarationRecord)).all()) == 2


class TestCourse:
    def test_external_id_optional(self, test_session: Session):
        course = Course(name="Excel Avanzado")
        test_session.add(course)
        test_session.commit()
        test_session.refresh(course)
        assert course.external_id is None
        assert course.modality == "presencial"

    def test_external_id_is_unique(self, test_session: Session):
        test_session.add(Course(name="A", external_id="6731234"))
        test_session.commit()
        test_session.add(Course(name="B", external_id="6731234"))
        with pytest.raises(sqlalchemy.exc.IntegrityError):
            test_session.commit()


class TestSyncModels:
    def test_session_defaults(self):
        session = SyncSession(
            session_id="sync_1_a", otec="76123456", declaration_type="3", input_data=["1"]
        )
        assert session.course_ref is None
        assert session.created_at is not None

    def test_status_record_defaults_to_idle(self):
        record = SyncStatusRecord(course_ref="C1")
        assert record.status == SyncStatus.IDLE
        assert record.attempt == 0
