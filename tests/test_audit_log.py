"""
Tests for the audit trail.

These tests prove:
- Every successful mutation leaves an entry with a resolved (or "Unknown") actor
- Display names are frozen at write time
- Lost audit writes never fail the operation they describe
- Only administrators can purge, and only below a cutoff
"""
import logging
import pytest
from datetime import datetime
from pydantic import ValidationError
from complaint_tracker.models.audit import AuditEntry, serialize_value
from complaint_tracker.models.domain import StaffMember, WorkOrder
from complaint_tracker.models.enums import AuditAction, WorkOrderStatus
from complaint_tracker.services.audit_log import (
    AuditLogWriter,
    AuditRetention,
    MonotonicClock,
    UNKNOWN_ACTOR,
)
from complaint_tracker.services.collaborators import Actor, SqlIdentityLookup
from complaint_tracker.services.errors import Forbidden, MissingEvidence


class TestAuditCompleteness:
    """Every status or assignee change that succeeds is on record."""

    def test_each_change_has_an_entry(self, db_session, orchestrator, sample_report, actor, evidence):
        work_order = orchestrator.create_or_assign(sample_report.id, None, actor)
        orchestrator.create_or_assign(sample_report.id, "officer_a", actor)
        orchestrator.change_status(work_order.id, WorkOrderStatus.ACCEPTED, actor)
        orchestrator.change_status(work_order.id, WorkOrderStatus.COMPLETED, actor, evidence=evidence)

        entries = orchestrator.audit.entries_for("WorkOrder", work_order.id)

        assert [e.action for e in entries] == [
            AuditAction.CREATED.value,
            AuditAction.ASSIGNEE_CHANGED.value,
            AuditAction.STATUS_CHANGED.value,
            AuditAction.STATUS_CHANGED.value,
            AuditAction.EVIDENCE_UPLOADED.value,
        ]
        for entry in entries:
            assert entry.entity_type == "WorkOrder"
            assert entry.old_value is not None or entry.new_value is not None
            assert entry.actor_id == "admin_1"
            assert entry.actor_display_name == "Maria Santos"
            assert entry.origin_address == "10.0.0.5"

    def test_refused_operations_write_nothing(self, db_session, orchestrator, sample_report, actor):
        work_order = orchestrator.create_or_assign(sample_report.id, "officer_a", actor)

        with pytest.raises(MissingEvidence):
            orchestrator.change_status(work_order.id, WorkOrderStatus.COMPLETED, actor)

        assert db_session.query(AuditEntry).count() == 1

    def test_list_is_newest_first(self, orchestrator, sample_report, actor):
        work_order = orchestrator.create_or_assign(sample_report.id, "officer_a", actor)
        orchestrator.change_status(work_order.id, WorkOrderStatus.ACCEPTED, actor)

        entries = orchestrator.list_audit_entries()

        assert [e.action for e in entries] == [
            AuditAction.STATUS_CHANGED.value,
            AuditAction.CREATED.value,
        ]
        assert entries[0].recorded_at > entries[1].recorded_at


class TestActorResolution:
    """Actor names are looked up once, when the entry is written."""

    def test_unknown_actor_is_recorded_as_unknown(self, db_session, staff):
        writer = AuditLogWriter(db_session, SqlIdentityLookup(db_session))

        entry = writer.append(
            Actor("ghost_9", "10.0.0.9"), "WorkOrder", 1, AuditAction.STATUS_CHANGED,
            {"status": "Submitted"}, {"status": "Accepted"}
        )

        assert entry.actor_display_name == UNKNOWN_ACTOR

    def test_failing_lookup_does_not_block_the_write(self, db_session):
        class BrokenIdentity:
            def resolve_actor_name(self, actor_id):
                raise TimeoutError("directory unreachable")

        writer = AuditLogWriter(db_session, BrokenIdentity())

        entry = writer.append(
            Actor("admin_1", "10.0.0.5"), "WorkOrder", 1, AuditAction.DELETED,
            {"sequence_number": "PA25-01-00001", "status": "Accepted", "assigned_to": "officer_a"}, None
        )

        assert entry.id is not None
        assert entry.actor_display_name == UNKNOWN_ACTOR

    def test_internal_append_returns_the_entry(self, orchestrator, actor):
        entry = orchestrator.append_audit_entry(
            actor, "WorkOrder", 7, AuditAction.STATUS_CHANGED,
            {"status": "Submitted"}, {"status": "Accepted"}
        )

        assert entry.entity_id == "7"
        assert entry.actor_display_name == "Maria Santos"
        assert entry.new_value == {"status": "Accepted"}

    def test_rename_does_not_rewrite_history(self, db_session, staff, orchestrator, sample_report, actor):
        orchestrator.create_or_assign(sample_report.id, "officer_a", actor)

        admin = db_session.query(StaffMember).filter(StaffMember.id == "admin_1").one()
        admin.name = "Maria Santos-Cruz"
        db_session.commit()

        entry = db_session.query(AuditEntry).one()
        assert entry.actor_display_name == "Maria Santos"


class TestAuditWriteFailure:
    """Losing an entry is logged, never raised."""

    def test_operation_succeeds_when_audit_table_is_gone(self, db_session, orchestrator, sample_report, actor, caplog):
        AuditEntry.__table__.drop(db_session.get_bind())

        with caplog.at_level(logging.ERROR, logger="complaint_tracker.services.audit_log"):
            work_order = orchestrator.create_or_assign(sample_report.id, "officer_a", actor)

        assert work_order.id is not None
        assert db_session.query(WorkOrder).count() == 1
        assert "Audit entry lost" in caplog.text


class TestValueSchemas:
    """Old and new values have one documented shape per action."""

    def test_status_value_is_normalised(self):
        assert serialize_value(AuditAction.STATUS_CHANGED, {"status": WorkOrderStatus.IN_PROGRESS}) == {
            "status": "In-progress"
        }

    def test_none_stays_none(self):
        assert serialize_value(AuditAction.EVIDENCE_UPLOADED, None) is None

    def test_unknown_status_is_rejected(self):
        with pytest.raises(ValidationError):
            serialize_value(AuditAction.STATUS_CHANGED, {"status": "Done"})

    def test_assignee_value_requires_name(self):
        with pytest.raises(ValidationError):
            serialize_value(AuditAction.ASSIGNEE_CHANGED, {"staff_id": "officer_a"})


class TestRecordedAt:
    """recorded_at never repeats or goes backwards within a process."""

    def test_frozen_wall_clock_still_increases(self):
        clock = MonotonicClock(lambda: datetime(2025, 1, 1, 8, 0, 0))

        stamps = [clock() for _ in range(5)]

        assert stamps == sorted(stamps)
        assert len(set(stamps)) == 5

    def test_clock_going_backwards_is_ignored(self):
        readings = iter([datetime(2025, 1, 1, 8, 0, 5), datetime(2025, 1, 1, 8, 0, 1)])
        clock = MonotonicClock(lambda: next(readings))

        first, second = clock(), clock()

        assert second > first


class TestAuditImmutability:
    """Audit entries are append-only from the engine's point of view."""

    def test_writer_has_no_update_or_delete(self):
        assert not hasattr(AuditLogWriter, "update")
        assert not hasattr(AuditLogWriter, "delete")
        assert not hasattr(AuditLogWriter, "purge_before")


class TestAuditPurge:
    """Administrator-only retention purge."""

    def _write(self, db_session, when):
        writer = AuditLogWriter(db_session, SqlIdentityLookup(db_session), clock=lambda: when)
        return writer.append(
            Actor("admin_1", "10.0.0.5"), "WorkOrder", 1, AuditAction.STATUS_CHANGED,
            {"status": "Submitted"}, {"status": "Accepted"}
        )

    def test_non_admin_is_forbidden(self, db_session, staff):
        self._write(db_session, datetime(2024, 1, 1))
        retention = AuditRetention(db_session, SqlIdentityLookup(db_session))

        with pytest.raises(Forbidden):
            retention.purge_before(Actor("officer_a", "10.0.0.7"), datetime(2025, 1, 1))

        assert db_session.query(AuditEntry).count() == 1

    def test_admin_purges_only_older_entries(self, db_session, staff):
        self._write(db_session, datetime(2024, 1, 1))
        self._write(db_session, datetime(2024, 6, 1))
        kept = self._write(db_session, datetime(2025, 3, 1))
        retention = AuditRetention(db_session, SqlIdentityLookup(db_session))

        deleted = retention.purge_before(Actor("admin_1", "10.0.0.5"), datetime(2025, 1, 1))

        assert deleted == 2
        remaining = db_session.query(AuditEntry).all()
        assert [e.id for e in remaining] == [kept.id]
