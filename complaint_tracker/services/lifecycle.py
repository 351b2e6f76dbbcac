"""
Lifecycle orchestrator - the only path that mutates a work order.

Status machine: Submitted -> Accepted -> In-progress -> Completed | Rejected.
Every call checks its preconditions before writing anything, then:
  1. commits the work order change,
  2. writes one audit entry per distinct change (best effort),
  3. mirrors the status onto the report (MirrorFailed if that fails).
"""
import logging
import threading
from collections import defaultdict
from typing import List, Optional

from complaint_tracker.models.audit import AuditEntry
from complaint_tracker.models.domain import WorkOrder
from complaint_tracker.models.enums import AuditAction, WorkOrderStatus
from complaint_tracker.services.audit_log import AuditLogWriter
from complaint_tracker.services.collaborators import (
    Actor,
    Evidence,
    SqlIdentityLookup,
    SqlReportAccessor,
)
from complaint_tracker.services.errors import (
    AlreadyTerminal,
    EvidenceUnavailable,
    MissingEvidence,
    NotFound,
    Unassigned,
)
from complaint_tracker.services.mirror import ReportMirror
from complaint_tracker.services.sequence import SequenceAllocator
from complaint_tracker.services.work_orders import WorkOrderStore

logger = logging.getLogger(__name__)

ENTITY_TYPE = "WorkOrder"

# Distinguishes "leave assignee alone" from "clear assignee"
UNSET = object()

# Serialises the find-then-create of a report's work order within this process
_report_locks = defaultdict(threading.Lock)
_report_locks_guard = threading.Lock()


def _report_lock(report_id: int) -> threading.Lock:
    with _report_locks_guard:
        return _report_locks[report_id]


def _work_order_value(work_order: WorkOrder) -> dict:
    return {
        "sequence_number": work_order.sequence_number,
        "status": work_order.status,
        "assigned_to": work_order.assigned_to,
    }


class LifecycleOrchestrator:
    """Enforces the work order status machine and its side effects."""

    def __init__(self, store: WorkOrderStore, mirror: ReportMirror, audit: AuditLogWriter, reports, evidence_store):
        self.store = store
        self.mirror = mirror
        self.audit = audit
        self.reports = reports
        self.evidence_store = evidence_store

    # Reads
    def list_work_orders(self) -> List[WorkOrder]:
        return self.store.list_all()

    def get_work_order(self, work_order_id: int) -> WorkOrder:
        return self.store.get(work_order_id)

    def list_audit_entries(self) -> List[AuditEntry]:
        return self.audit.list_entries()

    def append_audit_entry(
        self,
        actor: Actor,
        entity_type: str,
        entity_id,
        action: AuditAction,
        old_value=None,
        new_value=None
    ) -> AuditEntry:
        """Strict append for in-process callers; not exposed over HTTP."""
        return self.audit.append(actor, entity_type, entity_id, action, old_value, new_value)

    # Mutations
    def create_or_assign(self, report_id: int, assignee: Optional[str], actor: Actor) -> WorkOrder:
        """
        Assign a report to a staff member.

        Creates the report's work order at Submitted if it has none, otherwise
        changes the assignee and leaves the status as it is.

        Concurrent assigns of one report are serialised per process, so only
        the first creates. Separate worker processes sharing a database are
        not coordinated here.
        """
        if self.reports.get_report(report_id) is None:
            raise NotFound("Report", report_id)

        with _report_lock(report_id):
            existing = self.store.find_by_report(report_id)
            if existing is None:
                work_order = self.store.create(report_id, WorkOrderStatus.SUBMITTED, assignee=assignee or None)

        if existing is not None:
            return self.update_work_order(existing.id, actor, assigned_to=assignee)

        self.audit.record(actor, ENTITY_TYPE, work_order.id, AuditAction.CREATED,
                          None, _work_order_value(work_order))
        self.mirror.sync_status(report_id, WorkOrderStatus.SUBMITTED, work_order)
        return work_order

    def change_status(
        self,
        work_order_id: int,
        target_status: WorkOrderStatus,
        actor: Actor,
        evidence: Optional[Evidence] = None
    ) -> WorkOrder:
        """
        Move a work order to target_status.

        Completed and Rejected need evidence in the same call. Submitted
        removes the work order and returns its last state.
        """
        return self.update_work_order(work_order_id, actor, status=target_status, evidence=evidence)

    def update_work_order(
        self,
        work_order_id: int,
        actor: Actor,
        status: Optional[WorkOrderStatus] = None,
        assigned_to=UNSET,
        evidence: Optional[Evidence] = None
    ) -> WorkOrder:
        """
        Apply a status and/or assignee change.

        Refusal order: NotFound, AlreadyTerminal, Unassigned, MissingEvidence.
        Fields set to their current value are not changes and are not audited.
        """
        work_order = self.store.get(work_order_id)
        self._refuse_if_terminal(work_order)

        current = WorkOrderStatus(work_order.status)
        target = WorkOrderStatus(status) if status is not None else current

        if target == WorkOrderStatus.SUBMITTED and status is not None:
            return self._remove(work_order, actor)

        changes = {}
        previous_assignee = work_order.assigned_to
        assignee = previous_assignee
        if assigned_to is not UNSET:
            assignee = assigned_to or None
            if assignee != previous_assignee:
                changes["assigned_to"] = assignee

        if target != WorkOrderStatus.SUBMITTED and assignee is None:
            raise Unassigned(work_order.id)

        if target != current:
            if target.is_terminal:
                if evidence is None or not evidence.content:
                    raise MissingEvidence(work_order.id, target.value)
                original_name = evidence.original_name or ""
                # Bytes are stored before the update; a failed update leaves an orphaned file
                try:
                    handle = self.evidence_store.store_file(evidence.content, original_name)
                except OSError as exc:
                    logger.exception("Evidence for work order %s could not be stored", work_order.id)
                    raise EvidenceUnavailable(work_order.id, original_name) from exc
                changes["evidence_handle"] = handle
                changes["evidence_original_name"] = original_name
                changes["completion_timestamp"] = self.store.clock()
            changes["status"] = target

        if evidence is not None and "evidence_handle" not in changes:
            raise ValueError("Completion evidence can only be attached when completing or rejecting")

        if not changes:
            return work_order

        updated = self.store.update(work_order.id, changes)

        if "assigned_to" in changes:
            self.audit.record(actor, ENTITY_TYPE, updated.id, AuditAction.ASSIGNEE_CHANGED,
                              self._assignee_value(previous_assignee),
                              self._assignee_value(assignee))
        if "status" in changes:
            self.audit.record(actor, ENTITY_TYPE, updated.id, AuditAction.STATUS_CHANGED,
                              {"status": current}, {"status": target})
        if "evidence_handle" in changes:
            self.audit.record(actor, ENTITY_TYPE, updated.id, AuditAction.EVIDENCE_UPLOADED,
                              None, {"handle": changes["evidence_handle"],
                                     "original_name": changes["evidence_original_name"]})
        if "status" in changes:
            self.mirror.sync_status(updated.report_id, target, updated)

        return updated

    def unassign(self, work_order_id: int, actor: Actor) -> WorkOrder:
        """Remove a live work order; its report goes back to Submitted."""
        work_order = self.store.get(work_order_id)
        self._refuse_if_terminal(work_order)
        return self._remove(work_order, actor)

    def delete_work_order(self, work_order_id: int, actor: Actor) -> WorkOrder:
        """Full reset. Unlike unassign, allowed on Completed and Rejected work orders."""
        work_order = self.store.get(work_order_id)
        return self._remove(work_order, actor)

    def _remove(self, work_order: WorkOrder, actor: Actor) -> WorkOrder:
        last_state = self.store.delete(work_order.id)
        self.audit.record(actor, ENTITY_TYPE, last_state.id, AuditAction.DELETED,
                          _work_order_value(last_state), None)
        self.mirror.sync_status(last_state.report_id, WorkOrderStatus.SUBMITTED, last_state)
        return last_state

    def _refuse_if_terminal(self, work_order: WorkOrder) -> None:
        if work_order.is_terminal:
            raise AlreadyTerminal(work_order.id, WorkOrderStatus(work_order.status).value)

    def _assignee_value(self, staff_id: Optional[str]) -> Optional[dict]:
        if staff_id is None:
            return None
        return {"staff_id": staff_id, "display_name": self.audit.resolve_name(staff_id)}


def build_orchestrator(
    db,
    evidence_store,
    allocator=None,
    identity=None,
    reports=None
) -> LifecycleOrchestrator:
    """Wire the engine over one database session, defaulting to the SQL collaborators."""
    identity = identity or SqlIdentityLookup(db)
    reports = reports or SqlReportAccessor(db)
    store = WorkOrderStore(db, allocator or SequenceAllocator(db))
    return LifecycleOrchestrator(
        store=store,
        mirror=ReportMirror(reports),
        audit=AuditLogWriter(db, identity),
        reports=reports,
        evidence_store=evidence_store
    )
