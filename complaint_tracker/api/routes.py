"""API routes for the work order lifecycle."""
from fastapi import APIRouter, Depends, File, Form, Header, HTTPException, Request, Response, UploadFile, status
from sqlalchemy.orm import Session
from datetime import timezone
from typing import List, Optional

from complaint_tracker.config import Config
from complaint_tracker.database import get_db
from complaint_tracker.models.enums import WorkOrderStatus
from complaint_tracker.services.audit_log import AuditRetention
from complaint_tracker.services.collaborators import (
    Actor,
    DiskEvidenceStore,
    Evidence,
    SqlIdentityLookup,
)
from complaint_tracker.services.errors import (
    AllocationUnavailable,
    AlreadyTerminal,
    EvidenceUnavailable,
    Forbidden,
    LifecycleError,
    MirrorFailed,
    MissingEvidence,
    NotFound,
    Unassigned,
)
from complaint_tracker.services.lifecycle import LifecycleOrchestrator, UNSET, build_orchestrator
from complaint_tracker.api.schemas import (
    AuditEntryResponse,
    AuditPurge,
    AuditPurgeResponse,
    RefusalResponse,
    WorkOrderAssign,
    WorkOrderResponse,
    WorkOrderUpdate,
)

router = APIRouter()

REFUSAL_RESPONSES = {
    404: {"model": RefusalResponse, "description": "Work order or report not found"},
    409: {"model": RefusalResponse, "description": "Refusal - terminal or unassigned work order"},
    503: {"model": RefusalResponse, "description": "Numbering or document storage unavailable"},
    502: {"model": RefusalResponse, "description": "Work order committed, report status not mirrored"},
}

_STATUS_CODES = [
    (NotFound, status.HTTP_404_NOT_FOUND),
    (AlreadyTerminal, status.HTTP_409_CONFLICT),
    (Unassigned, status.HTTP_409_CONFLICT),
    (MissingEvidence, 422),
    (Forbidden, status.HTTP_403_FORBIDDEN),
    (AllocationUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
    (EvidenceUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
    (MirrorFailed, status.HTTP_502_BAD_GATEWAY),
]


def refusal(exc: LifecycleError) -> HTTPException:
    """Translate an engine error into an HTTP error with a RefusalResponse body."""
    code = next(
        (code for kind, code in _STATUS_CODES if isinstance(exc, kind)),
        status.HTTP_400_BAD_REQUEST
    )
    detail = {"message": exc.message}
    if isinstance(exc, MirrorFailed) and exc.work_order is not None:
        detail["work_order_id"] = exc.work_order.id
    return HTTPException(status_code=code, detail=detail)


# Dependencies
def get_evidence_store() -> DiskEvidenceStore:
    return DiskEvidenceStore(Config.EVIDENCE_DIR)


def get_orchestrator(
    db: Session = Depends(get_db),
    evidence_store=Depends(get_evidence_store)
) -> LifecycleOrchestrator:
    return build_orchestrator(db, evidence_store)


def get_actor(request: Request, x_actor_id: str = Header(...)) -> Actor:
    """Caller identity is authenticated upstream and forwarded in X-Actor-Id."""
    origin = request.client.host if request.client else "unknown"
    return Actor(actor_id=x_actor_id, origin_address=origin)


# WorkOrder endpoints
@router.get("/work-orders", response_model=List[WorkOrderResponse])
def list_work_orders(orchestrator: LifecycleOrchestrator = Depends(get_orchestrator)):
    """List all work orders, newest first."""
    return orchestrator.list_work_orders()


@router.get("/work-orders/{work_order_id}", response_model=WorkOrderResponse, responses=REFUSAL_RESPONSES)
def get_work_order(work_order_id: int, orchestrator: LifecycleOrchestrator = Depends(get_orchestrator)):
    """Get a specific work order."""
    try:
        return orchestrator.get_work_order(work_order_id)
    except NotFound as e:
        raise refusal(e)


@router.post("/work-orders", response_model=WorkOrderResponse, responses=REFUSAL_RESPONSES)
def create_or_assign(
    data: WorkOrderAssign,
    orchestrator: LifecycleOrchestrator = Depends(get_orchestrator),
    actor: Actor = Depends(get_actor)
):
    """
    Assign a report.
    Creates its work order at Submitted, or changes the assignee of the existing one.
    """
    try:
        return orchestrator.create_or_assign(data.report_id, data.assigned_to, actor)
    except LifecycleError as e:
        raise refusal(e)


@router.put("/work-orders/{work_order_id}", response_model=WorkOrderResponse, responses=REFUSAL_RESPONSES)
def update_work_order(
    work_order_id: int,
    data: WorkOrderUpdate,
    orchestrator: LifecycleOrchestrator = Depends(get_orchestrator),
    actor: Actor = Depends(get_actor)
):
    """
    Change status and/or assignee.
    Completed and Rejected need a document: use the completion endpoint.
    """
    assigned_to = data.assigned_to if "assigned_to" in data.model_fields_set else UNSET
    try:
        return orchestrator.update_work_order(
            work_order_id,
            actor,
            status=data.status,
            assigned_to=assigned_to
        )
    except LifecycleError as e:
        raise refusal(e)


@router.post("/work-orders/{work_order_id}/completion", response_model=WorkOrderResponse, responses=REFUSAL_RESPONSES)
def upload_completion(
    work_order_id: int,
    status_value: WorkOrderStatus = Form(WorkOrderStatus.COMPLETED, alias="status"),
    file: Optional[UploadFile] = File(None),
    orchestrator: LifecycleOrchestrator = Depends(get_orchestrator),
    actor: Actor = Depends(get_actor)
):
    """Upload the site inspection document and close the work order."""
    evidence = None
    if file is not None:
        evidence = Evidence(content=file.file.read(), original_name=file.filename or "")
    try:
        return orchestrator.change_status(work_order_id, status_value, actor, evidence=evidence)
    except LifecycleError as e:
        raise refusal(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail={"message": str(e)})


@router.delete("/work-orders/{work_order_id}", status_code=status.HTTP_204_NO_CONTENT, responses=REFUSAL_RESPONSES)
def delete_work_order(
    work_order_id: int,
    orchestrator: LifecycleOrchestrator = Depends(get_orchestrator),
    actor: Actor = Depends(get_actor)
):
    """Delete a work order; its report returns to Submitted."""
    try:
        orchestrator.delete_work_order(work_order_id, actor)
    except LifecycleError as e:
        raise refusal(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Audit endpoints
@router.get("/audit-entries", response_model=List[AuditEntryResponse])
def list_audit_entries(orchestrator: LifecycleOrchestrator = Depends(get_orchestrator)):
    """List the audit trail, newest first."""
    return orchestrator.list_audit_entries()


@router.post("/audit-entries/purge", response_model=AuditPurgeResponse, responses={
    403: {"model": RefusalResponse, "description": "Actor is not an administrator"}
})
def purge_audit_entries(
    data: AuditPurge,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor)
):
    """Delete audit entries recorded before a cutoff. Administrators only."""
    cutoff = data.before
    if cutoff.tzinfo is not None:
        # recorded_at is stored as naive UTC
        cutoff = cutoff.astimezone(timezone.utc).replace(tzinfo=None)

    retention = AuditRetention(db, SqlIdentityLookup(db))
    try:
        deleted = retention.purge_before(actor, cutoff)
    except Forbidden as e:
        raise refusal(e)
    return AuditPurgeResponse(
        deleted_count=deleted,
        message=f"Purged {deleted} entries before {cutoff.isoformat()}"
    )
