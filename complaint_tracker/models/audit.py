"""
Audit trail model - append-only record of every work order mutation.

Entries are written by the audit log writer only. Values are JSON snapshots
whose shape is fixed per action kind (see VALUE_SCHEMAS).
"""
from datetime import datetime
from typing import Dict, Optional, Type

from pydantic import BaseModel
from sqlalchemy import Column, String, Integer, DateTime, JSON

from complaint_tracker.database import Base
from complaint_tracker.models.enums import AuditAction, WorkOrderStatus


class AuditEntry(Base):
    """
    Immutable record of one state-changing fact.

    Invariants:
    - Once written, never edited
    - actor_display_name is resolved at write time and never re-resolved
    - recorded_at is strictly increasing within a process
    """
    __tablename__ = "audit_entries"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    actor_id = Column(String, nullable=False)
    actor_display_name = Column(String, nullable=False)
    entity_type = Column(String, nullable=False)  # e.g., "WorkOrder"
    entity_id = Column(String, nullable=False, index=True)
    action = Column(String, nullable=False, index=True)  # AuditAction value
    old_value = Column(JSON, nullable=True)
    new_value = Column(JSON, nullable=True)
    origin_address = Column(String, nullable=False)
    recorded_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)


# Value schemas, one per action kind
class WorkOrderValue(BaseModel):
    sequence_number: str
    status: WorkOrderStatus
    assigned_to: Optional[str] = None


class AssigneeValue(BaseModel):
    staff_id: str
    display_name: str


class StatusValue(BaseModel):
    status: WorkOrderStatus


class EvidenceValue(BaseModel):
    handle: str
    original_name: str


VALUE_SCHEMAS: Dict[AuditAction, Type[BaseModel]] = {
    AuditAction.CREATED: WorkOrderValue,
    AuditAction.ASSIGNEE_CHANGED: AssigneeValue,
    AuditAction.STATUS_CHANGED: StatusValue,
    AuditAction.EVIDENCE_UPLOADED: EvidenceValue,
    AuditAction.DELETED: WorkOrderValue,
}


def serialize_value(action: AuditAction, value) -> Optional[dict]:
    """Validate a snapshot against its action's schema and return plain JSON."""
    if value is None:
        return None
    schema = VALUE_SCHEMAS[action]
    return schema.model_validate(value).model_dump(mode="json")
