"""Pydantic schemas for request/response validation."""
from datetime import datetime
from typing import Optional, Any
from pydantic import BaseModel, ConfigDict, Field
from complaint_tracker.models.enums import WorkOrderStatus


# WorkOrder schemas
class WorkOrderAssign(BaseModel):
    report_id: int
    assigned_to: Optional[str] = None


class WorkOrderUpdate(BaseModel):
    """Both fields optional; an omitted assigned_to is left alone, null clears it."""
    status: Optional[WorkOrderStatus] = None
    assigned_to: Optional[str] = None


class WorkOrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    report_id: int
    sequence_number: str
    status: WorkOrderStatus
    assigned_to: Optional[str]
    evidence_handle: Optional[str]
    evidence_original_name: Optional[str]
    completion_timestamp: Optional[datetime]
    created_at: datetime
    updated_at: datetime


# Audit schemas
class AuditEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    actor_id: str
    actor_display_name: str
    entity_type: str
    entity_id: str
    action: str
    old_value: Optional[Any]
    new_value: Optional[Any]
    origin_address: str
    recorded_at: datetime


class AuditPurge(BaseModel):
    before: datetime


class AuditPurgeResponse(BaseModel):
    deleted_count: int
    message: str


# Error response
class RefusalResponse(BaseModel):
    """Response when an action is refused."""
    message: str
    work_order_id: Optional[int] = Field(None, description="Set when a committed change could not be mirrored")
