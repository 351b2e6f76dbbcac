"""Enums for the tracker - these define the valid values for statuses and audit actions."""
from enum import Enum


class WorkOrderStatus(str, Enum):
    """The five statuses shared by a work order and its report."""
    SUBMITTED = "Submitted"
    ACCEPTED = "Accepted"
    IN_PROGRESS = "In-progress"
    COMPLETED = "Completed"
    REJECTED = "Rejected"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({WorkOrderStatus.COMPLETED, WorkOrderStatus.REJECTED})


class AuditAction(str, Enum):
    """One kind per logically distinct change to a work order."""
    CREATED = "Created work order"
    ASSIGNEE_CHANGED = "Changed assignee"
    STATUS_CHANGED = "Changed status"
    EVIDENCE_UPLOADED = "Uploaded completion evidence"
    DELETED = "Deleted work order"
