"""
Collaborators the lifecycle engine consumes but does not own.

The protocols are what the engine depends on. The SQL and disk classes are the
implementations wired in by the API; tests swap in their own.
"""
import logging
import os
import time
import uuid
from dataclasses import dataclass
from typing import Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from complaint_tracker.models.domain import Report, StaffMember
from complaint_tracker.models.enums import WorkOrderStatus
from complaint_tracker.services.errors import NotFound

logger = logging.getLogger(__name__)

ADMIN_POSITION = "Admin"


@dataclass(frozen=True)
class Actor:
    """Who is calling and from where; supplied per call by the transport layer."""
    actor_id: str
    origin_address: str


@dataclass(frozen=True)
class Evidence:
    """An uploaded completion document, not yet stored."""
    content: bytes
    original_name: str


class IdentityLookup(Protocol):
    def resolve_actor_name(self, actor_id: str) -> Optional[str]: ...

    def is_administrator(self, actor_id: str) -> bool: ...


class ReportAccessor(Protocol):
    def get_report(self, report_id: int) -> Optional[Report]: ...

    def set_report_status(self, report_id: int, status: WorkOrderStatus) -> None: ...


class EvidenceStore(Protocol):
    def store_file(self, content: bytes, original_name: str) -> str: ...


class SqlIdentityLookup:
    """Resolves staff ids against the staff_members table."""

    def __init__(self, db: Session):
        self.db = db

    def _staff(self, actor_id: str) -> Optional[StaffMember]:
        if not actor_id:
            return None
        return self.db.query(StaffMember).filter(StaffMember.id == actor_id).first()

    def resolve_actor_name(self, actor_id: str) -> Optional[str]:
        staff = self._staff(actor_id)
        return staff.name if staff else None

    def is_administrator(self, actor_id: str) -> bool:
        staff = self._staff(actor_id)
        return staff is not None and staff.position == ADMIN_POSITION


class SqlReportAccessor:
    """Reads and writes report rows in the same database as the engine."""

    def __init__(self, db: Session):
        self.db = db

    def get_report(self, report_id: int) -> Optional[Report]:
        return self.db.query(Report).filter(Report.id == report_id).first()

    def set_report_status(self, report_id: int, status: WorkOrderStatus) -> None:
        report = self.get_report(report_id)
        if report is None:
            raise NotFound("Report", report_id)
        report.status = status
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise


class DiskEvidenceStore:
    """Writes uploaded documents into a directory and returns the stored file name."""

    def __init__(self, directory: str):
        self.directory = directory

    def store_file(self, content: bytes, original_name: str) -> str:
        os.makedirs(self.directory, exist_ok=True)
        ext = os.path.splitext(original_name or "")[1]
        handle = f"report_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}{ext}"
        with open(os.path.join(self.directory, handle), "wb") as f:
            f.write(content)
        logger.debug("Stored evidence %r as %s (%d bytes)", original_name, handle, len(content))
        return handle
