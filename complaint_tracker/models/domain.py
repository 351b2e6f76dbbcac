"""Domain models - work orders, their numbering counters, and the records they point at."""
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, Enum as SQLEnum
from complaint_tracker.database import Base
from complaint_tracker.models.enums import WorkOrderStatus


def _status_enum(name: str) -> SQLEnum:
    # Store the display values ("In-progress"), not the member names
    return SQLEnum(
        WorkOrderStatus,
        name=name,
        values_callable=lambda members: [m.value for m in members],
    )


class Report(Base):
    """
    A citizen complaint. Owned by the intake side of the system.

    The lifecycle engine only ever writes `status`.
    """
    __tablename__ = "reports"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    report_code = Column(String, nullable=False)
    classification = Column(String, nullable=False)
    location = Column(String, nullable=True)
    description = Column(String, nullable=True)
    status = Column(_status_enum("report_status"), nullable=False, default=WorkOrderStatus.SUBMITTED)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class StaffMember(Base):
    """Staff account used to resolve actor and assignee display names."""
    __tablename__ = "staff_members"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    position = Column(String, nullable=True)  # "Admin" grants audit purge


class WorkOrder(Base):
    """
    The assignment of one report to field personnel.

    Invariants enforced by the lifecycle orchestrator:
    - At most one work order per report (report_id is indexed, not constrained)
    - sequence_number is assigned once at creation and never changes
    - Completed and Rejected are terminal
    - assigned_to is set before status leaves Submitted
    """
    __tablename__ = "work_orders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    report_id = Column(Integer, nullable=False, index=True)
    sequence_number = Column(String, nullable=False, unique=True)
    status = Column(_status_enum("work_order_status"), nullable=False, default=WorkOrderStatus.SUBMITTED)
    assigned_to = Column(String, nullable=True)

    # Completion evidence, set together with a terminal status
    evidence_handle = Column(String, nullable=True)
    evidence_original_name = Column(String, nullable=True)
    completion_timestamp = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_terminal(self) -> bool:
        return WorkOrderStatus(self.status).is_terminal


class SequenceCounter(Base):
    """Last issued work order number for one period key (e.g. "25-01")."""
    __tablename__ = "sequence_counters"

    period_key = Column(String, primary_key=True)
    seq = Column(Integer, nullable=False, default=0)
