"""Persistence of work orders. Numbering happens here; lifecycle rules do not."""
import logging
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from complaint_tracker.config import Config
from complaint_tracker.models.domain import WorkOrder
from complaint_tracker.models.enums import WorkOrderStatus
from complaint_tracker.services.errors import NotFound

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset({
    "status",
    "assigned_to",
    "evidence_handle",
    "evidence_original_name",
    "completion_timestamp",
})


def period_key_for(moment: datetime) -> str:
    """Two-digit year and month of the creation instant, e.g. "25-01"."""
    return moment.strftime("%y-%m")


def format_sequence_number(
    period_key: str,
    seq: int,
    prefix: str = Config.SEQUENCE_PREFIX,
    width: int = Config.SEQUENCE_WIDTH,
) -> str:
    """format_sequence_number("25-01", 7) -> "PA25-01-00007"."""
    return f"{prefix}{period_key}-{seq:0{width}d}"


class WorkOrderStore:
    """CRUD over work orders; the orchestrator is its only caller."""

    def __init__(self, db: Session, allocator, clock: Callable[[], datetime] = datetime.utcnow):
        self.db = db
        self.allocator = allocator
        self.clock = clock

    def create(
        self,
        report_id: int,
        initial_status: WorkOrderStatus = WorkOrderStatus.SUBMITTED,
        assignee: Optional[str] = None
    ) -> WorkOrder:
        """
        Number and persist a new work order.

        AllocationUnavailable propagates untouched: nothing is written without a number.
        """
        now = self.clock()
        key = period_key_for(now)
        seq = self.allocator.allocate(key)

        work_order = WorkOrder(
            report_id=report_id,
            sequence_number=format_sequence_number(key, seq),
            status=initial_status,
            assigned_to=assignee,
            created_at=now,
            updated_at=now
        )
        self.db.add(work_order)
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.error("Sequence number %s burned: work order insert failed", work_order.sequence_number)
            raise
        self.db.refresh(work_order)
        logger.info("Created work order %s for report %s", work_order.sequence_number, report_id)
        return work_order

    def get(self, work_order_id: int) -> WorkOrder:
        work_order = self.db.query(WorkOrder).filter(WorkOrder.id == work_order_id).first()
        if not work_order:
            raise NotFound("Work order", work_order_id)
        return work_order

    def find_by_report(self, report_id: int) -> Optional[WorkOrder]:
        return self.db.query(WorkOrder).filter(WorkOrder.report_id == report_id).first()

    def list_all(self) -> List[WorkOrder]:
        return self.db.query(WorkOrder).order_by(WorkOrder.created_at.desc(), WorkOrder.id.desc()).all()

    def update(self, work_order_id: int, fields: dict) -> WorkOrder:
        """Partial merge: only the keys present in `fields` change."""
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Work order fields cannot be updated: {', '.join(sorted(unknown))}")

        work_order = self.get(work_order_id)
        for name, value in fields.items():
            setattr(work_order, name, value)
        work_order.updated_at = self.clock()
        self.db.commit()
        self.db.refresh(work_order)
        return work_order

    def delete(self, work_order_id: int) -> WorkOrder:
        """Hard delete. Returns a detached copy of the last stored state."""
        work_order = self.get(work_order_id)
        last_state = WorkOrder(**{
            column.name: getattr(work_order, column.name)
            for column in WorkOrder.__table__.columns
        })
        self.db.delete(work_order)
        self.db.commit()
        logger.info("Deleted work order %s", last_state.sequence_number)
        return last_state
