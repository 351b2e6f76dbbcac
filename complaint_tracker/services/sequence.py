"""
Sequence allocation for work order numbers.

Numbers are scoped to a period key ("25-01"). Allocation must be a single
atomic read-modify-write at the storage layer: two callers with the same key
never see the same number, and a run of N callers receives a contiguous block.
"""
import logging
import threading
from typing import Dict, Optional

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from complaint_tracker.models.domain import SequenceCounter
from complaint_tracker.services.errors import AllocationUnavailable

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


class SequenceAllocator:
    """Issues numbers from the sequence_counters table."""

    def __init__(self, db: Session):
        self.db = db

    def allocate(self, period_key: str) -> int:
        """
        Increment and return the counter for period_key, starting at 1.

        The counter row is committed on its own, so a number handed out here
        stays used even if the caller fails to persist its work order.
        """
        try:
            stmt = self._upsert(period_key)
            seq = self.db.execute(stmt).scalar_one()
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Sequence allocation failed for period %s", period_key)
            raise AllocationUnavailable(period_key) from exc
        return seq

    def _upsert(self, period_key: str):
        dialect = self.db.get_bind().dialect.name
        insert = _UPSERT_DIALECTS.get(dialect)
        if insert is None:
            raise AllocationUnavailable(period_key)
        counters = SequenceCounter.__table__
        return (
            insert(counters)
            .values(period_key=period_key, seq=1)
            .on_conflict_do_update(
                index_elements=[counters.c.period_key],
                set_={"seq": counters.c.seq + 1},
            )
            .returning(counters.c.seq)
        )


class InMemorySequenceAllocator:
    """Process-local allocator with the same contract, for tests and embedding."""

    def __init__(self, initial: Optional[Dict[str, int]] = None):
        self._counters = dict(initial or {})
        self._lock = threading.Lock()

    def allocate(self, period_key: str) -> int:
        with self._lock:
            seq = self._counters.get(period_key, 0) + 1
            self._counters[period_key] = seq
            return seq

    def current(self, period_key: str) -> int:
        with self._lock:
            return self._counters.get(period_key, 0)
