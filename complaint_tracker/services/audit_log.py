"""
Audit log writer - the only code that inserts audit entries.

Exposes append and read. There is no update path; deletion exists only as the
administrator purge in AuditRetention, which the lifecycle engine never calls.
"""
import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from complaint_tracker.models.audit import AuditEntry, serialize_value
from complaint_tracker.models.enums import AuditAction
from complaint_tracker.services.collaborators import Actor
from complaint_tracker.services.errors import Forbidden

logger = logging.getLogger(__name__)

UNKNOWN_ACTOR = "Unknown"


class MonotonicClock:
    """Wall clock that never returns the same or an earlier instant twice."""

    def __init__(self, clock: Callable[[], datetime] = datetime.utcnow):
        self._clock = clock
        self._last: Optional[datetime] = None
        self._lock = threading.Lock()

    def __call__(self) -> datetime:
        with self._lock:
            now = self._clock()
            if self._last is not None and now <= self._last:
                now = self._last + timedelta(microseconds=1)
            self._last = now
            return now


# Shared by every writer in the process
recorded_at_clock = MonotonicClock()


class AuditLogWriter:
    """Appends audit entries with the actor's display name frozen at write time."""

    def __init__(self, db: Session, identity, clock: Callable[[], datetime] = recorded_at_clock):
        self.db = db
        self.identity = identity
        self.clock = clock

    def resolve_name(self, actor_id: Optional[str]) -> str:
        """Display name for actor_id, or "Unknown" when the lookup fails or finds nothing."""
        if not actor_id:
            return UNKNOWN_ACTOR
        try:
            name = self.identity.resolve_actor_name(actor_id)
        except Exception:
            logger.warning("Identity lookup failed for %s", actor_id, exc_info=True)
            return UNKNOWN_ACTOR
        return name or UNKNOWN_ACTOR

    def append(
        self,
        actor: Actor,
        entity_type: str,
        entity_id,
        action: AuditAction,
        old_value=None,
        new_value=None
    ) -> AuditEntry:
        """Write one entry. Storage errors propagate."""
        entry = AuditEntry(
            actor_id=actor.actor_id,
            actor_display_name=self.resolve_name(actor.actor_id),
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=action.value,
            old_value=serialize_value(action, old_value),
            new_value=serialize_value(action, new_value),
            origin_address=actor.origin_address,
            recorded_at=self.clock()
        )
        self.db.add(entry)
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self.db.refresh(entry)
        return entry

    def record(
        self,
        actor: Actor,
        entity_type: str,
        entity_id,
        action: AuditAction,
        old_value=None,
        new_value=None
    ) -> Optional[AuditEntry]:
        """
        Best-effort append used by the lifecycle engine.

        A lost entry is logged, never raised: the mutation it describes has
        already committed and must still be reported as a success. This
        covers storage errors and snapshots that fail their value schema.
        """
        try:
            return self.append(actor, entity_type, entity_id, action, old_value, new_value)
        except Exception:
            logger.exception(
                "Audit entry lost: %s on %s %s by %s",
                action.value, entity_type, entity_id, actor.actor_id
            )
            return None

    def list_entries(self) -> List[AuditEntry]:
        """All entries, newest first."""
        return self.db.query(AuditEntry).order_by(AuditEntry.recorded_at.desc(), AuditEntry.id.desc()).all()

    def entries_for(self, entity_type: str, entity_id) -> List[AuditEntry]:
        """History of one entity, oldest first."""
        return self.db.query(AuditEntry).filter(
            AuditEntry.entity_type == entity_type,
            AuditEntry.entity_id == str(entity_id)
        ).order_by(AuditEntry.recorded_at.asc(), AuditEntry.id.asc()).all()


class AuditRetention:
    """Administrator-only bulk removal of old audit entries."""

    def __init__(self, db: Session, identity):
        self.db = db
        self.identity = identity

    def purge_before(self, actor: Actor, cutoff: datetime) -> int:
        if not self.identity.is_administrator(actor.actor_id):
            raise Forbidden(f"{actor.actor_id} is not allowed to purge audit entries")

        deleted = self.db.query(AuditEntry).filter(
            AuditEntry.recorded_at < cutoff
        ).delete(synchronize_session=False)
        self.db.commit()
        logger.info("Purged %d audit entries before %s (by %s)", deleted, cutoff.isoformat(), actor.actor_id)
        return deleted
