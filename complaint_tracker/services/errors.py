"""
Refusals and failures raised by the lifecycle engine.

Precondition refusals (NotFound, AlreadyTerminal, Unassigned, MissingEvidence,
Forbidden) are raised before anything is written. AllocationUnavailable aborts
a creation. MirrorFailed is raised after the work order change has committed.
"""
from typing import Optional


class LifecycleError(Exception):
    """Base class for everything the engine refuses or fails to do."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class NotFound(LifecycleError, LookupError):
    """The referenced work order or report does not exist."""
    def __init__(self, entity_type: str, entity_id):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} not found")


class AlreadyTerminal(LifecycleError):
    """Mutation attempted on a Completed or Rejected work order."""
    def __init__(self, work_order_id: int, status: str):
        self.work_order_id = work_order_id
        self.status = status
        super().__init__(
            f"REFUSAL: Work order {work_order_id} is {status} and can no longer be changed. "
            f"Delete it to start over."
        )


class Unassigned(LifecycleError):
    """Status advance (or assignee removal) on a work order without an assignee."""
    def __init__(self, work_order_id: int):
        self.work_order_id = work_order_id
        super().__init__(
            f"REFUSAL: Work order {work_order_id} has no assignee. "
            f"Assign it before moving it past Submitted."
        )


class MissingEvidence(LifecycleError):
    """Completion or rejection without a supporting document."""
    def __init__(self, work_order_id: int, status: str):
        self.work_order_id = work_order_id
        super().__init__(
            f"REFUSAL: Work order {work_order_id} cannot be marked {status} "
            f"without a completion document."
        )


class Forbidden(LifecycleError):
    """Actor lacks the privilege for the requested operation."""


class AllocationUnavailable(LifecycleError):
    """The sequence counter storage could not issue a number."""
    def __init__(self, period_key: str):
        self.period_key = period_key
        super().__init__(f"Could not allocate a work order number for period {period_key}")


class MirrorFailed(LifecycleError):
    """
    The report status could not be synchronised.

    The work order change is already committed; `work_order` holds its state.
    """
    def __init__(self, report_id: int, status: str, work_order: Optional[object] = None):
        self.report_id = report_id
        self.status = status
        self.work_order = work_order
        super().__init__(
            f"Work order change committed, but report {report_id} could not be set to {status}"
        )


class EvidenceUnavailable(LifecycleError):
    """The completion document could not be stored; nothing was changed."""
    def __init__(self, work_order_id: int, original_name: str):
        self.work_order_id = work_order_id
        self.original_name = original_name
        super().__init__(
            f"Could not store completion document {original_name!r} for work order {work_order_id}"
        )
