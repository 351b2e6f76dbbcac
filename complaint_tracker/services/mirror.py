"""Keeps a report's status in step with its work order."""
import logging

from complaint_tracker.models.enums import WorkOrderStatus
from complaint_tracker.services.errors import MirrorFailed

logger = logging.getLogger(__name__)


class ReportMirror:
    """
    Copies work order status onto the report after the work order commits.

    The two records live in different stores and are not updated in one
    transaction. A failed copy raises MirrorFailed and leaves the work order
    as committed; reconciliation runs elsewhere.
    """

    def __init__(self, reports):
        self.reports = reports

    def sync_status(self, report_id: int, status: WorkOrderStatus, work_order=None) -> None:
        try:
            self.reports.set_report_status(report_id, status)
        except Exception as exc:
            logger.exception("Report %s could not be set to %s", report_id, status.value)
            raise MirrorFailed(report_id, status.value, work_order=work_order) from exc
