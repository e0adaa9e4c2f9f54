"""
Review Service - issue reports on pooled items and their escalation to billing review.

Flow:
1. Operator reports defects per pooled item (latest report replaces prior)
2. Send to review: one submission per order in the session, all carrying
   the aggregated issue text
3. Orders sit in REVIEW until billing corrects them (RE_INVOICED)

Completion stays blocked while any order is in REVIEW, and while a report
exists whose orders are not all corrected yet.
"""

import asyncio
import structlog
from typing import Dict, List, Optional, Sequence, TYPE_CHECKING

from models.issue import IssueReport, IssueTag, ReviewRequest, REVIEW_REASON_PREFIX
from models.order import BillingStatus, SourceOrder
from models.pool import PooledItem
from exceptions import (
    AppError,
    IssueReportInvalidError,
    ReviewNotAllowedError,
    ReviewSubmissionError,
)

if TYPE_CHECKING:
    from integrations.fulfillment_api import FulfillmentApiClient

logger = structlog.get_logger(__name__)


class IssueReviewService:
    """Issue reports and review escalation for one packing session."""

    def __init__(self):
        self._reports: Dict[str, IssueReport] = {}

    @property
    def reports(self) -> List[IssueReport]:
        return list(self._reports.values())

    def report_for(self, item_key: str) -> Optional[IssueReport]:
        return self._reports.get(item_key)

    # ===================
    # REPORTING
    # ===================

    def report_issue(
        self,
        item: PooledItem,
        tags: Sequence[IssueTag],
        note: Optional[str] = None,
        orders: Sequence[SourceOrder] = ()
    ) -> IssueReport:
        """
        Record (or replace) the issue report for a pooled item.

        An "other" note counts as an issue only when it has text; the
        `other` tag on its own does not.

        Raises:
            ReviewNotAllowedError: If the session's orders are already under review
            IssueReportInvalidError: If no issue is selected
        """
        if any(order.is_under_review for order in orders):
            raise ReviewNotAllowedError("Orders already sent for review")

        note = (note or "").strip() or None
        # Keep tag order stable and drop repeats
        unique_tags: List[IssueTag] = []
        for tag in tags:
            try:
                tag = IssueTag(tag)
            except ValueError:
                raise IssueReportInvalidError(item.item_key)
            if tag not in unique_tags:
                unique_tags.append(tag)

        report = IssueReport(
            item_key=item.item_key,
            item_name=item.name,
            tags=unique_tags,
            note=note,
            order_ids=item.order_ids,
        )
        if not report.issues:
            raise IssueReportInvalidError(item.item_key)

        replaced = item.item_key in self._reports
        self._reports[item.item_key] = report

        logger.info(
            "issue_reported",
            item_key=item.item_key,
            issues=report.issues,
            replaced=replaced
        )
        return report

    def clear_issue(self, item_key: str) -> bool:
        removed = self._reports.pop(item_key, None) is not None
        if removed:
            logger.info("issue_cleared", item_key=item_key)
        return removed

    def reason_text(self) -> str:
        """Aggregated text sent with every review submission."""
        notes = " | ".join(report.describe() for report in self._reports.values())
        return f"{REVIEW_REASON_PREFIX} {notes}"

    # ===================
    # ESCALATION
    # ===================

    async def send_to_review(
        self,
        api: "FulfillmentApiClient",
        orders: Sequence[SourceOrder],
        reporter_email: str
    ) -> List[str]:
        """
        Fan out one review submission per order.

        Successful orders are marked REVIEW locally until the backend confirms
        otherwise. Reports are cleared only if every submission succeeded.

        Returns:
            Order numbers sent to review

        Raises:
            ReviewNotAllowedError: If nothing is reported or orders are already in review
            ReviewSubmissionError: If any submission failed
        """
        if any(order.is_under_review for order in orders):
            raise ReviewNotAllowedError("Orders already sent for review")
        if not self._reports:
            raise ReviewNotAllowedError("No saved issues to send")

        reason = self.reason_text()
        requests = [
            ReviewRequest(order_id=order.id, reason_text=reason, reporter_email=reporter_email)
            for order in orders
        ]

        logger.info("sending_to_review", order_ids=[r.order_id for r in requests])

        results = await asyncio.gather(
            *(api.submit_review(request) for request in requests),
            return_exceptions=True
        )

        sent, failed, reasons = [], [], []
        for order, result in zip(orders, results):
            if isinstance(result, BaseException):
                failed.append(order.id)
                reasons.append(result.message if isinstance(result, AppError) else str(result))
                logger.error("review_submission_failed", order_id=order.id, error=str(result))
            else:
                order.billing_status = BillingStatus.REVIEW
                sent.append(order.id)

        if failed:
            raise ReviewSubmissionError(failed, reasons[0])

        self._reports.clear()
        logger.info("sent_to_review", order_ids=sent)
        return sent

    # ===================
    # COMPLETION GATING
    # ===================

    def completion_errors(self, orders: Sequence[SourceOrder]) -> List[str]:
        """Issue/review reasons that block completing the session."""
        errors = [
            f"Order #{order.id} is under review"
            for order in orders
            if order.is_under_review
        ]

        corrected = {order.id for order in orders if order.is_re_invoiced}
        for report in self._reports.values():
            if not report.order_ids or not set(report.order_ids) <= corrected:
                errors.append(f'Item "{report.item_name}" has an unresolved issue report')

        return errors
