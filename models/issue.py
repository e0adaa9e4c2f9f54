"""
Issue report schemas for defects found while packing.
"""

from pydantic import Field
from typing import Optional, List
from enum import Enum

from models.base import BaseSchema


class IssueTag(str, Enum):
    """Defect categories an operator can flag on a pooled item."""
    BATCH_MISMATCH = "batchMatch"
    EXPIRY = "expiryCheck"
    QUANTITY = "quantityCorrect"
    PACKAGING = "packagingGood"
    OTHER = "other"


ISSUE_TAG_LABELS = {
    IssueTag.BATCH_MISMATCH: "Batch mismatch",
    IssueTag.EXPIRY: "Expiry issue",
    IssueTag.QUANTITY: "Quantity incorrect",
    IssueTag.PACKAGING: "Damaged packaging",
}

REVIEW_REASON_PREFIX = "[Consolidated Packing]"


class IssueReport(BaseSchema):
    """Latest defect report for one pooled item."""

    item_key: str
    item_name: str
    tags: List[IssueTag] = Field(default_factory=list)
    note: Optional[str] = None
    order_ids: List[str] = Field(default_factory=list, description="Orders contributing the item")

    @property
    def issues(self) -> List[str]:
        """Human readable issue list, in tag order, note last."""
        texts = [ISSUE_TAG_LABELS[tag] for tag in self.tags if tag != IssueTag.OTHER]
        if self.note:
            texts.append(f"Other: {self.note}")
        return texts

    def describe(self) -> str:
        orders = ", ".join(f"#{order_id}" for order_id in self.order_ids)
        return f"{self.item_name} (Orders: {orders}): {', '.join(self.issues)}"


class IssueReportCreate(BaseSchema):
    """Request body for reporting an issue."""

    item_key: str = Field(..., min_length=1)
    tags: List[IssueTag] = Field(default_factory=list)
    note: Optional[str] = None


class ReviewRequest(BaseSchema):
    """One review submission for one order."""

    order_id: str
    reason_text: str
    reporter_email: str
