"""
Packing session request/response schemas and the completion wire format.
"""

from pydantic import AliasChoices, Field, field_validator
from typing import Optional, List
from enum import Enum
from decimal import Decimal

from models.base import BaseSchema
from models.order import SourceOrder
from models.pool import PooledItemView
from models.container import Container, LabelManifest
from models.issue import IssueReport


class SessionStatus(str, Enum):
    """Packing session lifecycle."""
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    ABANDONED = "ABANDONED"


# ===================
# REQUESTS
# ===================

class SessionCreate(BaseSchema):
    """Start a session for an explicit list of orders."""

    order_ids: List[str] = Field(..., min_length=1)
    customer_name: Optional[str] = None
    operator_email: str = Field(..., min_length=1)

    @field_validator("order_ids")
    @classmethod
    def dedupe_order_ids(cls, v: List[str]) -> List[str]:
        """Keep first occurrence order, drop repeats and blanks."""
        seen: List[str] = []
        for order_id in v:
            order_id = str(order_id).strip()
            if order_id and order_id not in seen:
                seen.append(order_id)
        return seen


class GroupSessionCreate(BaseSchema):
    """Start a session for every order held under a customer name."""

    customer_name: str = Field(..., min_length=1)
    operator_email: str = Field(..., min_length=1)
    current_order_id: Optional[str] = None


class AssignRequest(BaseSchema):
    item_key: str = Field(..., min_length=1)
    quantity: Decimal = Field(..., validation_alias=AliasChoices("quantity", "qty"))


class BulkAssignRequest(BaseSchema):
    item_keys: List[str] = Field(..., min_length=1)


class DropRequest(BaseSchema):
    item_key: str = Field(..., min_length=1)


# ===================
# RESPONSES
# ===================

class SessionSnapshot(BaseSchema):
    """Full state of a packing session."""

    id: str
    status: SessionStatus
    customer_name: str
    operator_email: str
    order_ids: List[str]
    orders: List[SourceOrder] = Field(default_factory=list)
    pool: List[PooledItemView] = Field(default_factory=list)
    containers: List[Container] = Field(default_factory=list)
    issues: List[IssueReport] = Field(default_factory=list)
    notices: List[str] = Field(default_factory=list)
    validation_errors: List[str] = Field(default_factory=list)


class CompletionResult(BaseSchema):
    """Returned once the backend accepted a completed session."""

    consolidated_id: str
    customer_name: str
    order_ids: List[str]
    manifests: List[LabelManifest] = Field(default_factory=list)


class BulkAssignResult(BaseSchema):
    container_id: str
    assigned_count: int


# ===================
# COMPLETION SUBMISSION
# ===================

class CompletionSubmission(BaseSchema):
    """
    Completed session as sent to the backend.

    `to_wire()` produces the backend's field names.
    """

    order_ids: List[str]
    customer_name: str
    containers: List[Container]

    def to_wire(self) -> dict:
        return {
            "invoice_numbers": self.order_ids,
            "customer_name": self.customer_name,
            "boxes": [
                {
                    "box_id": container.id,
                    "items": [
                        {
                            "item_id": line.item_key,
                            "item_name": line.name,
                            "item_code": line.code,
                            "quantity": str(line.quantity),
                            "bill_breakdown": [
                                {"invoice_no": c.order_id, "quantity": str(c.quantity)}
                                for c in line.source_breakdown
                            ],
                        }
                        for line in container.lines
                    ],
                }
                for container in self.containers
            ],
        }
