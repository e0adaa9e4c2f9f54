"""
Hold schemas: orders parked to be packed together with sibling orders.
"""

from pydantic import Field
from typing import Any, Dict, Optional, List
from datetime import datetime

from models.base import BaseSchema


class HoldRecord(BaseSchema):
    """
    An order held for consolidation under a customer name.

    `customer_name` is the grouping key and is matched exactly.
    """

    order_id: str = Field(..., description="Held order number")
    customer_name: str = Field(..., description="Grouping key (exact match)")
    holder_email: str = Field(..., description="Operator who placed the hold")
    assigned_to_email: Optional[str] = Field(
        None,
        description="Operator the hold is delegated to"
    )
    held_at: datetime

    @classmethod
    def from_payload(cls, row: Dict[str, Any]) -> "HoldRecord":
        """
        Build a record from a backend hold row.

        The backend names the order `invoice_no`, the holder `held_by`,
        the delegate `assigned_to` and the timestamp `created_at`.

        Raises:
            KeyError: If a required backend field is missing
            pydantic.ValidationError: If a field has the wrong shape
        """
        return cls(
            order_id=str(row["invoice_no"]),
            customer_name=row["customer_name"],
            holder_email=row["held_by"],
            assigned_to_email=row.get("assigned_to") or None,
            held_at=row["created_at"],
        )

    def to_payload(self) -> Dict[str, Any]:
        """Inverse of from_payload, for persisting a hold."""
        return {
            "invoice_no": self.order_id,
            "customer_name": self.customer_name,
            "held_by": self.holder_email,
            "assigned_to": self.assigned_to_email,
            "created_at": self.held_at.isoformat(),
        }

    @property
    def effective_holder(self) -> str:
        """Who accumulates the group: the delegate when set, else the holder."""
        return self.assigned_to_email or self.holder_email


class HoldRequest(BaseSchema):
    """Operator decision on whether to hold an order."""

    order_id: str = Field(..., min_length=1)
    customer_name: str = Field("", description="Grouping key")
    holder_email: str = Field(..., min_length=1)
    hold: bool = Field(True, description="False proceeds to pack the order alone")
    assign_to_email: Optional[str] = None


class HoldDecision(BaseSchema):
    """Outcome of evaluating a hold request."""

    held: bool
    customer_name: Optional[str] = None
    order_ids: List[str] = Field(default_factory=list)
    holder_email: Optional[str] = None


class HoldGroupResponse(BaseSchema):
    """All holds sharing a customer name."""

    customer_name: str
    primary_holder: Optional[str] = None
    records: List[HoldRecord] = Field(default_factory=list)
    total: int = 0
