"""
Pooled item schemas: the merged cross-order view of each product.
"""

from pydantic import Field, computed_field
from typing import Optional, List
from decimal import Decimal

from models.base import BaseSchema


def format_quantity(value: Decimal) -> str:
    """Render a quantity without trailing zeros or exponent (10.0 -> "10")."""
    return format(value.normalize(), "f")


class Contribution(BaseSchema):
    """Quantity of a pooled item that comes from one source order."""

    order_id: str = Field(..., description="Source order number")
    quantity: Decimal = Field(..., ge=0, description="Quantity contributed")


class PooledItem(BaseSchema):
    """
    One product's total required quantity across all orders in a session.

    `required_qty` is derived from the contributions and cannot drift from them.
    """

    item_key: str = Field(..., description="Canonical item key")
    name: str = Field(..., description="Item display name")
    code: Optional[str] = Field(None, description="Item code")
    price: Optional[Decimal] = Field(None, description="Unit price (MRP)")
    batch_number: Optional[str] = None
    expiry_date: Optional[str] = None
    package: Optional[str] = None
    contributions: List[Contribution] = Field(default_factory=list)

    @computed_field
    @property
    def required_qty(self) -> Decimal:
        return sum((c.quantity for c in self.contributions), Decimal("0"))

    @property
    def order_ids(self) -> List[str]:
        """Contributing order numbers, first-seen order, no duplicates."""
        seen: List[str] = []
        for contribution in self.contributions:
            if contribution.order_id not in seen:
                seen.append(contribution.order_id)
        return seen


class PooledItemView(BaseSchema):
    """Pooled item with its live allocation state. Used in session snapshots."""

    item: PooledItem
    assigned_qty: Decimal
    remaining_qty: Decimal
