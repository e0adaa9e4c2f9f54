"""
Container schemas and the container status state machine.
"""

from pydantic import Field
from typing import Optional, List
from enum import Enum
from datetime import datetime
from decimal import Decimal

from models.base import BaseSchema
from models.pool import Contribution


class ContainerStatus(str, Enum):
    """Container status values."""
    OPEN = "OPEN"
    COMPLETED = "COMPLETED"
    LABELED = "LABELED"


# Allowed transitions. LABELED -> LABELED covers label reprints.
CONTAINER_TRANSITIONS = {
    ContainerStatus.OPEN: {ContainerStatus.COMPLETED},
    ContainerStatus.COMPLETED: {ContainerStatus.LABELED},
    ContainerStatus.LABELED: {ContainerStatus.LABELED},
}


def is_valid_container_transition(current: ContainerStatus, new: ContainerStatus) -> bool:
    """
    Check if a container status transition is valid.

    Rules:
    - OPEN can only be completed
    - COMPLETED can only be labeled
    - LABELED can be labeled again (reprint), nothing else
    """
    return new in CONTAINER_TRANSITIONS[current]


# ===================
# CONTAINER SCHEMAS
# ===================

class ContainerLine(BaseSchema):
    """Quantity of one pooled item placed in a container."""

    item_key: str = Field(..., description="Pooled item key")
    name: str = Field(..., description="Item display name")
    code: Optional[str] = Field(None, description="Item code")
    quantity: Decimal = Field(..., gt=0, description="Quantity in this container")
    source_breakdown: List[Contribution] = Field(
        default_factory=list,
        description="Per-order contributions of the pooled item"
    )


class Container(BaseSchema):
    """A physical shipping unit filled during a packing session."""

    id: str = Field(..., description="Container id, unique within the session")
    sequence: int = Field(..., ge=1, description="Creation order within the session")
    status: ContainerStatus = ContainerStatus.OPEN
    lines: List[ContainerLine] = Field(default_factory=list)
    created_at: datetime
    completed_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.status == ContainerStatus.OPEN

    @property
    def is_finalized(self) -> bool:
        """Completed or labeled."""
        return self.status != ContainerStatus.OPEN

    def line_for(self, item_key: str) -> Optional[ContainerLine]:
        for line in self.lines:
            if line.item_key == item_key:
                return line
        return None

    def quantity_of(self, item_key: str) -> Decimal:
        return sum(
            (line.quantity for line in self.lines if line.item_key == item_key),
            Decimal("0")
        )


# ===================
# LABEL SCHEMAS
# ===================

class LabelItem(BaseSchema):
    """Item row printed on a container label."""

    item_key: str
    name: str
    code: Optional[str] = None
    quantity: Decimal


class LabelManifest(BaseSchema):
    """Finalized container manifest handed to the label renderer."""

    customer_name: str
    address: str
    phone: str
    container_id: str
    items: List[LabelItem] = Field(default_factory=list)
