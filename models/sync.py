"""
Live sync event envelope.
"""

import json
from pydantic import Field
from typing import Any, Optional

from models.base import BaseSchema
from models.order import BillingStatus, normalize_billing_status

CORRECTION_SECTION = "PACKING"


class SyncEvent(BaseSchema):
    """
    Status change pushed by the backend for one order.

    Built only through `from_message()`, which normalizes the wire envelope.
    """

    order_id: str
    status: BillingStatus
    payload: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_message(cls, raw: str) -> "SyncEvent":
        """
        Parse one stream message.

        Raises:
            ValueError: If the message is not a JSON object with an order number
        """
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("sync message is not an object")

        order_id = data.pop("invoice_no", None)
        if order_id in (None, ""):
            raise ValueError("sync message has no invoice_no")

        return cls(
            order_id=str(order_id),
            status=normalize_billing_status(data.pop("billing_status", None)),
            payload=data,
        )

    def _return_info(self) -> dict:
        info = self.payload.get("return_info")
        return info if isinstance(info, dict) else {}

    @property
    def returned_from_section(self) -> Optional[str]:
        return self._return_info().get("returned_from_section")

    @property
    def returned_by_email(self) -> Optional[str]:
        return self._return_info().get("returned_by_email")

    def is_correction_for(self, operator_email: str) -> bool:
        """True when the order came back corrected from a review this operator raised in packing."""
        return (
            self.status == BillingStatus.RE_INVOICED
            and self.returned_from_section == CORRECTION_SECTION
            and self.returned_by_email == operator_email
        )
