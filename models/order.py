"""
Source order schemas and the ingestion boundary for backend order payloads.

The backend speaks in bills (`invoice_no`, `billing_status`, `item_code`).
`SourceOrder.from_payload()` is the only place order payload fields are read;
everything downstream works with the canonical shape defined here.
"""

from pydantic import Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from typing import Any, Optional, List
from enum import Enum
from decimal import Decimal

from models.base import BaseSchema
from exceptions import InvalidOrderPayloadError


class BillingStatus(str, Enum):
    """Billing status of a source order."""
    NORMAL = "NORMAL"
    REVIEW = "REVIEW"
    RE_INVOICED = "RE_INVOICED"


def normalize_billing_status(value: Optional[str]) -> BillingStatus:
    """Map any backend status string onto the three statuses the engine gates on."""
    if value is None:
        return BillingStatus.NORMAL
    try:
        return BillingStatus(str(value).strip().upper())
    except ValueError:
        return BillingStatus.NORMAL


class ReturnInfo(BaseSchema):
    """Who sent an order back for correction, and from which section."""

    returned_from_section: Optional[str] = None
    returned_by_email: Optional[str] = None
    return_reason: Optional[str] = None


class HoldMetadata(BaseSchema):
    """Hold information attached to an order by the backend."""

    customer_name: str
    holder_email: Optional[str] = None
    assigned_to_email: Optional[str] = None


class OrderLine(BaseSchema):
    """One line item of a source order."""

    item_key: str = Field(..., min_length=1, description="Canonical item key (item code)")
    name: str = Field(..., description="Item display name")
    code: Optional[str] = Field(None, description="Item code shown on labels")
    quantity: Decimal = Field(..., ge=0, description="Ordered quantity")
    price: Optional[Decimal] = Field(None, ge=0, description="Unit price (MRP)")
    batch_number: Optional[str] = None
    expiry_date: Optional[str] = None
    package: Optional[str] = None


class SourceOrder(BaseSchema):
    """An individual customer bill whose items must be packed."""

    id: str = Field(..., min_length=1, description="Order number (invoice_no)")
    customer_name: str = Field("", description="Customer name as billed")
    customer_phone: Optional[str] = None
    delivery_address: Optional[str] = None
    lines: List[OrderLine] = Field(default_factory=list)
    billing_status: BillingStatus = BillingStatus.NORMAL
    return_info: Optional[ReturnInfo] = None
    hold: Optional[HoldMetadata] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        """Order numbers may arrive as integers."""
        if isinstance(v, int):
            return str(v)
        return v

    @classmethod
    def from_payload(cls, payload: dict) -> "SourceOrder":
        """
        Normalize a backend order payload.

        Args:
            payload: The `data` object of GET /sales/packing/bill/{id}/

        Returns:
            SourceOrder

        Raises:
            InvalidOrderPayloadError: If required fields are missing or invalid
        """
        order_id = str(payload.get("invoice_no", "?"))
        customer = payload.get("customer") or {}

        try:
            lines = [
                OrderLine(
                    item_key=str(item["item_code"]),
                    name=item.get("name") or str(item["item_code"]),
                    code=item.get("item_code"),
                    quantity=item["quantity"],
                    price=item.get("mrp"),
                    batch_number=item.get("batch_number"),
                    expiry_date=item.get("expiry_date"),
                    package=item.get("package"),
                )
                for item in payload.get("items") or []
            ]

            return_info = payload.get("return_info")
            hold = payload.get("hold")

            return cls(
                id=payload["invoice_no"],
                customer_name=customer.get("name") or "",
                customer_phone=customer.get("phone1"),
                # Delivery address wins over the customer's registered address
                delivery_address=payload.get("delivery_address") or customer.get("address1"),
                lines=lines,
                billing_status=normalize_billing_status(payload.get("billing_status")),
                return_info=ReturnInfo(**return_info) if return_info else None,
                hold=HoldMetadata(
                    customer_name=hold["customer_name"],
                    holder_email=hold.get("held_by"),
                    assigned_to_email=hold.get("assigned_to"),
                ) if hold else None,
            )

        except KeyError as e:
            raise InvalidOrderPayloadError(order_id, [f"missing field: {e.args[0]}"]) from e
        except PydanticValidationError as e:
            raise InvalidOrderPayloadError(
                order_id,
                [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
            ) from e

    @property
    def is_under_review(self) -> bool:
        return self.billing_status == BillingStatus.REVIEW

    @property
    def is_re_invoiced(self) -> bool:
        return self.billing_status == BillingStatus.RE_INVOICED
