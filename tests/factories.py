"""
Test data factories.

Build backend-shaped order payloads (the `data` object of the order
endpoint) with sensible defaults.
"""

from decimal import Decimal
from typing import List, Optional, Union


class OrderFactory:
    """
    Factory for backend order payloads.

    Usage:
        # Create with defaults
        order = OrderFactory.create()

        # Create with overrides
        order = OrderFactory.create(invoice_no="INV-9", items=[OrderFactory.item("A", 3)])

        # Create multiple
        orders = OrderFactory.create_batch(3, customer_name="Acme Pharmacy")
    """

    _counter = 0

    @classmethod
    def _next_counter(cls) -> int:
        cls._counter += 1
        return cls._counter

    @classmethod
    def reset(cls) -> None:
        cls._counter = 0

    @classmethod
    def item(
        cls,
        item_code: str,
        quantity: Union[int, str, Decimal],
        name: Optional[str] = None,
        mrp: str = "12.50",
        batch_number: str = "BATCH-1",
        expiry_date: str = "2027-06-30",
        package: str = "10x10"
    ) -> dict:
        """Create one order line."""
        return {
            "item_code": item_code,
            "name": name or f"Item {item_code}",
            "quantity": str(quantity),
            "mrp": mrp,
            "batch_number": batch_number,
            "expiry_date": expiry_date,
            "package": package,
        }

    @classmethod
    def create(
        cls,
        invoice_no: Optional[str] = None,
        customer_name: str = "Acme Pharmacy",
        items: Optional[List[dict]] = None,
        billing_status: str = "PENDING",
        phone: str = "9876543210",
        address: str = "12 Market Road",
        delivery_address: Optional[str] = None,
        return_info: Optional[dict] = None,
        hold: Optional[dict] = None
    ) -> dict:
        """
        Create a single order payload.

        Args:
            invoice_no: Order number (auto-generated if not provided)
            customer_name: Billed customer name
            items: Order lines (one line of item "A" x1 if not provided)
            billing_status: Backend billing status
            delivery_address: Overrides the customer's registered address
            hold: Backend hold block (customer_name, held_by, assigned_to)

        Returns:
            Dict shaped like the backend payload
        """
        counter = cls._next_counter()
        payload = {
            "invoice_no": invoice_no or f"INV-{counter:04d}",
            "billing_status": billing_status,
            "customer": {
                "name": customer_name,
                "phone1": phone,
                "address1": address,
            },
            "items": items if items is not None else [cls.item("A", 1)],
        }
        if delivery_address is not None:
            payload["delivery_address"] = delivery_address
        if return_info is not None:
            payload["return_info"] = return_info
        if hold is not None:
            payload["hold"] = hold
        return payload

    @classmethod
    def create_batch(cls, count: int, **kwargs) -> List[dict]:
        """Create multiple order payloads."""
        return [cls.create(**kwargs) for _ in range(count)]
