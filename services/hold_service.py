"""
Hold Service - parks orders to be packed together with sibling orders.

Orders are grouped by customer name, matched exactly as typed apart from
leading and trailing whitespace. No case folding or fuzzy matching happens,
so "ACME" and "Acme" are two different groups.
"""

import structlog
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from models.hold import HoldDecision, HoldRecord
from exceptions import HoldConflictError, InvalidHoldError

logger = structlog.get_logger(__name__)


class HoldService:
    """
    Hold/consolidation coordinator.

    In-memory repository of hold records keyed by order number. Loaded once
    per process and passed by reference; backend refreshes replace the whole
    record list at once.
    """

    def __init__(self, records: Iterable[HoldRecord] = ()):
        self._records: Dict[str, HoldRecord] = {}
        self.replace_all(records)

    # ===================
    # READ OPERATIONS
    # ===================

    @property
    def records(self) -> List[HoldRecord]:
        return list(self._records.values())

    def held_orders(self, customer_name: str) -> List[HoldRecord]:
        """All holds for a customer name, in the order they were placed."""
        customer_name = customer_name.strip()
        return [r for r in self._records.values() if r.customer_name == customer_name]

    def group_of(self, order_id: str) -> Optional[str]:
        record = self._records.get(order_id)
        return record.customer_name if record else None

    def primary_holder(self, customer_name: str) -> Optional[str]:
        """Who accumulates the group; offered as delegate for new holds."""
        held = self.held_orders(customer_name)
        return held[0].effective_holder if held else None

    # ===================
    # HOLD / PROCEED
    # ===================

    def evaluate_hold(
        self,
        order_id: str,
        customer_name: str,
        holder_email: str,
        hold: bool = True,
        assign_to_email: Optional[str] = None
    ) -> HoldDecision:
        """
        Hold an order for consolidation, or let it proceed alone.

        Args:
            order_id: Order being packed
            customer_name: Grouping key (exact match)
            holder_email: Operator making the decision
            hold: False returns immediately so the order is packed alone
            assign_to_email: Attribute the hold to this operator instead

        Returns:
            HoldDecision

        Raises:
            InvalidHoldError: If holding without a customer name
            HoldConflictError: If the order is already held under another name
        """
        if not hold:
            logger.info("hold_declined", order_id=order_id)
            return HoldDecision(held=False, order_ids=[order_id])

        if not customer_name or not customer_name.strip():
            raise InvalidHoldError("Please enter a customer name to hold the order")
        customer_name = customer_name.strip()

        existing = self._records.get(order_id)
        if existing is not None:
            if existing.customer_name != customer_name:
                logger.warning(
                    "hold_conflict",
                    order_id=order_id,
                    existing_customer_name=existing.customer_name,
                    customer_name=customer_name
                )
                raise HoldConflictError(order_id, existing.customer_name)

            logger.info("hold_already_placed", order_id=order_id, customer_name=customer_name)
            return self._decision(existing)

        record = HoldRecord(
            order_id=order_id,
            customer_name=customer_name,
            holder_email=holder_email,
            assigned_to_email=assign_to_email or None,
            held_at=datetime.now(timezone.utc),
        )
        self._records[order_id] = record

        logger.info(
            "order_held",
            order_id=order_id,
            customer_name=customer_name,
            holder=record.effective_holder,
            group_size=len(self.held_orders(customer_name))
        )
        return self._decision(record)

    def proceed_with_group(
        self,
        customer_name: str,
        current_order_id: Optional[str] = None
    ) -> List[str]:
        """
        Collect every order held under a customer name.

        The current order, when given, goes first.

        Raises:
            InvalidHoldError: If there is nothing to pack
        """
        order_ids = [r.order_id for r in self.held_orders(customer_name)]

        if current_order_id:
            order_ids = [current_order_id] + [o for o in order_ids if o != current_order_id]

        if not order_ids:
            raise InvalidHoldError(f"No held orders for customer '{customer_name}'")

        logger.info("hold_group_proceeding", customer_name=customer_name, order_ids=order_ids)
        return order_ids

    # ===================
    # RELEASE / REFRESH
    # ===================

    def release_order(self, order_id: str) -> Optional[HoldRecord]:
        record = self._records.pop(order_id, None)
        if record is not None:
            logger.info("hold_released", order_id=order_id, customer_name=record.customer_name)
        return record

    def release_group(self, customer_name: str, order_ids: Optional[Iterable[str]] = None) -> int:
        """
        Drop the holds of a customer name. Limited to `order_ids` when given.

        Returns:
            Number of records released
        """
        wanted = set(order_ids) if order_ids is not None else None
        released = [
            r.order_id for r in self.held_orders(customer_name)
            if wanted is None or r.order_id in wanted
        ]
        for order_id in released:
            del self._records[order_id]

        logger.info("hold_group_released", customer_name=customer_name, released=len(released))
        return len(released)

    def replace_all(self, records: Iterable[HoldRecord]) -> None:
        """
        Replace the whole record list (backend refresh).

        An order appearing twice keeps its first record.
        """
        replacement: Dict[str, HoldRecord] = {}
        for record in records:
            replacement.setdefault(record.order_id, record)
        self._records = replacement

    def _decision(self, record: HoldRecord) -> HoldDecision:
        return HoldDecision(
            held=True,
            customer_name=record.customer_name,
            order_ids=[r.order_id for r in self.held_orders(record.customer_name)],
            holder_email=record.effective_holder,
        )


# Singleton instance
_hold_service: Optional[HoldService] = None


def get_hold_service() -> HoldService:
    """Get the singleton hold service instance."""
    global _hold_service
    if _hold_service is None:
        _hold_service = HoldService()
    return _hold_service
