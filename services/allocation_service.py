"""
Allocation Service - the ledger of pooled quantities placed in containers.

Key principle: nothing here is ever clamped or auto-corrected.
`remaining = required - assigned` may go negative (after a pool rebuild that
lowered a requirement); that shows up as a validation error, not a fix.

Operations:
1. ASSIGN an explicit quantity (must be > 0 and <= remaining)
2. BULK ASSIGN: fill the remainder of each selected item
3. DROP a single item onto a container (bulk assign of one)
4. UNASSIGN: remove an item's whole line from a container
"""

import structlog
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, List, Sequence

from models.container import ContainerLine
from models.pool import PooledItem, PooledItemView, format_quantity
from services.container_service import ContainerService
from exceptions import (
    PooledItemNotFoundError,
    ContainerLineNotFoundError,
    InvalidQuantityError,
    OverAssignmentError,
    NothingRemainingError,
)

logger = structlog.get_logger(__name__)

ZERO = Decimal("0")


def _as_quantity(value) -> Decimal:
    """Coerce user input to Decimal, rejecting anything that is not a finite number."""
    try:
        quantity = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidQuantityError(value)
    if not quantity.is_finite():
        raise InvalidQuantityError(value)
    return quantity


class AllocationLedger:
    """
    Tracks how much of each pooled item sits in each container.

    The pool is replaced wholesale on rebuild; container lines are keyed by
    item key, so existing allocations survive a rebuild and `remaining`
    simply recomputes against the new requirement.
    """

    def __init__(self, containers: ContainerService, pool: Iterable[PooledItem] = ()):
        self.containers = containers
        self._pool: Dict[str, PooledItem] = {}
        self.replace_pool(pool)

    # ===================
    # POOL
    # ===================

    @property
    def pool(self) -> List[PooledItem]:
        return list(self._pool.values())

    def replace_pool(self, items: Iterable[PooledItem]) -> None:
        """Swap in a freshly built pool in one assignment."""
        self._pool = {item.item_key: item for item in items}
        logger.debug("ledger_pool_replaced", items=len(self._pool))

    def item(self, item_key: str) -> PooledItem:
        try:
            return self._pool[item_key]
        except KeyError:
            raise PooledItemNotFoundError(item_key)

    # ===================
    # QUERIES
    # ===================

    def required(self, item_key: str) -> Decimal:
        return self.item(item_key).required_qty

    def assigned(self, item_key: str) -> Decimal:
        """Sum over all containers of the lines for this item."""
        return sum(
            (container.quantity_of(item_key) for container in self.containers.containers),
            ZERO
        )

    def remaining(self, item_key: str) -> Decimal:
        return self.required(item_key) - self.assigned(item_key)

    def views(self) -> List[PooledItemView]:
        return [
            PooledItemView(
                item=item,
                assigned_qty=self.assigned(item.item_key),
                remaining_qty=self.remaining(item.item_key),
            )
            for item in self._pool.values()
        ]

    # ===================
    # MUTATIONS
    # ===================

    def assign(self, item_key: str, container_id: str, quantity) -> ContainerLine:
        """
        Put an explicit quantity of an item into an OPEN container.

        Merges into the container's existing line for the item, else appends.

        Raises:
            InvalidQuantityError: If quantity <= 0
            OverAssignmentError: If quantity > remaining
            ContainerNotOpenError: If the container is completed
        """
        quantity = _as_quantity(quantity)
        if quantity <= ZERO:
            logger.warning("assign_rejected_quantity", item_key=item_key, quantity=str(quantity))
            raise InvalidQuantityError(quantity)

        item = self.item(item_key)
        container = self.containers.require_open(container_id)

        remaining = self.remaining(item_key)
        if quantity > remaining:
            logger.warning(
                "assign_rejected_over",
                item_key=item_key,
                quantity=str(quantity),
                remaining=str(remaining)
            )
            raise OverAssignmentError(item_key, format_quantity(quantity), format_quantity(remaining))

        line = self._add(container, item, quantity)
        logger.info(
            "item_assigned",
            item_key=item_key,
            container_id=container_id,
            quantity=str(quantity)
        )
        return line

    def bulk_assign(self, item_keys: Sequence[str], container_id: str) -> List[ContainerLine]:
        """
        Fill the remainder of each selected item into an OPEN container.

        Items with nothing left are skipped. Unknown keys fail the whole call
        before anything is written.

        Returns:
            The lines that received quantity
        """
        container = self.containers.require_open(container_id)
        items = [self.item(key) for key in item_keys]

        lines = []
        for item in items:
            remaining = self.remaining(item.item_key)
            if remaining <= ZERO:
                continue
            lines.append(self._add(container, item, remaining))

        logger.info(
            "items_bulk_assigned",
            container_id=container_id,
            requested=len(items),
            assigned=len(lines)
        )
        return lines

    def drop(self, item_key: str, container_id: str) -> ContainerLine:
        """
        Drag-style drop of one item onto a container: fills its remainder.

        Raises:
            ContainerNotOpenError: If dropped onto a completed container
            NothingRemainingError: If the item is already fully assigned
        """
        self.containers.require_open(container_id)
        if self.remaining(item_key) <= ZERO:
            raise NothingRemainingError(item_key)

        return self.bulk_assign([item_key], container_id)[0]

    def unassign(self, container_id: str, item_key: str) -> ContainerLine:
        """
        Remove the item's whole line from an OPEN container.

        Raises:
            ContainerNotOpenError: If the container is completed
            ContainerLineNotFoundError: If the container has no line for the item
        """
        container = self.containers.require_open(container_id)
        line = container.line_for(item_key)
        if line is None:
            raise ContainerLineNotFoundError(container_id, item_key)

        container.lines.remove(line)
        logger.info(
            "item_unassigned",
            item_key=item_key,
            container_id=container_id,
            quantity=str(line.quantity)
        )
        return line

    # ===================
    # VALIDATION
    # ===================

    def conservation_errors(self) -> List[str]:
        """
        One message per item whose assigned total differs from required.

        Container lines for an item that a rebuild dropped from the pool
        count as required 0, so their whole quantity is over-assigned.
        """
        errors = []
        for item in self._pool.values():
            remaining = self.remaining(item.item_key)
            if remaining > ZERO:
                errors.append(f'Item "{item.name}" has {format_quantity(remaining)} units unassigned')
            elif remaining < ZERO:
                errors.append(f'Item "{item.name}" is over-assigned by {format_quantity(abs(remaining))} units')

        orphaned: Dict[str, ContainerLine] = {}
        for container in self.containers.containers:
            for line in container.lines:
                if line.item_key not in self._pool:
                    orphaned.setdefault(line.item_key, line)

        for item_key, line in orphaned.items():
            errors.append(
                f'Item "{line.name}" is over-assigned by {format_quantity(self.assigned(item_key))} units'
            )
        return errors

    def _add(self, container, item: PooledItem, quantity: Decimal) -> ContainerLine:
        line = container.line_for(item.item_key)
        if line is not None:
            line.quantity = line.quantity + quantity
            return line

        line = ContainerLine(
            item_key=item.item_key,
            name=item.name,
            code=item.code,
            quantity=quantity,
            source_breakdown=[c.model_copy() for c in item.contributions],
        )
        container.lines.append(line)
        return line
