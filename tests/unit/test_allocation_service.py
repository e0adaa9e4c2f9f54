"""
Unit tests for AllocationLedger.

Run: pytest tests/unit/test_allocation_service.py -v
"""

import pytest
from decimal import Decimal

from services.allocation_service import AllocationLedger
from services.container_service import ContainerService
from services.pooling_service import build_pool
from models.order import SourceOrder
from exceptions import (
    ContainerLineNotFoundError,
    ContainerNotOpenError,
    InvalidQuantityError,
    NothingRemainingError,
    OverAssignmentError,
    PooledItemNotFoundError,
)
from tests.factories import OrderFactory


# ===================
# FIXTURES
# ===================

@pytest.fixture
def ledger(two_orders) -> AllocationLedger:
    """Ledger over A=8 (3+5), B=2, C=1 with no containers yet."""
    orders = [SourceOrder.from_payload(p) for p in two_orders]
    return AllocationLedger(ContainerService(clock=lambda: 1700000123.456), build_pool(orders))


@pytest.fixture
def open_container(ledger):
    return ledger.containers.create()


# ===================
# QUERY TESTS
# ===================

class TestQueries:
    """Tests for required/assigned/remaining."""

    def test_nothing_assigned_initially(self, ledger):
        """Remaining equals required before any assignment."""
        assert ledger.required("A") == Decimal("8")
        assert ledger.assigned("A") == Decimal("0")
        assert ledger.remaining("A") == Decimal("8")

    def test_assigned_sums_across_containers(self, ledger):
        """Assigned adds the lines of every container."""
        first = ledger.containers.create()
        ledger.assign("A", first.id, 3)
        ledger.containers.complete(first.id)
        second = ledger.containers.create()
        ledger.assign("A", second.id, 4)

        assert ledger.assigned("A") == Decimal("7")
        assert ledger.remaining("A") == Decimal("1")

    def test_unknown_item(self, ledger):
        """Unknown item keys raise PooledItemNotFoundError."""
        with pytest.raises(PooledItemNotFoundError):
            ledger.remaining("ZZZ")

    def test_views_report_assigned_and_remaining(self, ledger, open_container):
        """Views pair each item with its running totals."""
        ledger.assign("B", open_container.id, 1)

        views = {v.item.item_key: v for v in ledger.views()}
        assert views["B"].assigned_qty == Decimal("1")
        assert views["B"].remaining_qty == Decimal("1")
        assert views["A"].remaining_qty == Decimal("8")


# ===================
# ASSIGN TESTS
# ===================

class TestAssign:
    """Tests for explicit-quantity assignment."""

    def test_assign_creates_line_with_breakdown(self, ledger, open_container):
        """A new line carries the item's per-order contributions."""
        line = ledger.assign("A", open_container.id, "5")

        assert line.quantity == Decimal("5")
        assert [c.order_id for c in line.source_breakdown] == ["INV-1", "INV-2"]
        assert open_container.lines == [line]

    def test_assign_merges_into_existing_line(self, ledger, open_container):
        """Assigning the same item twice adds to one line."""
        ledger.assign("A", open_container.id, 2)
        line = ledger.assign("A", open_container.id, 3)

        assert line.quantity == Decimal("5")
        assert len(open_container.lines) == 1

    @pytest.mark.parametrize("quantity", [0, -1, "-0.5", "abc", "NaN"])
    def test_rejects_non_positive_quantity(self, ledger, open_container, quantity):
        """Zero, negative and non-numeric quantities are rejected."""
        with pytest.raises(InvalidQuantityError):
            ledger.assign("A", open_container.id, quantity)
        assert open_container.lines == []

    def test_rejects_more_than_remaining(self, ledger, open_container):
        """Over-assignment fails with the remaining amount in the message."""
        ledger.assign("A", open_container.id, 6)

        with pytest.raises(OverAssignmentError) as exc_info:
            ledger.assign("A", open_container.id, 3)

        assert exc_info.value.message == "Cannot assign 3. Only 2 remaining."
        assert ledger.assigned("A") == Decimal("6")

    def test_exact_remaining_is_allowed(self, ledger, open_container):
        """Assigning exactly the remainder succeeds."""
        ledger.assign("A", open_container.id, 8)
        assert ledger.remaining("A") == Decimal("0")

    def test_fractional_quantities(self, ledger, open_container):
        """Quantities are exact decimals."""
        ledger.assign("A", open_container.id, "0.1")
        ledger.assign("A", open_container.id, "0.2")
        assert ledger.assigned("A") == Decimal("0.3")

    def test_rejects_completed_container(self, ledger, open_container):
        """A completed container cannot receive items."""
        ledger.assign("A", open_container.id, 1)
        ledger.containers.complete(open_container.id)

        with pytest.raises(ContainerNotOpenError):
            ledger.assign("B", open_container.id, 1)


# ===================
# BULK / DROP TESTS
# ===================

class TestBulkAssign:
    """Tests for fill-remainder assignment."""

    def test_fills_each_remainder(self, ledger, open_container):
        """Each selected item gets exactly its remainder."""
        ledger.assign("A", open_container.id, 2)

        lines = ledger.bulk_assign(["A", "B"], open_container.id)

        assert len(lines) == 2
        assert ledger.remaining("A") == Decimal("0")
        assert ledger.remaining("B") == Decimal("0")
        assert open_container.line_for("A").quantity == Decimal("8")

    def test_skips_fully_assigned_items(self, ledger, open_container):
        """Items with nothing left are skipped."""
        ledger.assign("C", open_container.id, 1)

        lines = ledger.bulk_assign(["C", "B"], open_container.id)

        assert [line.item_key for line in lines] == ["B"]

    def test_unknown_key_writes_nothing(self, ledger, open_container):
        """One unknown key fails the call before any line is written."""
        with pytest.raises(PooledItemNotFoundError):
            ledger.bulk_assign(["A", "NOPE"], open_container.id)
        assert open_container.lines == []

    def test_drop_fills_remainder(self, ledger, open_container):
        """Dropping an item is bulk assignment of that one item."""
        line = ledger.drop("A", open_container.id)
        assert line.quantity == Decimal("8")

    def test_drop_of_fully_assigned_item(self, ledger, open_container):
        """Dropping an item with nothing remaining is rejected."""
        ledger.drop("C", open_container.id)
        with pytest.raises(NothingRemainingError):
            ledger.drop("C", open_container.id)

    def test_drop_onto_completed_container(self, ledger, open_container):
        """Dropping onto a completed container is rejected."""
        ledger.assign("C", open_container.id, 1)
        ledger.containers.complete(open_container.id)

        with pytest.raises(ContainerNotOpenError):
            ledger.drop("A", open_container.id)


# ===================
# UNASSIGN TESTS
# ===================

class TestUnassign:
    """Tests for removing a container line."""

    def test_unassign_restores_remaining_exactly(self, ledger, open_container):
        """Removing a line returns remaining to its value before the assignment."""
        before = ledger.remaining("A")
        ledger.assign("A", open_container.id, "2.5")
        ledger.assign("A", open_container.id, "1.5")

        ledger.unassign(open_container.id, "A")

        assert ledger.remaining("A") == before
        assert open_container.line_for("A") is None

    def test_unassign_missing_line(self, ledger, open_container):
        """No line for the item raises ContainerLineNotFoundError."""
        with pytest.raises(ContainerLineNotFoundError):
            ledger.unassign(open_container.id, "A")

    def test_unassign_from_completed_container(self, ledger, open_container):
        """Completed containers keep their lines."""
        ledger.assign("A", open_container.id, 1)
        ledger.containers.complete(open_container.id)

        with pytest.raises(ContainerNotOpenError):
            ledger.unassign(open_container.id, "A")


# ===================
# CONSERVATION TESTS
# ===================

class TestConservation:
    """Tests for the per-item assigned == required check."""

    def test_lists_unassigned_items(self, ledger, open_container):
        """Each short item is named with its shortfall."""
        ledger.assign("A", open_container.id, 3)

        assert ledger.conservation_errors() == [
            'Item "Item A" has 5 units unassigned',
            'Item "Item B" has 2 units unassigned',
            'Item "Item C" has 1 units unassigned',
        ]

    def test_fully_assigned_has_no_errors(self, ledger, open_container):
        """No errors once every item is exactly assigned."""
        ledger.bulk_assign(["A", "B", "C"], open_container.id)
        assert ledger.conservation_errors() == []

    def test_pool_shrink_reports_over_assignment(self, ledger, open_container):
        """A rebuilt pool with less demand shows negative remaining, never clamped."""
        ledger.assign("A", open_container.id, 8)

        corrected = OrderFactory.create(invoice_no="INV-1", items=[OrderFactory.item("A", 6)])
        ledger.replace_pool(build_pool([SourceOrder.from_payload(corrected)]))

        assert ledger.remaining("A") == Decimal("-2")
        assert ledger.conservation_errors() == ['Item "Item A" is over-assigned by 2 units']

    def test_item_dropped_from_pool_is_over_assigned(self, ledger, open_container):
        """Lines for an item no longer in the pool count in full, summed across containers."""
        ledger.assign("A", open_container.id, 8)
        ledger.assign("B", open_container.id, 1)
        ledger.containers.complete(open_container.id)
        second = ledger.containers.create()
        ledger.assign("B", second.id, 1)

        corrected = [
            OrderFactory.create(invoice_no="INV-1", items=[OrderFactory.item("A", 3)]),
            OrderFactory.create(invoice_no="INV-2", items=[OrderFactory.item("A", 5)]),
        ]
        ledger.replace_pool(build_pool([SourceOrder.from_payload(p) for p in corrected]))

        assert ledger.conservation_errors() == ['Item "Item B" is over-assigned by 2 units']

    def test_replace_pool_keeps_container_lines(self, ledger, open_container):
        """Replacing the pool leaves existing allocations untouched."""
        ledger.assign("B", open_container.id, 2)
        ledger.replace_pool(ledger.pool)

        assert open_container.line_for("B").quantity == Decimal("2")
