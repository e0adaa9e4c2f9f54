"""
Unit tests for HoldService.

Run: pytest tests/unit/test_hold_service.py -v
"""

import pytest
from datetime import datetime, timezone

from services.hold_service import HoldService, get_hold_service
from models.hold import HoldRecord
from exceptions import HoldConflictError, InvalidHoldError


@pytest.fixture
def service() -> HoldService:
    return HoldService()


def _record(order_id, customer_name="Acme Pharmacy", holder="ana@example.com", **kwargs) -> HoldRecord:
    return HoldRecord(
        order_id=order_id,
        customer_name=customer_name,
        holder_email=holder,
        held_at=datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc),
        **kwargs
    )


class TestHoldServiceInstance:
    """Tests for service instance creation."""

    def test_get_service_returns_singleton(self):
        """Should return the same instance on multiple calls."""
        assert get_hold_service() is get_hold_service()


# ===================
# EVALUATE HOLD TESTS
# ===================

class TestEvaluateHold:
    """Tests for holding an order or letting it proceed."""

    def test_declined_hold_proceeds_alone(self, service):
        """Declining returns immediately and records nothing."""
        decision = service.evaluate_hold("INV-1", "Acme Pharmacy", "ana@example.com", hold=False)

        assert decision.held is False
        assert decision.order_ids == ["INV-1"]
        assert service.records == []

    def test_hold_records_order(self, service):
        decision = service.evaluate_hold("INV-1", "Acme Pharmacy", "ana@example.com")

        assert decision.held is True
        assert decision.customer_name == "Acme Pharmacy"
        assert decision.order_ids == ["INV-1"]
        assert decision.holder_email == "ana@example.com"

    def test_holds_accumulate_by_customer_name(self, service):
        """Orders held under the same name form one group."""
        service.evaluate_hold("INV-1", "Acme Pharmacy", "ana@example.com")
        decision = service.evaluate_hold("INV-2", "Acme Pharmacy", "ben@example.com")

        assert decision.order_ids == ["INV-1", "INV-2"]

    def test_names_match_exactly(self, service):
        """Case differences create separate groups."""
        service.evaluate_hold("INV-1", "Acme Pharmacy", "ana@example.com")
        service.evaluate_hold("INV-2", "ACME PHARMACY", "ana@example.com")

        assert [r.order_id for r in service.held_orders("Acme Pharmacy")] == ["INV-1"]
        assert [r.order_id for r in service.held_orders("ACME PHARMACY")] == ["INV-2"]

    def test_surrounding_whitespace_is_ignored(self, service):
        """Leading and trailing spaces do not split a group."""
        service.evaluate_hold("INV-1", "  Acme Pharmacy ", "ana@example.com")
        assert service.group_of("INV-1") == "Acme Pharmacy"

    @pytest.mark.parametrize("name", ["", "   "])
    def test_blank_name_rejected(self, service, name):
        """Holding needs a customer name."""
        with pytest.raises(InvalidHoldError):
            service.evaluate_hold("INV-1", name, "ana@example.com")

    def test_rehold_same_name_is_idempotent(self, service):
        """Holding again under the same name changes nothing."""
        service.evaluate_hold("INV-1", "Acme Pharmacy", "ana@example.com")
        decision = service.evaluate_hold("INV-1", "Acme Pharmacy", "ben@example.com")

        assert decision.holder_email == "ana@example.com"
        assert len(service.records) == 1

    def test_rehold_other_name_conflicts(self, service):
        """An order cannot sit in two groups."""
        service.evaluate_hold("INV-1", "Acme Pharmacy", "ana@example.com")

        with pytest.raises(HoldConflictError) as exc_info:
            service.evaluate_hold("INV-1", "Zenith Clinic", "ana@example.com")

        assert exc_info.value.details["existing_customer_name"] == "Acme Pharmacy"

    def test_delegated_hold(self, service):
        """assign_to_email makes the delegate the effective holder."""
        service.evaluate_hold("INV-1", "Acme Pharmacy", "ana@example.com")
        primary = service.primary_holder("Acme Pharmacy")

        decision = service.evaluate_hold(
            "INV-2", "Acme Pharmacy", "ben@example.com", assign_to_email=primary
        )

        record = service.held_orders("Acme Pharmacy")[1]
        assert record.holder_email == "ben@example.com"
        assert record.effective_holder == "ana@example.com"
        assert decision.holder_email == "ana@example.com"


# ===================
# GROUP TESTS
# ===================

class TestProceedWithGroup:
    """Tests for collecting a hold group."""

    def test_returns_all_held_orders(self, service):
        service.evaluate_hold("INV-1", "Acme Pharmacy", "ana@example.com")
        service.evaluate_hold("INV-2", "Acme Pharmacy", "ana@example.com")

        assert service.proceed_with_group("Acme Pharmacy") == ["INV-1", "INV-2"]

    def test_current_order_goes_first(self, service):
        """The order on screen leads, held orders follow without duplicates."""
        service.evaluate_hold("INV-1", "Acme Pharmacy", "ana@example.com")
        service.evaluate_hold("INV-2", "Acme Pharmacy", "ana@example.com")

        assert service.proceed_with_group("Acme Pharmacy", "INV-2") == ["INV-2", "INV-1"]
        assert service.proceed_with_group("Acme Pharmacy", "INV-3") == ["INV-3", "INV-1", "INV-2"]

    def test_empty_group(self, service):
        with pytest.raises(InvalidHoldError):
            service.proceed_with_group("Nobody")


# ===================
# RELEASE / REFRESH TESTS
# ===================

class TestReleaseAndRefresh:
    """Tests for releasing holds and backend refreshes."""

    def test_release_group(self, service):
        service.evaluate_hold("INV-1", "Acme Pharmacy", "ana@example.com")
        service.evaluate_hold("INV-2", "Acme Pharmacy", "ana@example.com")
        service.evaluate_hold("INV-3", "Zenith Clinic", "ana@example.com")

        released = service.release_group("Acme Pharmacy")

        assert released == 2
        assert [r.order_id for r in service.records] == ["INV-3"]

    def test_release_group_limited_to_orders(self, service):
        """Only the listed orders are released."""
        service.evaluate_hold("INV-1", "Acme Pharmacy", "ana@example.com")
        service.evaluate_hold("INV-2", "Acme Pharmacy", "ana@example.com")

        service.release_group("Acme Pharmacy", ["INV-1"])

        assert [r.order_id for r in service.held_orders("Acme Pharmacy")] == ["INV-2"]

    def test_release_order(self, service):
        service.evaluate_hold("INV-1", "Acme Pharmacy", "ana@example.com")
        assert service.release_order("INV-1").order_id == "INV-1"
        assert service.release_order("INV-1") is None

    def test_replace_all(self, service):
        """A refresh replaces every record; duplicates keep the first."""
        service.evaluate_hold("INV-9", "Old Name", "ana@example.com")

        service.replace_all([
            _record("INV-1"),
            _record("INV-1", customer_name="Other"),
            _record("INV-2", assigned_to_email="lead@example.com"),
        ])

        assert [r.order_id for r in service.records] == ["INV-1", "INV-2"]
        assert service.group_of("INV-1") == "Acme Pharmacy"
        assert service.group_of("INV-9") is None
        assert service.primary_holder("Acme Pharmacy") == "ana@example.com"
