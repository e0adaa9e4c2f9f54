"""
Shared test fixtures.

The fulfillment backend is replaced by FakeFulfillmentApi, an in-memory
stand-in with the same async surface as FulfillmentApiClient.
"""

import sys
from pathlib import Path

# Add project root to Python path
project_dir = Path(__file__).parent.parent
sys.path.insert(0, str(project_dir))

import asyncio
import pytest
from typing import List, Optional

from models.order import SourceOrder
from exceptions import FulfillmentApiError, OrderNotFoundError
from tests.factories import OrderFactory


# ===================
# FAKE BACKEND
# ===================

class FakeFulfillmentApi:
    """
    In-memory fulfillment backend.

    Usage:
        api = FakeFulfillmentApi([OrderFactory.create(invoice_no="INV-1")])
        api.fail_fetch.add("INV-1")
    """

    def __init__(self, orders: Optional[List[dict]] = None):
        self.orders = {}
        for payload in orders or []:
            self.add_order(payload)

        self.fail_fetch = set()
        self.fail_review = set()
        self.completion_error: Optional[Exception] = None
        self.completion_gate: Optional[asyncio.Event] = None
        self.consolidated_id = "CONS-0001"
        self.events: List[str] = []
        self.holds = []

        self.fetches: List[str] = []
        self.completions = []
        self.reviews = []
        self.drafts = []
        self.saved_holds = []
        self.released = []
        self.closed = False

    def add_order(self, payload: dict) -> None:
        self.orders[str(payload["invoice_no"])] = payload

    async def fetch_order(self, order_id: str) -> SourceOrder:
        self.fetches.append(order_id)
        if order_id in self.fail_fetch:
            raise FulfillmentApiError(f"Order #{order_id} unavailable", status=500)
        if order_id not in self.orders:
            raise OrderNotFoundError(order_id)
        return SourceOrder.from_payload(dict(self.orders[order_id]))

    async def submit_completion(self, submission) -> str:
        self.completions.append(submission)
        if self.completion_gate is not None:
            await self.completion_gate.wait()
        if self.completion_error is not None:
            raise self.completion_error
        return self.consolidated_id

    async def submit_review(self, request) -> None:
        if request.order_id in self.fail_review:
            raise FulfillmentApiError("Review endpoint unavailable", status=500)
        self.reviews.append(request)
        if request.order_id in self.orders:
            self.orders[request.order_id]["billing_status"] = "REVIEW"

    async def save_draft(self, order_id, containers) -> None:
        self.drafts.append((order_id, list(containers)))

    async def list_holds(self):
        return list(self.holds)

    async def save_hold(self, record) -> None:
        self.saved_holds.append(record)

    async def release_holds(self, customer_name, order_ids) -> None:
        self.released.append((customer_name, list(order_ids)))

    async def stream_events(self):
        for message in self.events:
            yield message

    async def close(self) -> None:
        self.closed = True


# ===================
# FIXTURES
# ===================

@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset module-level service singletons between tests."""
    import integrations.fulfillment_api as api_module
    import services.hold_service as hold_module
    import services.packing_session_service as session_module

    api_module._fulfillment_api = None
    hold_module._hold_service = None
    session_module._packing_session_service = None
    OrderFactory.reset()
    yield
    api_module._fulfillment_api = None
    hold_module._hold_service = None
    session_module._packing_session_service = None


@pytest.fixture
def two_orders() -> List[dict]:
    """
    Two orders for the same customer sharing item A.

    INV-1: A x3, B x2
    INV-2: A x5, C x1
    """
    return [
        OrderFactory.create(
            invoice_no="INV-1",
            items=[OrderFactory.item("A", 3), OrderFactory.item("B", 2)],
        ),
        OrderFactory.create(
            invoice_no="INV-2",
            items=[OrderFactory.item("A", 5), OrderFactory.item("C", 1)],
        ),
    ]


@pytest.fixture
def api_factory():
    """Build a FakeFulfillmentApi from a list of order payloads."""
    return FakeFulfillmentApi


@pytest.fixture
def fake_api(two_orders) -> FakeFulfillmentApi:
    """Fake backend preloaded with the two_orders payloads."""
    return FakeFulfillmentApi(two_orders)


@pytest.fixture
def test_client(fake_api):
    """
    Create FastAPI test client wired to the fake backend.

    Usage:
        def test_endpoint(test_client):
            response = test_client.get("/health")
            assert response.status_code == 200
    """
    from fastapi.testclient import TestClient
    import integrations.fulfillment_api as api_module
    import services.packing_session_service as session_module
    from services.packing_session_service import PackingSessionService
    from main import app

    api_module._fulfillment_api = fake_api
    session_module._packing_session_service = PackingSessionService(
        api=fake_api,
        sync_enabled=False
    )

    with TestClient(app) as client:
        yield client
