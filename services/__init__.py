"""
Business logic services.

Each service handles one part of a packing session.
"""

from services.pooling_service import build_pool, load_orders, load_pool
from services.container_service import ContainerService
from services.allocation_service import AllocationLedger
from services.hold_service import HoldService, get_hold_service
from services.review_service import IssueReviewService
from services.sync_service import RetryPolicy, LiveSyncClient
from services.packing_session_service import (
    PackingSession,
    PackingSessionService,
    get_packing_session_service,
)

__all__ = [
    "build_pool",
    "load_orders",
    "load_pool",
    "ContainerService",
    "AllocationLedger",
    "HoldService",
    "get_hold_service",
    "IssueReviewService",
    "RetryPolicy",
    "LiveSyncClient",
    "PackingSession",
    "PackingSessionService",
    "get_packing_session_service",
]
