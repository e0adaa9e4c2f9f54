"""
Pydantic models for validation and serialization.
"""

from models.base import BaseSchema
from models.order import (
    BillingStatus,
    normalize_billing_status,
    ReturnInfo,
    HoldMetadata,
    OrderLine,
    SourceOrder,
)
from models.pool import (
    format_quantity,
    Contribution,
    PooledItem,
    PooledItemView,
)
from models.container import (
    ContainerStatus,
    CONTAINER_TRANSITIONS,
    is_valid_container_transition,
    ContainerLine,
    Container,
    LabelItem,
    LabelManifest,
)
from models.hold import (
    HoldRecord,
    HoldRequest,
    HoldDecision,
    HoldGroupResponse,
)
from models.issue import (
    IssueTag,
    ISSUE_TAG_LABELS,
    REVIEW_REASON_PREFIX,
    IssueReport,
    IssueReportCreate,
    ReviewRequest,
)
from models.sync import SyncEvent
from models.session import (
    SessionStatus,
    SessionCreate,
    GroupSessionCreate,
    AssignRequest,
    BulkAssignRequest,
    DropRequest,
    SessionSnapshot,
    CompletionResult,
    BulkAssignResult,
    CompletionSubmission,
)

__all__ = [
    # Base
    "BaseSchema",

    # Orders
    "BillingStatus",
    "normalize_billing_status",
    "ReturnInfo",
    "HoldMetadata",
    "OrderLine",
    "SourceOrder",

    # Pool
    "format_quantity",
    "Contribution",
    "PooledItem",
    "PooledItemView",

    # Containers
    "ContainerStatus",
    "CONTAINER_TRANSITIONS",
    "is_valid_container_transition",
    "ContainerLine",
    "Container",
    "LabelItem",
    "LabelManifest",

    # Holds
    "HoldRecord",
    "HoldRequest",
    "HoldDecision",
    "HoldGroupResponse",

    # Issues
    "IssueTag",
    "ISSUE_TAG_LABELS",
    "REVIEW_REASON_PREFIX",
    "IssueReport",
    "IssueReportCreate",
    "ReviewRequest",

    # Sync
    "SyncEvent",

    # Sessions
    "SessionStatus",
    "SessionCreate",
    "GroupSessionCreate",
    "AssignRequest",
    "BulkAssignRequest",
    "DropRequest",
    "SessionSnapshot",
    "CompletionResult",
    "BulkAssignResult",
    "CompletionSubmission",
]
