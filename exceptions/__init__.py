"""
Custom exceptions module.

Import from here rather than from exceptions.errors.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ConflictError,
    ExternalServiceError,

    # Sessions
    SessionNotFoundError,
    ActiveSessionExistsError,
    SessionClosedError,
    EmptyOrderSetError,
    SessionLoadError,

    # Orders / pool
    OrderNotFoundError,
    InvalidOrderPayloadError,
    PooledItemNotFoundError,

    # Allocation
    InvalidQuantityError,
    OverAssignmentError,
    NothingRemainingError,

    # Containers
    ContainerNotFoundError,
    ContainerLineNotFoundError,
    ContainerNotOpenError,
    OpenContainerExistsError,
    EmptyContainerError,
    InvalidContainerTransitionError,
    ContainerRemovalNotConfirmedError,
    ContainerIdCollisionError,

    # Holds
    HoldConflictError,
    InvalidHoldError,

    # Issues / review
    IssueReportInvalidError,
    ReviewNotAllowedError,
    ReviewSubmissionError,

    # Completion
    CompletionBlockedError,
    CompletionInProgressError,
    CompletionSubmissionError,

    # Backend
    FulfillmentApiError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "ExternalServiceError",

    # Sessions
    "SessionNotFoundError",
    "ActiveSessionExistsError",
    "SessionClosedError",
    "EmptyOrderSetError",
    "SessionLoadError",

    # Orders / pool
    "OrderNotFoundError",
    "InvalidOrderPayloadError",
    "PooledItemNotFoundError",

    # Allocation
    "InvalidQuantityError",
    "OverAssignmentError",
    "NothingRemainingError",

    # Containers
    "ContainerNotFoundError",
    "ContainerLineNotFoundError",
    "ContainerNotOpenError",
    "OpenContainerExistsError",
    "EmptyContainerError",
    "InvalidContainerTransitionError",
    "ContainerRemovalNotConfirmedError",
    "ContainerIdCollisionError",

    # Holds
    "HoldConflictError",
    "InvalidHoldError",

    # Issues / review
    "IssueReportInvalidError",
    "ReviewNotAllowedError",
    "ReviewSubmissionError",

    # Completion
    "CompletionBlockedError",
    "CompletionInProgressError",
    "CompletionSubmissionError",

    # Backend
    "FulfillmentApiError",
]
