"""
Custom exception classes for the packing engine.

Every error carries a stable code, an HTTP status and a details dict so the
API layer can render it without knowing the concrete type.
"""

from typing import Optional, Any
from datetime import datetime, timezone


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "CONTAINER_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ConflictError(AppError):
    """Conflict with existing state (409)."""

    def __init__(
        self,
        message: str,
        code: str = "CONFLICT",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{service.upper()}_ERROR",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


# ===================
# SESSION ERRORS
# ===================

class SessionNotFoundError(NotFoundError):
    """Packing session not found."""

    def __init__(self, session_id: str):
        super().__init__(
            resource="Packing session",
            identifier=session_id,
            code="SESSION_NOT_FOUND"
        )


class ActiveSessionExistsError(ConflictError):
    """Operator already has an active packing session."""

    def __init__(self, operator_email: str, session_id: str):
        super().__init__(
            code="ACTIVE_SESSION_EXISTS",
            message="Operator already has an active packing session",
            details={"operator_email": operator_email, "session_id": session_id}
        )


class SessionClosedError(ConflictError):
    """Session was already completed or abandoned."""

    def __init__(self, session_id: str):
        super().__init__(
            code="SESSION_CLOSED",
            message="Packing session is closed",
            details={"session_id": session_id}
        )


class EmptyOrderSetError(ValidationError):
    """A session needs at least one order."""

    def __init__(self):
        super().__init__(
            code="EMPTY_ORDER_SET",
            message="No orders provided for packing"
        )


class SessionLoadError(ExternalServiceError):
    """One or more orders could not be fetched; nothing was loaded."""

    def __init__(self, failed_order_ids: list[str], reason: str):
        super().__init__(
            service="fulfillment",
            code="SESSION_LOAD_FAILED",
            message=f"Failed to load orders: {reason}",
            details={"failed_order_ids": failed_order_ids}
        )


# ===================
# ORDER / POOL ERRORS
# ===================

class OrderNotFoundError(NotFoundError):
    """Backend has no order with this number."""

    def __init__(self, order_id: str):
        super().__init__(
            resource="Order",
            identifier=order_id,
            code="ORDER_NOT_FOUND"
        )


class InvalidOrderPayloadError(ValidationError):
    """Backend returned an order that cannot be normalized."""

    def __init__(self, order_id: str, errors: list[str]):
        super().__init__(
            code="INVALID_ORDER_PAYLOAD",
            message=f"Order #{order_id} payload is invalid",
            details={"order_id": order_id, "errors": errors}
        )


class PooledItemNotFoundError(NotFoundError):
    """Item key not present in the pool."""

    def __init__(self, item_key: str):
        super().__init__(
            resource="Pooled item",
            identifier=item_key,
            code="POOLED_ITEM_NOT_FOUND"
        )


# ===================
# ALLOCATION ERRORS
# ===================

class InvalidQuantityError(ValidationError):
    """Assigned quantity must be positive."""

    def __init__(self, quantity: Any):
        super().__init__(
            code="INVALID_QUANTITY",
            message="Please enter a valid quantity",
            details={"quantity": str(quantity)}
        )


class OverAssignmentError(ValidationError):
    """Requested quantity exceeds what is left to assign."""

    def __init__(self, item_key: str, quantity: Any, remaining: Any):
        super().__init__(
            code="OVER_ASSIGNMENT",
            message=f"Cannot assign {quantity}. Only {remaining} remaining.",
            details={"item_key": item_key, "quantity": str(quantity), "remaining": str(remaining)}
        )


class NothingRemainingError(ValidationError):
    """Every unit of the item is already assigned."""

    def __init__(self, item_key: str):
        super().__init__(
            code="NOTHING_REMAINING",
            message="All items already assigned",
            details={"item_key": item_key}
        )


# ===================
# CONTAINER ERRORS
# ===================

class ContainerNotFoundError(NotFoundError):
    """Container not found."""

    def __init__(self, container_id: str):
        super().__init__(
            resource="Container",
            identifier=container_id,
            code="CONTAINER_NOT_FOUND"
        )


class ContainerLineNotFoundError(NotFoundError):
    """Container has no line for the item."""

    def __init__(self, container_id: str, item_key: str):
        super().__init__(
            resource="Container line",
            identifier=f"{container_id}/{item_key}",
            code="CONTAINER_LINE_NOT_FOUND"
        )


class ContainerNotOpenError(ValidationError):
    """Completed containers are immutable."""

    def __init__(self, container_id: str, status: str):
        super().__init__(
            code="CONTAINER_NOT_OPEN",
            message="Cannot modify a completed container",
            details={"container_id": container_id, "status": status}
        )


class OpenContainerExistsError(ConflictError):
    """Previous container must be completed first."""

    def __init__(self, container_id: str):
        super().__init__(
            code="OPEN_CONTAINER_EXISTS",
            message="Please complete the current container before adding a new one",
            details={"container_id": container_id}
        )


class EmptyContainerError(ValidationError):
    """Cannot complete a container without lines."""

    def __init__(self, container_id: str):
        super().__init__(
            code="EMPTY_CONTAINER",
            message="Cannot complete an empty container. Please assign items first.",
            details={"container_id": container_id}
        )


class InvalidContainerTransitionError(ValidationError):
    """Invalid container status transition."""

    def __init__(self, container_id: str, current_status: str, new_status: str):
        super().__init__(
            code="INVALID_CONTAINER_TRANSITION",
            message=f"Cannot transition from {current_status} to {new_status}",
            details={
                "container_id": container_id,
                "current_status": current_status,
                "new_status": new_status,
            }
        )


class ContainerRemovalNotConfirmedError(ValidationError):
    """Removing a non-empty container needs explicit confirmation."""

    def __init__(self, container_id: str, line_count: int):
        super().__init__(
            code="CONTAINER_REMOVAL_NOT_CONFIRMED",
            message="This container holds items. Confirm removal; its items will become unassigned.",
            details={"container_id": container_id, "line_count": line_count}
        )


class ContainerIdCollisionError(ConflictError):
    """Backend already knows one of the container ids. Retriable after refresh."""

    def __init__(self, reason: str):
        super().__init__(
            code="CONTAINER_ID_COLLISION",
            message="Container ID already exists. Please refresh and try again.",
            details={"reason": reason, "retriable": True}
        )


# ===================
# HOLD ERRORS
# ===================

class HoldConflictError(ConflictError):
    """Order is already held in another group."""

    def __init__(self, order_id: str, existing_key: str):
        super().__init__(
            code="HOLD_CONFLICT",
            message=f"Order #{order_id} is already held for another customer",
            details={"order_id": order_id, "existing_customer_name": existing_key}
        )


class InvalidHoldError(ValidationError):
    """Hold request is missing required data."""

    def __init__(self, message: str):
        super().__init__(
            code="INVALID_HOLD",
            message=message
        )


# ===================
# ISSUE / REVIEW ERRORS
# ===================

class IssueReportInvalidError(ValidationError):
    """Issue report needs at least one tag or an 'other' note."""

    def __init__(self, item_key: str):
        super().__init__(
            code="ISSUE_REPORT_INVALID",
            message="Select at least one issue",
            details={"item_key": item_key}
        )


class ReviewNotAllowedError(ValidationError):
    """Review cannot be requested in the current state."""

    def __init__(self, message: str):
        super().__init__(
            code="REVIEW_NOT_ALLOWED",
            message=message
        )


class ReviewSubmissionError(ExternalServiceError):
    """One or more review submissions failed."""

    def __init__(self, failed_order_ids: list[str], reason: str):
        super().__init__(
            service="fulfillment",
            code="REVIEW_SUBMISSION_FAILED",
            message=f"Failed to send orders to review: {reason}",
            details={"failed_order_ids": failed_order_ids}
        )


# ===================
# COMPLETION ERRORS
# ===================

class CompletionBlockedError(ValidationError):
    """Validation failures prevent completing the session."""

    def __init__(self, errors: list[str]):
        super().__init__(
            code="COMPLETION_BLOCKED",
            message="Please fix validation errors before completing",
            details={"errors": errors}
        )
        self.errors = errors


class CompletionInProgressError(ConflictError):
    """A completion submission is already outstanding."""

    def __init__(self, session_id: str):
        super().__init__(
            code="COMPLETION_IN_PROGRESS",
            message="Packing completion is already being submitted",
            details={"session_id": session_id}
        )


class CompletionSubmissionError(ExternalServiceError):
    """Backend rejected or failed the completion submission."""

    def __init__(self, reason: str, details: Optional[dict] = None):
        super().__init__(
            service="fulfillment",
            code="COMPLETION_SUBMISSION_FAILED",
            message=reason,
            details=details
        )


# ===================
# BACKEND ERRORS
# ===================

class FulfillmentApiError(ExternalServiceError):
    """Fulfillment backend request failed."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        body: Optional[Any] = None
    ):
        super().__init__(
            service="fulfillment",
            message=message,
            details={"status": status, "body": body}
        )
        self.status = status
        self.body = body
