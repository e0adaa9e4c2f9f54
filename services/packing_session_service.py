"""
Packing Session Service - one operator packing one set of orders.

A session owns the pooled items, the containers and their allocation
ledger, the issue reports, and (optionally) a live sync listener. Operator
actions are synchronous edits of that in-memory state. Sync-driven updates
only ever replace the order list or the pool as a whole; they never touch
containers, so an incoming event cannot corrupt an allocation in progress.
"""

import time
import uuid
import structlog
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from config import settings as app_settings, Settings
from integrations.fulfillment_api import FulfillmentApiClient, get_fulfillment_api
from models.container import Container, ContainerLine, LabelItem, LabelManifest
from models.issue import IssueReport, IssueTag
from models.order import SourceOrder
from models.session import (
    CompletionResult,
    CompletionSubmission,
    SessionSnapshot,
    SessionStatus,
)
from models.sync import SyncEvent
from services.allocation_service import AllocationLedger
from services.container_service import ContainerService
from services.hold_service import HoldService, get_hold_service
from services.pooling_service import load_orders, load_pool
from services.review_service import IssueReviewService
from services.sync_service import LiveSyncClient, RetryPolicy
from exceptions import (
    AppError,
    ActiveSessionExistsError,
    CompletionBlockedError,
    CompletionInProgressError,
    CompletionSubmissionError,
    ContainerIdCollisionError,
    EmptyOrderSetError,
    FulfillmentApiError,
    SessionClosedError,
    SessionNotFoundError,
)

logger = structlog.get_logger(__name__)

RefreshCallback = Callable[[], Awaitable[None]]


def completion_error(error: FulfillmentApiError) -> AppError:
    """
    Translate a rejected completion into the error the operator sees.

    Field errors are joined into one message; a duplicate-key response means
    a container id collided and the operator should refresh and retry.
    """
    body = error.body if isinstance(error.body, dict) else {}
    field_errors = body.get("errors")

    if field_errors:
        if isinstance(field_errors, dict):
            parts = [
                ", ".join(str(m) for m in messages) if isinstance(messages, list) else str(messages)
                for messages in field_errors.values()
            ]
        else:
            parts = [str(field_errors)]
        return CompletionSubmissionError(
            f"Validation failed: {' | '.join(parts)}",
            details={"errors": field_errors}
        )

    if "duplicate key" in error.message:
        return ContainerIdCollisionError(error.message)

    return CompletionSubmissionError(error.message, details={"status": error.status})


class PackingSession:
    """State and operations of one packing session."""

    def __init__(
        self,
        session_id: str,
        order_ids: Sequence[str],
        operator_email: str,
        api: FulfillmentApiClient,
        customer_name: Optional[str] = None,
        container_id_prefix: str = "CUST001",
        clock: Callable[[], float] = time.time,
        on_refresh: Optional[RefreshCallback] = None
    ):
        self.id = session_id
        self.order_ids = list(order_ids)
        self.operator_email = operator_email
        self.customer_name = customer_name or ""
        self.api = api
        self.status = SessionStatus.ACTIVE
        self.orders: List[SourceOrder] = []
        self.notices: List[str] = []

        self.containers = ContainerService(id_prefix=container_id_prefix, clock=clock)
        self.ledger = AllocationLedger(self.containers)
        self.issues = IssueReviewService()

        self._on_refresh = on_refresh
        self._completing = False
        self.sync: Optional[LiveSyncClient] = None

    @property
    def pool(self):
        return self.ledger.pool

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE

    @property
    def completing(self) -> bool:
        return self._completing

    def _ensure_active(self) -> None:
        if not self.is_active:
            raise SessionClosedError(self.id)

    # ===================
    # LOADING
    # ===================

    async def load(self) -> None:
        """
        Fetch all orders and build the pool. Nothing changes unless every fetch succeeds.

        Raises:
            SessionLoadError: If any order could not be fetched
        """
        orders, pool = await load_pool(self.api, self.order_ids)

        self.orders = orders
        self.ledger.replace_pool(pool)
        if not self.customer_name and orders:
            self.customer_name = orders[0].customer_name

        logger.info(
            "session_loaded",
            session_id=self.id,
            orders=len(orders),
            items=len(pool)
        )

    async def rebuild_pool(self) -> None:
        """Re-fetch orders and replace the pool (after a correction)."""
        await self.load()

    async def refresh_orders(self) -> None:
        """Re-fetch orders and replace the order list; the pool is left alone."""
        self.orders = await load_orders(self.api, self.order_ids)
        if self._on_refresh is not None:
            await self._on_refresh()
        logger.debug("session_orders_refreshed", session_id=self.id)

    # ===================
    # CONTAINERS
    # ===================

    def create_container(self) -> Container:
        self._ensure_active()
        return self.containers.create()

    def complete_container(self, container_id: str) -> Container:
        self._ensure_active()
        return self.containers.complete(container_id)

    def remove_container(self, container_id: str, confirm: bool = False) -> Container:
        self._ensure_active()
        return self.containers.remove(container_id, confirm=confirm)

    def mark_labeled(self, container_id: str) -> LabelManifest:
        """Mark a completed container as labeled and return its label manifest."""
        container = self.containers.mark_labeled(container_id)
        return self._manifest(container)

    def label_manifests(self) -> List[LabelManifest]:
        return [self._manifest(c) for c in self.containers.containers if c.is_finalized]

    # ===================
    # ALLOCATION
    # ===================

    def assign(self, item_key: str, container_id: str, quantity) -> ContainerLine:
        self._ensure_active()
        return self.ledger.assign(item_key, container_id, quantity)

    def bulk_assign(self, item_keys: Sequence[str], container_id: str) -> List[ContainerLine]:
        self._ensure_active()
        return self.ledger.bulk_assign(item_keys, container_id)

    def drop(self, item_key: str, container_id: str) -> ContainerLine:
        self._ensure_active()
        return self.ledger.drop(item_key, container_id)

    def unassign(self, container_id: str, item_key: str) -> ContainerLine:
        self._ensure_active()
        return self.ledger.unassign(container_id, item_key)

    # ===================
    # ISSUES / REVIEW
    # ===================

    def report_issue(
        self,
        item_key: str,
        tags: Sequence[IssueTag],
        note: Optional[str] = None
    ) -> IssueReport:
        self._ensure_active()
        item = self.ledger.item(item_key)
        return self.issues.report_issue(item, tags, note, self.orders)

    def clear_issue(self, item_key: str) -> bool:
        self._ensure_active()
        return self.issues.clear_issue(item_key)

    async def send_to_review(self) -> List[str]:
        self._ensure_active()
        sent = await self.issues.send_to_review(self.api, self.orders, self.operator_email)
        self.notices.append(
            "These orders are now under review. You'll be notified when corrected."
        )
        return sent

    # ===================
    # COMPLETION
    # ===================

    def validate(self) -> List[str]:
        """Every reason the session cannot be completed right now."""
        return (
            self.containers.validation_errors()
            + self.ledger.conservation_errors()
            + self.issues.completion_errors(self.orders)
        )

    async def complete(self) -> CompletionResult:
        """
        Submit the finished session. Single-flight.

        Raises:
            CompletionInProgressError: If a submission is already outstanding
            CompletionBlockedError: If validation fails
            ContainerIdCollisionError: If the backend already has a container id
            CompletionSubmissionError: For any other backend failure
        """
        self._ensure_active()
        if self._completing:
            raise CompletionInProgressError(self.id)

        errors = self.validate()
        if errors:
            logger.warning("session_completion_blocked", session_id=self.id, errors=errors)
            raise CompletionBlockedError(errors)

        self._completing = True
        try:
            submission = CompletionSubmission(
                order_ids=self.order_ids,
                customer_name=self.customer_name,
                containers=self.containers.containers,
            )
            consolidated_id = await self.api.submit_completion(submission)
        except FulfillmentApiError as e:
            logger.error("session_completion_failed", session_id=self.id, error=e.message)
            raise completion_error(e) from e
        finally:
            self._completing = False

        self.status = SessionStatus.COMPLETED
        logger.info(
            "session_completed",
            session_id=self.id,
            consolidated_id=consolidated_id,
            containers=len(submission.containers)
        )

        return CompletionResult(
            consolidated_id=consolidated_id,
            customer_name=self.customer_name,
            order_ids=self.order_ids,
            manifests=[self._manifest(c) for c in submission.containers],
        )

    def abandon(self) -> None:
        self._ensure_active()
        self.status = SessionStatus.ABANDONED
        logger.info("session_abandoned", session_id=self.id)

    async def save_draft(self) -> bool:
        """
        Best-effort draft save for single-order sessions.

        Returns:
            True if the backend stored the draft
        """
        if len(self.order_ids) != 1:
            return False
        try:
            await self.api.save_draft(self.order_ids[0], self.containers.containers)
        except FulfillmentApiError as e:
            logger.warning("draft_save_failed", session_id=self.id, error=e.message)
            return False
        return True

    # ===================
    # LIVE SYNC
    # ===================

    async def handle_sync_event(self, event: SyncEvent) -> None:
        """
        React to a pushed status change.

        Events for other orders are ignored. A correction addressed to this
        operator rebuilds the pool and posts a notice; anything else refreshes
        the order and hold lists.
        """
        if not self.is_active or event.order_id not in self.order_ids:
            return

        if event.is_correction_for(self.operator_email):
            logger.info("correction_received", session_id=self.id, order_id=event.order_id)
            await self.rebuild_pool()
            self.notices.append(f"Order #{event.order_id} has been corrected! Continue packing.")
            return

        logger.debug(
            "order_status_changed",
            session_id=self.id,
            order_id=event.order_id,
            status=event.status.value
        )
        await self.refresh_orders()

    # ===================
    # VIEWS
    # ===================

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            id=self.id,
            status=self.status,
            customer_name=self.customer_name,
            operator_email=self.operator_email,
            order_ids=self.order_ids,
            orders=self.orders,
            pool=self.ledger.views(),
            containers=self.containers.containers,
            issues=self.issues.reports,
            notices=self.notices,
            validation_errors=self.validate() if self.is_active else [],
        )

    def _manifest(self, container: Container) -> LabelManifest:
        first = self.orders[0] if self.orders else None
        return LabelManifest(
            customer_name=self.customer_name or "No Customer Name",
            address=(first.delivery_address if first else None) or "No address provided",
            phone=(first.customer_phone if first else None) or "",
            container_id=container.id,
            items=[
                LabelItem(
                    item_key=line.item_key,
                    name=line.name,
                    code=line.code,
                    quantity=line.quantity,
                )
                for line in container.lines
            ],
        )


class PackingSessionService:
    """
    Registry of live packing sessions. At most one active session per operator.
    """

    def __init__(
        self,
        api: Optional[FulfillmentApiClient] = None,
        holds: Optional[HoldService] = None,
        settings: Optional[Settings] = None,
        sync_enabled: Optional[bool] = None,
        clock: Callable[[], float] = time.time
    ):
        self.api = api or get_fulfillment_api()
        self.holds = holds or get_hold_service()
        self.settings = settings or app_settings
        self.sync_enabled = self.settings.sync_enabled if sync_enabled is None else sync_enabled
        self._clock = clock
        self._sessions: Dict[str, PackingSession] = {}
        # operator -> id of a session whose orders are still loading
        self._starting: Dict[str, str] = {}

    # ===================
    # READ OPERATIONS
    # ===================

    def get(self, session_id: str) -> PackingSession:
        """
        Raises:
            SessionNotFoundError: If no live session has this id
        """
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def active_for(self, operator_email: str) -> Optional[PackingSession]:
        for session in self._sessions.values():
            if session.operator_email == operator_email and session.is_active:
                return session
        return None

    @property
    def sessions(self) -> List[PackingSession]:
        return list(self._sessions.values())

    # ===================
    # START
    # ===================

    async def start_session(
        self,
        order_ids: Sequence[str],
        operator_email: str,
        customer_name: Optional[str] = None
    ) -> PackingSession:
        """
        Load orders and open a session.

        Raises:
            EmptyOrderSetError: If no order ids are given
            ActiveSessionExistsError: If the operator already has a session
            SessionLoadError: If any order fails to load (no session is created)
        """
        order_ids = list(dict.fromkeys(o for o in order_ids if o))
        if not order_ids:
            raise EmptyOrderSetError()

        existing = self.active_for(operator_email)
        if existing is not None:
            raise ActiveSessionExistsError(operator_email, existing.id)
        if operator_email in self._starting:
            raise ActiveSessionExistsError(operator_email, self._starting[operator_email])

        session = PackingSession(
            session_id=str(uuid.uuid4()),
            order_ids=order_ids,
            operator_email=operator_email,
            api=self.api,
            customer_name=customer_name,
            container_id_prefix=self.settings.container_id_prefix,
            clock=self._clock,
            on_refresh=self.refresh_holds,
        )

        logger.info(
            "session_starting",
            session_id=session.id,
            operator=operator_email,
            order_ids=order_ids
        )

        # Operator stays reserved while orders load
        self._starting[operator_email] = session.id
        try:
            await session.load()
        finally:
            self._starting.pop(operator_email, None)
        self._sessions[session.id] = session

        if self.sync_enabled:
            self._start_sync(session)

        return session

    async def start_group_session(
        self,
        customer_name: str,
        operator_email: str,
        current_order_id: Optional[str] = None
    ) -> PackingSession:
        """Open a multi-order session for every order held under a customer name."""
        order_ids = self.holds.proceed_with_group(customer_name, current_order_id)
        return await self.start_session(order_ids, operator_email, customer_name=customer_name.strip())

    # ===================
    # FINISH
    # ===================

    async def complete(self, session_id: str) -> CompletionResult:
        """Complete a session, release its hold group and discard it."""
        session = self.get(session_id)
        result = await session.complete()

        self.holds.release_group(session.customer_name, session.order_ids)
        try:
            await self.api.release_holds(session.customer_name, session.order_ids)
        except FulfillmentApiError as e:
            logger.warning("hold_release_failed", session_id=session.id, error=e.message)

        await self._discard(session)
        return result

    async def abandon(self, session_id: str) -> None:
        """Discard a session without submitting. Holds stay in place."""
        session = self.get(session_id)
        session.abandon()
        await self._discard(session)

    async def shutdown(self) -> None:
        for session in list(self._sessions.values()):
            await self._discard(session)

    # ===================
    # SYNC
    # ===================

    async def refresh_holds(self) -> None:
        """Replace the hold list with the backend's."""
        records = await self.api.list_holds()
        self.holds.replace_all(records)
        logger.debug("holds_refreshed", count=len(records))

    def _start_sync(self, session: PackingSession) -> None:
        client = LiveSyncClient(
            connect=self.api.stream_events,
            handler=session.handle_sync_event,
            policy=RetryPolicy.from_settings(self.settings),
            name=session.id,
        )
        session.sync = client
        client.start()

    async def _discard(self, session: PackingSession) -> None:
        if session.sync is not None:
            await session.sync.close()
            session.sync = None
        self._sessions.pop(session.id, None)
        logger.info("session_discarded", session_id=session.id, status=session.status.value)


# Singleton instance
_packing_session_service: Optional[PackingSessionService] = None


def get_packing_session_service() -> PackingSessionService:
    """Get the singleton packing session service instance."""
    global _packing_session_service
    if _packing_session_service is None:
        _packing_session_service = PackingSessionService()
    return _packing_session_service
