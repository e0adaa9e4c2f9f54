"""
Sync Service - live push-stream listener with supervised reconnects.

One listener per packing session. Messages are parsed into SyncEvents and
handed to the session; malformed messages are dropped without touching the
backoff state. Any parsed message resets the backoff. A handler that raises
is logged and the stream carries on. A dropped or failed connection is
retried after base * 2**attempt seconds, capped.
"""

import asyncio
import structlog
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, List, Optional

import httpx

from config import Settings
from models.sync import SyncEvent
from exceptions import AppError

logger = structlog.get_logger(__name__)

StreamFactory = Callable[[], AsyncIterator[str]]
EventHandler = Callable[[SyncEvent], Awaitable[None]]
Sleeper = Callable[[float], Awaitable[None]]


@dataclass
class RetryPolicy:
    """
    Exponential reconnect backoff.

    delay(n) = min(base_delay * 2**n, max_delay) for the n-th consecutive failure.
    """

    base_delay: float = 1.0
    max_delay: float = 30.0
    max_attempts: Optional[int] = None
    attempts: int = 0

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            base_delay=settings.reconnect_base_delay_seconds,
            max_delay=settings.reconnect_max_delay_seconds,
            max_attempts=settings.reconnect_max_attempts,
        )

    def delay_for(self, attempt: int) -> float:
        return min(self.base_delay * (2 ** attempt), self.max_delay)

    def next_delay(self) -> float:
        """Delay before the next reconnect; counts the attempt."""
        delay = self.delay_for(self.attempts)
        self.attempts += 1
        return delay

    def reset(self) -> None:
        self.attempts = 0

    @property
    def exhausted(self) -> bool:
        return self.max_attempts is not None and self.attempts >= self.max_attempts


class LiveSyncClient:
    """
    Supervised listener task.

    Args:
        connect: Opens the stream; yields raw message payloads
        handler: Receives each parsed event
        policy: Reconnect backoff
        sleep: Awaitable sleep (injectable for tests)
        name: Label for logs (the session id)
    """

    def __init__(
        self,
        connect: StreamFactory,
        handler: EventHandler,
        policy: Optional[RetryPolicy] = None,
        sleep: Sleeper = asyncio.sleep,
        name: str = "sync"
    ):
        self._connect = connect
        self._handler = handler
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self.name = name
        self._task: Optional[asyncio.Task] = None
        self._closed = False
        self.delays: List[float] = []

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        """Run the listener as a background task on the current loop."""
        if self._task is None or self._task.done():
            self._closed = False
            self._task = asyncio.create_task(self.run(), name=f"live-sync-{self.name}")
        return self._task

    async def close(self) -> None:
        """Stop listening and cancel any pending reconnect."""
        self._closed = True
        task, self._task = self._task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.info("sync_closed", session=self.name)

    async def run(self) -> None:
        """Connect, dispatch, and reconnect with backoff until closed or exhausted."""
        while not self._closed:
            try:
                logger.debug("sync_connecting", session=self.name, attempt=self.policy.attempts)
                async for message in self._connect():
                    event = self._parse(message)
                    if event is None:
                        continue
                    self.policy.reset()
                    await self._dispatch(event)
                    if self._closed:
                        return
                logger.info("sync_stream_ended", session=self.name)
            except (httpx.HTTPError, OSError, AppError) as e:
                logger.warning(
                    "sync_stream_error",
                    session=self.name,
                    error=str(e),
                    error_type=type(e).__name__
                )
            except Exception as e:
                logger.exception(
                    "sync_stream_failed",
                    session=self.name,
                    error=str(e),
                    error_type=type(e).__name__
                )

            if self._closed:
                return
            if self.policy.exhausted:
                logger.error(
                    "sync_reconnect_abandoned",
                    session=self.name,
                    attempts=self.policy.attempts
                )
                return

            delay = self.policy.next_delay()
            self.delays.append(delay)
            logger.info("sync_reconnect_scheduled", session=self.name, delay=delay)
            await self._sleep(delay)

    def _parse(self, message: str) -> Optional[SyncEvent]:
        try:
            return SyncEvent.from_message(message)
        except ValueError:
            logger.debug("sync_message_dropped", session=self.name)
            return None

    async def _dispatch(self, event: SyncEvent) -> None:
        try:
            await self._handler(event)
        except AppError as e:
            # A failed refresh must not tear down the stream
            logger.error(
                "sync_handler_failed",
                session=self.name,
                order_id=event.order_id,
                error=e.message,
                code=e.code
            )
        except Exception as e:
            logger.exception(
                "sync_handler_failed",
                session=self.name,
                order_id=event.order_id,
                error=str(e),
                error_type=type(e).__name__
            )
