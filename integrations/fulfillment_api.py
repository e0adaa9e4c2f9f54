"""
Fulfillment backend client.

The only module that speaks HTTP to the backend. Every call is async and
not cancelable once issued; the configured timeout turns a hung request into
an ordinary FulfillmentApiError.
"""

import structlog
from typing import Any, AsyncIterator, List, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from config import settings as app_settings, Settings
from models.container import Container
from models.hold import HoldRecord
from models.issue import ReviewRequest
from models.order import SourceOrder
from models.session import CompletionSubmission
from exceptions import FulfillmentApiError, OrderNotFoundError

logger = structlog.get_logger(__name__)


class FulfillmentApiClient:
    """Async client for the fulfillment backend's packing endpoints."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.settings = settings or app_settings
        headers = {"Content-Type": "application/json"}
        if self.settings.fulfillment_api_token:
            headers["Authorization"] = f"Bearer {self.settings.fulfillment_api_token}"

        self._client = httpx.AsyncClient(
            base_url=self.settings.fulfillment_api_url.rstrip("/"),
            headers=headers,
            timeout=self.settings.request_timeout_seconds,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    # ===================
    # ORDERS
    # ===================

    async def fetch_order(self, order_id: str) -> SourceOrder:
        """
        GET one order, normalized.

        Raises:
            OrderNotFoundError: If the backend has no such order (HTTP 404)
            FulfillmentApiError: On network failure or other non-2xx response
            InvalidOrderPayloadError: If the payload cannot be normalized
        """
        try:
            body = await self._request("GET", f"/sales/packing/bill/{order_id}/")
        except FulfillmentApiError as e:
            if e.status == 404:
                raise OrderNotFoundError(order_id) from e
            raise
        data = _data(body)
        if not isinstance(data, dict) or not data:
            raise FulfillmentApiError(f"Order #{order_id} returned no data", body=body)
        return SourceOrder.from_payload(data)

    # ===================
    # SUBMISSIONS
    # ===================

    async def submit_completion(self, submission: CompletionSubmission) -> str:
        """
        POST the completed session.

        Returns:
            The backend's consolidated session id
        """
        body = await self._request(
            "POST",
            "/sales/packing/complete-consolidated-packing/",
            json=submission.to_wire()
        )
        data = _data(body) or {}
        consolidated_id = data.get("consolidated_id") if isinstance(data, dict) else None
        if not consolidated_id:
            raise FulfillmentApiError("Completion response has no consolidated_id", body=body)
        return str(consolidated_id)

    async def submit_review(self, request: ReviewRequest) -> None:
        await self._request(
            "POST",
            "/sales/billing/return/",
            json={
                "invoice_no": request.order_id,
                "return_reason": request.reason_text,
                "user_email": request.reporter_email,
            }
        )

    async def save_draft(self, order_id: str, containers: List[Container]) -> None:
        await self._request(
            "POST",
            "/sales/packing/save-draft/",
            json={
                "invoice_no": order_id,
                "boxes": [
                    {
                        "box_id": container.id,
                        "is_sealed": container.is_finalized,
                        "items": [
                            {"item_id": line.item_key, "quantity": str(line.quantity)}
                            for line in container.lines
                        ],
                    }
                    for container in containers
                ],
            }
        )

    # ===================
    # HOLDS
    # ===================

    async def list_holds(self) -> List[HoldRecord]:
        """
        GET every open hold.

        Raises:
            FulfillmentApiError: On transport failure or a row that cannot be normalized
        """
        body = await self._request("GET", "/sales/packing/holds/")
        rows = _data(body) or []
        if not isinstance(rows, list):
            raise FulfillmentApiError("Hold list is not a list", body=body)

        records = []
        for row in rows:
            try:
                records.append(HoldRecord.from_payload(row))
            except (KeyError, TypeError, PydanticValidationError) as e:
                logger.error("hold_row_invalid", row=row, error=str(e))
                raise FulfillmentApiError(f"Malformed hold row: {e}", body=row) from e
        return records

    async def save_hold(self, record: HoldRecord) -> None:
        await self._request(
            "POST",
            "/sales/packing/holds/",
            json=record.to_payload()
        )

    async def release_holds(self, customer_name: str, order_ids: List[str]) -> None:
        await self._request(
            "POST",
            "/sales/packing/holds/release/",
            json={"customer_name": customer_name, "invoice_numbers": order_ids}
        )

    # ===================
    # LIVE STREAM
    # ===================

    async def stream_events(self) -> AsyncIterator[str]:
        """
        Open the server-sent event stream and yield each event's data.

        Multi-line `data:` fields are joined with newlines; comments and
        other fields are ignored.
        """
        timeout = httpx.Timeout(self.settings.request_timeout_seconds, read=None)
        async with self._client.stream(
            "GET",
            self.settings.sync_stream_path,
            headers={"Accept": "text/event-stream"},
            timeout=timeout
        ) as response:
            if response.status_code >= 400:
                raise FulfillmentApiError(
                    f"Event stream refused: HTTP {response.status_code}",
                    status=response.status_code
                )

            logger.info("sync_stream_opened", path=self.settings.sync_stream_path)
            data_lines: List[str] = []
            async for line in response.aiter_lines():
                if not line:
                    if data_lines:
                        yield "\n".join(data_lines)
                        data_lines = []
                    continue
                if line.startswith(":"):
                    continue
                field, _, value = line.partition(":")
                if field == "data":
                    data_lines.append(value[1:] if value.startswith(" ") else value)

            if data_lines:
                yield "\n".join(data_lines)

    # ===================
    # TRANSPORT
    # ===================

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        logger.debug("fulfillment_request", method=method, path=path)

        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(
                "fulfillment_request_failed",
                method=method,
                path=path,
                error=str(e),
                error_type=type(e).__name__
            )
            raise FulfillmentApiError(f"Request to {path} failed: {e}") from e

        body = _json_or_text(response)

        if response.status_code >= 400:
            message = body.get("message") if isinstance(body, dict) else None
            logger.error(
                "fulfillment_request_rejected",
                method=method,
                path=path,
                status=response.status_code,
                message=message
            )
            raise FulfillmentApiError(
                message or f"HTTP {response.status_code}",
                status=response.status_code,
                body=body
            )

        return body if body is not None else {}


def _data(body: Any) -> Any:
    return body.get("data") if isinstance(body, dict) else None


def _json_or_text(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


# Singleton instance
_fulfillment_api: Optional[FulfillmentApiClient] = None


def get_fulfillment_api() -> FulfillmentApiClient:
    """Get the singleton backend client."""
    global _fulfillment_api
    if _fulfillment_api is None:
        _fulfillment_api = FulfillmentApiClient()
    return _fulfillment_api
