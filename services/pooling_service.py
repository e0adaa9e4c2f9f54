"""
Pooling Service - merges per-order line items into one item pool.

Items are merged by item key. The first order that mentions an item supplies
its attributes (name, price, batch, expiry, package); every line appends a
contribution, in the order the orders and their lines are processed.
"""

import asyncio
import structlog
from typing import Dict, List, Sequence, TYPE_CHECKING

from models.order import SourceOrder
from models.pool import Contribution, PooledItem
from exceptions import AppError, SessionLoadError

if TYPE_CHECKING:
    from integrations.fulfillment_api import FulfillmentApiClient

logger = structlog.get_logger(__name__)


def build_pool(orders: Sequence[SourceOrder]) -> List[PooledItem]:
    """
    Merge the lines of all orders into pooled items.

    Args:
        orders: Source orders, in session order

    Returns:
        Pooled items in first-seen order
    """
    pool: Dict[str, PooledItem] = {}

    for order in orders:
        for line in order.lines:
            contribution = Contribution(order_id=order.id, quantity=line.quantity)

            existing = pool.get(line.item_key)
            if existing is not None:
                existing.contributions.append(contribution)
                continue

            pool[line.item_key] = PooledItem(
                item_key=line.item_key,
                name=line.name,
                code=line.code,
                price=line.price,
                batch_number=line.batch_number,
                expiry_date=line.expiry_date,
                package=line.package,
                contributions=[contribution],
            )

    items = list(pool.values())
    logger.debug("pool_built", orders=len(orders), items=len(items))
    return items


async def load_orders(
    api: "FulfillmentApiClient",
    order_ids: Sequence[str]
) -> List[SourceOrder]:
    """
    Fetch every order concurrently. All or nothing.

    Args:
        api: Fulfillment backend client
        order_ids: Order numbers to fetch

    Returns:
        Orders in the same order as `order_ids`

    Raises:
        SessionLoadError: If any fetch fails; no partial result is returned
    """
    logger.info("loading_orders", order_ids=list(order_ids))

    results = await asyncio.gather(
        *(api.fetch_order(order_id) for order_id in order_ids),
        return_exceptions=True
    )

    failed = [
        (order_id, result)
        for order_id, result in zip(order_ids, results)
        if isinstance(result, BaseException)
    ]

    if failed:
        for order_id, error in failed:
            logger.error(
                "order_fetch_failed",
                order_id=order_id,
                error=str(error),
                error_type=type(error).__name__
            )
        first_error = failed[0][1]
        reason = first_error.message if isinstance(first_error, AppError) else str(first_error)
        raise SessionLoadError([order_id for order_id, _ in failed], reason)

    logger.info("orders_loaded", count=len(results))
    return list(results)


async def load_pool(
    api: "FulfillmentApiClient",
    order_ids: Sequence[str]
) -> tuple[List[SourceOrder], List[PooledItem]]:
    """Fetch orders and pool them in one step."""
    orders = await load_orders(api, order_ids)
    return orders, build_pool(orders)
