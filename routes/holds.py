"""
Hold API Routes.

Endpoints for holding orders under a customer name so they can be packed
together later.
"""

from fastapi import APIRouter, HTTPException

from services.hold_service import get_hold_service
from integrations.fulfillment_api import get_fulfillment_api
from models.hold import HoldDecision, HoldGroupResponse, HoldRequest
from exceptions import AppError, FulfillmentApiError

router = APIRouter(prefix="/api/packing/holds", tags=["holds"])


@router.post(
    "",
    response_model=HoldDecision,
    summary="Hold an order or proceed alone"
)
async def place_hold(data: HoldRequest):
    """
    Hold an order under a customer name, or let it proceed alone.

    The hold is persisted to the backend; if that fails the local hold is
    released again and 503 is returned.

    Returns:
        HoldDecision with every order now held under the same name
    """
    service = get_hold_service()
    try:
        already_held = data.order_id in {r.order_id for r in service.records}
        decision = service.evaluate_hold(
            data.order_id,
            data.customer_name,
            data.holder_email,
            hold=data.hold,
            assign_to_email=data.assign_to_email
        )
    except AppError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())

    if not decision.held or already_held:
        return decision

    record = next(r for r in service.records if r.order_id == data.order_id)
    try:
        await get_fulfillment_api().save_hold(record)
    except FulfillmentApiError as e:
        service.release_order(data.order_id)
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())

    return decision


@router.get(
    "/{customer_name}",
    response_model=HoldGroupResponse,
    summary="List orders held under a customer name"
)
def get_hold_group(customer_name: str):
    """
    Returns:
        The held records plus the primary holder (offered as delegate)
    """
    service = get_hold_service()
    records = service.held_orders(customer_name)
    return HoldGroupResponse(
        customer_name=customer_name.strip(),
        primary_holder=service.primary_holder(customer_name),
        records=records,
        total=len(records)
    )
