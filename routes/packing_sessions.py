"""
Packing Session API Routes.

Endpoints for starting a session, building containers, allocating pooled
items, reporting issues and completing the session.
"""

from fastapi import APIRouter, HTTPException, Query, status
from typing import List

from services.packing_session_service import get_packing_session_service
from models.container import Container, ContainerLine, LabelManifest
from models.issue import IssueReport, IssueReportCreate
from models.session import (
    AssignRequest,
    BulkAssignRequest,
    BulkAssignResult,
    CompletionResult,
    DropRequest,
    GroupSessionCreate,
    SessionCreate,
    SessionSnapshot,
)
from exceptions import AppError

router = APIRouter(prefix="/api/packing/sessions", tags=["packing"])


# ===================
# SESSION ENDPOINTS
# ===================

@router.post(
    "",
    response_model=SessionSnapshot,
    status_code=status.HTTP_201_CREATED,
    summary="Start a packing session"
)
async def start_session(data: SessionCreate):
    """
    Load the given orders and open a session for the operator.

    Either every order loads or no session is created.
    """
    service = get_packing_session_service()
    try:
        session = await service.start_session(
            data.order_ids,
            data.operator_email,
            customer_name=data.customer_name
        )
        return session.snapshot()
    except AppError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.post(
    "/from-hold",
    response_model=SessionSnapshot,
    status_code=status.HTTP_201_CREATED,
    summary="Start a session for a hold group"
)
async def start_group_session(data: GroupSessionCreate):
    """Open a session covering every order held under a customer name."""
    service = get_packing_session_service()
    try:
        session = await service.start_group_session(
            data.customer_name,
            data.operator_email,
            current_order_id=data.current_order_id
        )
        return session.snapshot()
    except AppError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.get(
    "/{session_id}",
    response_model=SessionSnapshot,
    summary="Get session state"
)
def get_session(session_id: str):
    """
    Orders, pool with assigned/remaining quantities, containers, issues,
    notices and the current completion blockers.
    """
    service = get_packing_session_service()
    try:
        return service.get(session_id).snapshot()
    except AppError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.delete(
    "/{session_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Abandon a session"
)
async def abandon_session(session_id: str):
    """Discard the session without submitting. Holds are kept."""
    service = get_packing_session_service()
    try:
        await service.abandon(session_id)
    except AppError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.post(
    "/{session_id}/complete",
    response_model=CompletionResult,
    summary="Complete the session"
)
async def complete_session(session_id: str):
    """
    Validate and submit the session.

    Returns 422 with the list of blockers when validation fails, and 409
    when a container id collided (refresh and try again).
    """
    service = get_packing_session_service()
    try:
        return await service.complete(session_id)
    except AppError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.get(
    "/{session_id}/labels",
    response_model=List[LabelManifest],
    summary="Label manifests of finalized containers"
)
def list_labels(session_id: str):
    service = get_packing_session_service()
    try:
        return service.get(session_id).label_manifests()
    except AppError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


# ===================
# CONTAINER ENDPOINTS
# ===================

@router.post(
    "/{session_id}/containers",
    response_model=Container,
    status_code=status.HTTP_201_CREATED,
    summary="Create a container"
)
def create_container(session_id: str):
    service = get_packing_session_service()
    try:
        return service.get(session_id).create_container()
    except AppError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.post(
    "/{session_id}/containers/{container_id}/complete",
    response_model=Container,
    summary="Complete a container"
)
async def complete_container(session_id: str, container_id: str):
    """Close a container for edits, then save a draft for single-order sessions."""
    service = get_packing_session_service()
    try:
        session = service.get(session_id)
        container = session.complete_container(container_id)
    except AppError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())

    await session.save_draft()
    return container


@router.post(
    "/{session_id}/containers/{container_id}/label",
    response_model=LabelManifest,
    summary="Mark a container labeled"
)
def label_container(session_id: str, container_id: str):
    service = get_packing_session_service()
    try:
        return service.get(session_id).mark_labeled(container_id)
    except AppError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.delete(
    "/{session_id}/containers/{container_id}",
    response_model=Container,
    summary="Remove an open container"
)
def remove_container(session_id: str, container_id: str, confirm: bool = Query(False)):
    """
    Remove an open container. A container holding items needs `confirm=true`;
    its quantities return to the pool.
    """
    service = get_packing_session_service()
    try:
        return service.get(session_id).remove_container(container_id, confirm=confirm)
    except AppError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


# ===================
# ALLOCATION ENDPOINTS
# ===================

@router.post(
    "/{session_id}/containers/{container_id}/assign",
    response_model=ContainerLine,
    summary="Assign a quantity of an item"
)
def assign_item(session_id: str, container_id: str, data: AssignRequest):
    service = get_packing_session_service()
    try:
        return service.get(session_id).assign(data.item_key, container_id, data.quantity)
    except AppError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.post(
    "/{session_id}/containers/{container_id}/bulk-assign",
    response_model=BulkAssignResult,
    summary="Assign the remainder of several items"
)
def bulk_assign_items(session_id: str, container_id: str, data: BulkAssignRequest):
    """Fully assigned items are skipped."""
    service = get_packing_session_service()
    try:
        lines = service.get(session_id).bulk_assign(data.item_keys, container_id)
        return BulkAssignResult(container_id=container_id, assigned_count=len(lines))
    except AppError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.post(
    "/{session_id}/containers/{container_id}/drop",
    response_model=ContainerLine,
    summary="Drop an item's remainder into a container"
)
def drop_item(session_id: str, container_id: str, data: DropRequest):
    service = get_packing_session_service()
    try:
        return service.get(session_id).drop(data.item_key, container_id)
    except AppError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.delete(
    "/{session_id}/containers/{container_id}/items/{item_key}",
    response_model=ContainerLine,
    summary="Return a container line to the pool"
)
def unassign_item(session_id: str, container_id: str, item_key: str):
    service = get_packing_session_service()
    try:
        return service.get(session_id).unassign(container_id, item_key)
    except AppError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


# ===================
# ISSUE ENDPOINTS
# ===================

@router.post(
    "/{session_id}/issues",
    response_model=IssueReport,
    status_code=status.HTTP_201_CREATED,
    summary="Report an issue with a pooled item"
)
def report_issue(session_id: str, data: IssueReportCreate):
    service = get_packing_session_service()
    try:
        return service.get(session_id).report_issue(data.item_key, data.tags, data.note)
    except AppError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.delete(
    "/{session_id}/issues/{item_key}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Clear an issue report"
)
def clear_issue(session_id: str, item_key: str):
    service = get_packing_session_service()
    try:
        service.get(session_id).clear_issue(item_key)
    except AppError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.post(
    "/{session_id}/review",
    response_model=SessionSnapshot,
    summary="Send the session's orders to review"
)
async def send_to_review(session_id: str):
    """
    Submit one review request per order with the aggregated issue text.

    Partial failures return 503 naming the failed orders; the successful
    ones stay under review.
    """
    service = get_packing_session_service()
    try:
        session = service.get(session_id)
        await session.send_to_review()
        return session.snapshot()
    except AppError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())
