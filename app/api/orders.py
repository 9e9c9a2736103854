"""Order API endpoints."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from app.api.errors import to_http_exception
from app.core.dependencies import get_order_changes, get_order_service
from app.core.errors import OrderError
from app.services.ordering.changes import OrderChangeLog, OrderChanges
from app.services.ordering.models import Order, OrderStatus
from app.services.ordering.service import OrderService

router = APIRouter()
logger = logging.getLogger(__name__)


class StatusUpdateRequest(BaseModel):
    """Status update request model."""
    status: str


@router.get("/api/orders", response_model=List[Order])
async def list_orders(
    request: Request,
    status: Optional[OrderStatus] = None,
    limit: int = 100,
    order_service: OrderService = Depends(get_order_service),
):
    """Get the most recent orders."""
    logger.info(
        f"[ORDERS] Request received - status: {status}, limit: {limit}, "
        f"Client: {request.client.host if request.client else 'unknown'}"
    )

    try:
        orders = await order_service.list_orders(status=status, limit=limit)
        logger.info(f"[ORDERS] Found {len(orders)} orders")
        return orders

    except Exception as e:
        logger.error(
            f"[ORDERS] Error fetching orders - limit: {limit}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
        raise HTTPException(status_code=500, detail=f"Error fetching orders: {str(e)}")


@router.get("/api/orders/changes", response_model=OrderChanges)
async def get_order_changes_since(
    since: int = 0,
    order_changes: OrderChangeLog = Depends(get_order_changes),
):
    """Orders created or updated after cursor ``since`` (live order list polling)."""
    changes = order_changes.since(since)
    logger.debug(
        f"[ORDERS] Changes since {since}: {len(changes.orders)} orders, cursor {changes.cursor}"
    )
    return changes


@router.get("/api/orders/{order_id}", response_model=Order)
async def get_order(
    order_id: int,
    order_service: OrderService = Depends(get_order_service),
):
    """Get a single order."""
    order = await order_service.get_order(order_id)
    if order is None:
        raise HTTPException(status_code=404, detail=f"Order {order_id} not found")
    return order


@router.patch("/api/orders/{order_id}/status", response_model=Order)
async def update_order_status(
    order_id: int,
    status_req: StatusUpdateRequest,
    order_service: OrderService = Depends(get_order_service),
):
    """Set an order's status (operator action)."""
    logger.info(f"[ORDERS] Status update - order: {order_id}, status: {status_req.status}")
    try:
        order = await order_service.update_status(order_id, status_req.status)
    except OrderError as e:
        raise to_http_exception(e, "ORDERS")
    if order is None:
        raise HTTPException(status_code=404, detail=f"Order {order_id} not found")
    return order
