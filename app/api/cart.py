"""Cart and checkout API endpoints."""
import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from app.api.errors import to_http_exception
from app.core.dependencies import (
    cart_registry,
    get_catalog_repository,
    get_notification_dispatcher,
    get_order_service,
)
from app.core.errors import OrderError
from app.services.cart.models import CartSelections
from app.services.cart.store import CartStore, CartUpdate, StockCeilingWarning
from app.services.catalog.repository import CatalogRepository
from app.services.notification.dispatcher import Notification, NotificationDispatcher
from app.services.ordering.models import CustomerInfo, Order
from app.services.ordering.service import OrderService
from app.services.pricing.engine import PricingEngine

router = APIRouter()
logger = logging.getLogger(__name__)


class AddLineRequest(BaseModel):
    """Add-to-cart request model."""
    product_id: str
    quantity: int = 1
    selected_modifiers: Dict[str, str] = {}
    selected_tier: Optional[str] = None
    recipe_selection: Optional[Dict[str, int]] = None


class CartLineResponse(BaseModel):
    """Cart line response model."""
    key: str
    product_id: str
    product_name: str
    quantity: int
    selected_modifiers: Dict[str, str] = {}
    selected_tier: Optional[str] = None
    recipe_selection: Optional[Dict[str, int]] = None
    known_stock: Optional[int] = None
    unit_price: Optional[int] = None
    line_total: Optional[int] = None


class CartResponse(BaseModel):
    """Cart response model."""
    cart_id: str
    lines: List[CartLineResponse] = []
    total: int = 0
    warning: Optional[str] = None


class CheckoutResponse(BaseModel):
    """Checkout response model."""
    order: Order
    notification: Optional[Notification] = None


def get_cart_store(cart_id: str) -> CartStore:
    """Get (or start) the cart for a session."""
    return cart_registry.get(cart_id)


async def _cart_response(
    cart_id: str,
    store: CartStore,
    catalog_repository: CatalogRepository,
    warning: Optional[StockCeilingWarning] = None,
) -> CartResponse:
    products = await catalog_repository.get_products(
        {line.product_id for line in store.snapshot.lines}
    )
    lines = []
    total = 0
    for line in store.snapshot.lines:
        unit_price = line_total = None
        product = products.get(line.product_id)
        if product is not None:
            try:
                unit_price = PricingEngine.compute_line_unit_price(
                    product, line.selected_modifiers, line.selected_tier
                )
                line_total = PricingEngine.compute_line_total(product, line)
                total += line_total
            except OrderError as e:
                logger.warning(f"[CART] Line {line.key} no longer prices: {e.message}")
        lines.append(
            CartLineResponse(
                key=line.key,
                product_id=line.product_id,
                product_name=line.product_name,
                quantity=line.quantity,
                selected_modifiers=line.selected_modifiers,
                selected_tier=line.selected_tier,
                recipe_selection=line.recipe_selection,
                known_stock=line.known_stock,
                unit_price=unit_price,
                line_total=line_total,
            )
        )
    return CartResponse(
        cart_id=cart_id,
        lines=lines,
        total=total,
        warning=warning.message if warning else None,
    )


@router.get("/api/carts/{cart_id}", response_model=CartResponse)
async def get_cart(
    cart_id: str,
    catalog_repository: CatalogRepository = Depends(get_catalog_repository),
):
    """Get the cart of a session."""
    return await _cart_response(cart_id, get_cart_store(cart_id), catalog_repository)


@router.post("/api/carts/{cart_id}/lines", response_model=CartResponse)
async def add_cart_line(
    cart_id: str,
    add_req: AddLineRequest,
    catalog_repository: CatalogRepository = Depends(get_catalog_repository),
):
    """Add a selection to the cart."""
    logger.info(
        f"[CART] Add line - cart: {cart_id}, product: {add_req.product_id}, qty: {add_req.quantity}"
    )
    product = await catalog_repository.get_product(add_req.product_id)
    if product is None:
        raise HTTPException(status_code=404, detail=f"Product '{add_req.product_id}' not found")

    store = get_cart_store(cart_id)
    try:
        update = store.add_line(
            product,
            add_req.quantity,
            CartSelections(
                selected_modifiers=add_req.selected_modifiers,
                selected_tier=add_req.selected_tier,
                recipe_selection=add_req.recipe_selection,
            ),
        )
    except OrderError as e:
        raise to_http_exception(e, "CART")
    return await _cart_response(cart_id, store, catalog_repository, update.warning)


def _require_line(store: CartStore, key: str) -> None:
    if store.snapshot.find(key) is None:
        raise HTTPException(status_code=404, detail=f"Cart line '{key}' not found")


@router.post("/api/carts/{cart_id}/lines/{key}/increase", response_model=CartResponse)
async def increase_cart_line(
    cart_id: str,
    key: str,
    catalog_repository: CatalogRepository = Depends(get_catalog_repository),
):
    """Increase a line by one."""
    store = get_cart_store(cart_id)
    _require_line(store, key)
    product = await catalog_repository.get_product(store.snapshot.find(key).product_id)
    update: CartUpdate = store.increase_line(key, product)
    return await _cart_response(cart_id, store, catalog_repository, update.warning)


@router.post("/api/carts/{cart_id}/lines/{key}/decrease", response_model=CartResponse)
async def decrease_cart_line(
    cart_id: str,
    key: str,
    catalog_repository: CatalogRepository = Depends(get_catalog_repository),
):
    """Decrease a line by one (removing it at zero)."""
    store = get_cart_store(cart_id)
    _require_line(store, key)
    store.decrease_line(key)
    return await _cart_response(cart_id, store, catalog_repository)


@router.delete("/api/carts/{cart_id}/lines/{key}", response_model=CartResponse)
async def remove_cart_line(
    cart_id: str,
    key: str,
    catalog_repository: CatalogRepository = Depends(get_catalog_repository),
):
    """Remove a line."""
    store = get_cart_store(cart_id)
    _require_line(store, key)
    store.remove_line(key)
    return await _cart_response(cart_id, store, catalog_repository)


@router.delete("/api/carts/{cart_id}", response_model=CartResponse)
async def clear_cart(
    cart_id: str,
    catalog_repository: CatalogRepository = Depends(get_catalog_repository),
):
    """Empty the cart."""
    store = get_cart_store(cart_id)
    store.clear()
    return await _cart_response(cart_id, store, catalog_repository)


@router.post("/api/carts/{cart_id}/checkout", response_model=CheckoutResponse)
async def checkout(
    request: Request,
    cart_id: str,
    customer: CustomerInfo,
    order_service: OrderService = Depends(get_order_service),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    """Submit the cart as an order and hand the summary to the notification channel."""
    logger.info(
        f"[CHECKOUT] Request received - cart: {cart_id}, "
        f"Client: {request.client.host if request.client else 'unknown'}"
    )
    store = get_cart_store(cart_id)

    try:
        dispatcher.ensure_configured()
        order = await order_service.submit_order(store.snapshot, customer)
    except OrderError as e:
        raise to_http_exception(e, "CHECKOUT")
    except Exception as e:
        logger.error(
            f"[CHECKOUT] Unexpected error - cart: {cart_id}, Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
        raise HTTPException(status_code=500, detail=f"Error submitting order: {str(e)}")

    store.clear()

    # The order is committed; a failed hand-off does not undo it
    notification = None
    try:
        notification = dispatcher.dispatch(order)
    except Exception as e:
        logger.error(
            f"[CHECKOUT] Notification failed for order {order.id} - {type(e).__name__}: {str(e)}",
            exc_info=True,
        )

    logger.info(f"[CHECKOUT] Order {order.id} placed - total: {order.total}")
    return CheckoutResponse(order=order, notification=notification)
