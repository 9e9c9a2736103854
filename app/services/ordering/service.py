"""Order service: checkout orchestration and the order lifecycle."""
import asyncio
import logging
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Tuple, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings, settings as default_settings
from app.core.errors import StockInsufficientError, TransactionAbortError, ValidationError
from app.db.models import utcnow
from app.services.cart.models import CartLine, CartSnapshot
from app.services.catalog.models import Product
from app.services.catalog.repository import CatalogRepository
from app.services.feeds import ChangeFeed
from app.services.inventory.ledger import InventoryAdjustment, InventoryLedger, get_commit_lock
from app.services.ordering.eta import estimate_eta_minutes
from app.services.ordering.models import (
    CustomerInfo,
    Order,
    OrderLine,
    OrderStatus,
    SchedulingType,
)
from app.services.ordering.validator import OrderValidator
from app.services.persistence.orders import OrderPersistenceService
from app.services.pricing.engine import PricingEngine

logger = logging.getLogger(__name__)


class OrderService:
    """Turns a cart into a committed order and drives its status."""

    def __init__(
        self,
        db: AsyncSession,
        catalog_feed: Optional[ChangeFeed] = None,
        order_feed: Optional[ChangeFeed] = None,
        clock: Optional[Callable[[], datetime]] = None,
        config: Optional[Settings] = None,
    ):
        self.db = db
        self.catalog = CatalogRepository(db)
        self.ledger = InventoryLedger(db, self.catalog)
        self.persistence = OrderPersistenceService(db)
        self.catalog_feed = catalog_feed
        self.order_feed = order_feed
        self.clock = clock or utcnow
        self.settings = config or default_settings

    @staticmethod
    def price_line(product: Product, line: CartLine) -> OrderLine:
        """Snapshot a validated line with its prices and annotations."""
        if line.recipe_selection is None and product.has_recipe:
            line = line.model_copy(update={"recipe_selection": dict(product.recipe)})
        return OrderLine(
            product_id=product.id,
            product_name=product.name,
            quantity=line.quantity,
            unit_price=PricingEngine.compute_line_unit_price(
                product, line.selected_modifiers, line.selected_tier
            ),
            line_total=PricingEngine.compute_line_total(product, line),
            selected_modifiers=dict(line.selected_modifiers),
            selected_tier=line.selected_tier,
            recipe_selection=line.recipe_selection,
            annotations=PricingEngine.describe_line(product, line),
        )

    async def estimate_eta(self) -> int:
        """Minutes until an immediate order placed now would be ready."""
        active_orders = await self.persistence.count_active_orders()
        eta = estimate_eta_minutes(
            active_orders,
            base_minutes=self.settings.eta_base_minutes,
            congestion_threshold=self.settings.eta_congestion_threshold,
            congestion_increment_minutes=self.settings.eta_congestion_increment_minutes,
        )
        logger.debug(f"[ORDER SERVICE] ETA {eta} min with {active_orders} active orders")
        return eta

    async def submit_order(
        self, cart: Union[CartSnapshot, Iterable[CartLine]], customer: CustomerInfo
    ) -> Order:
        """
        Price, validate, reserve and persist an order in one atomic commit.

        Args:
            cart: Cart snapshot (or its lines) as the client last saw it
            customer: Checkout input

        Returns:
            The committed order, status ``pending``

        Raises:
            ValidationError: Bad cart, customer or scheduling input
            ModifierNotRecognizedError: A line selects something no longer offered
            StockInsufficientError: Live stock cannot cover the order
            TransactionAbortError: The commit failed or timed out; safe to retry
        """
        lines = list(cart.lines) if isinstance(cart, CartSnapshot) else list(cart)
        logger.info(
            f"[ORDER SERVICE] Submit requested - {len(lines)} lines, "
            f"scheduling: {customer.scheduling_type.value}"
        )
        if not lines:
            raise ValidationError("Cart is empty", field="lines")

        # Client-held selections are re-checked against live definitions
        products = await self.catalog.get_products({line.product_id for line in lines}, fresh=True)
        for line in lines:
            product = products.get(line.product_id)
            if product is None:
                raise ValidationError(
                    f"Product '{line.product_id}' is no longer available", field="lines"
                )
            PricingEngine.validate_line(product, line)

        priced_lines = [self.price_line(products[line.product_id], line) for line in lines]
        total = sum(line.line_total for line in priced_lines)

        scheduled_for = OrderValidator.validate_schedule(customer, self.clock())
        OrderValidator.validate_customer(customer, total)

        eta_minutes = None
        if customer.scheduling_type == SchedulingType.IMMEDIATE:
            eta_minutes = await self.estimate_eta()

        order_id, adjustments = await self._commit(
            lines, priced_lines, customer, total, scheduled_for, eta_minutes
        )

        order = await self.get_order(order_id)
        logger.info(
            f"[ORDER SERVICE] Order {order.id} committed - total: {order.total}, "
            f"adjustments: {[(a.product_id, a.units_delta) for a in adjustments]}"
        )
        await self._publish(order, adjustments)
        return order

    async def _commit(
        self,
        lines: List[CartLine],
        priced_lines: List[OrderLine],
        customer: CustomerInfo,
        total: int,
        scheduled_for: Optional[datetime],
        eta_minutes: Optional[int],
    ) -> Tuple[int, List[InventoryAdjustment]]:
        """
        Reserve stock and persist the order as one transaction.

        Once started, the unit runs to completion even if the caller is
        cancelled; the cancellation is re-raised after it settles.
        """
        async with get_commit_lock():
            unit = asyncio.ensure_future(
                self._commit_unit(lines, priced_lines, customer, total, scheduled_for, eta_minutes)
            )
            try:
                return await asyncio.shield(unit)
            except asyncio.CancelledError:
                logger.warning("[ORDER SERVICE] Submit cancelled mid-commit; finishing the commit")
                await self._settle(unit)
                raise

    @staticmethod
    async def _settle(unit: "asyncio.Future") -> None:
        """Wait for a commit unit regardless of further cancellations."""
        while not unit.done():
            try:
                await asyncio.wait({unit})
            except asyncio.CancelledError:
                continue
        if not unit.cancelled() and unit.exception() is not None:
            logger.info(
                f"[ORDER SERVICE] Cancelled commit ended with {type(unit.exception()).__name__}"
            )

    async def _commit_unit(
        self,
        lines: List[CartLine],
        priced_lines: List[OrderLine],
        customer: CustomerInfo,
        total: int,
        scheduled_for: Optional[datetime],
        eta_minutes: Optional[int],
    ) -> Tuple[int, List[InventoryAdjustment]]:
        timeout = self.settings.commit_timeout_seconds
        try:
            order_id, adjustments = await asyncio.wait_for(
                self._reserve_and_stage(
                    lines, priced_lines, customer, total, scheduled_for, eta_minutes
                ),
                timeout=timeout,
            )
        except StockInsufficientError:
            await self._rollback()
            raise
        except asyncio.TimeoutError as e:
            await self._rollback()
            logger.error(f"[ORDER SERVICE] Commit timed out after {timeout}s")
            raise TransactionAbortError(f"Order commit timed out after {timeout}s") from e
        except SQLAlchemyError as e:
            await self._rollback()
            logger.error(
                f"[ORDER SERVICE] Commit failed - {type(e).__name__}: {e}", exc_info=True
            )
            raise TransactionAbortError(
                f"Order commit failed ({type(e).__name__}); please retry"
            ) from e
        except BaseException:
            await self._rollback()
            raise

        # Not bounded by the timeout: a commit the store acknowledges late is still a commit
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self._rollback()
            logger.error(
                f"[ORDER SERVICE] Commit failed - {type(e).__name__}: {e}", exc_info=True
            )
            raise TransactionAbortError(
                f"Order commit failed ({type(e).__name__}); please retry"
            ) from e
        return order_id, adjustments

    async def _reserve_and_stage(
        self,
        lines: List[CartLine],
        priced_lines: List[OrderLine],
        customer: CustomerInfo,
        total: int,
        scheduled_for: Optional[datetime],
        eta_minutes: Optional[int],
    ) -> Tuple[int, List[InventoryAdjustment]]:
        adjustments = await self.ledger.reserve(lines)
        record = await self.persistence.add_order(
            customer,
            priced_lines,
            total,
            scheduled_for=scheduled_for,
            eta_minutes=eta_minutes,
        )
        return record.id, adjustments

    async def _rollback(self) -> None:
        try:
            await self.db.rollback()
        except SQLAlchemyError as e:
            logger.error(f"[ORDER SERVICE] Rollback failed - {type(e).__name__}: {e}")

    async def _publish(self, order: Order, adjustments: List[InventoryAdjustment]) -> None:
        if self.order_feed is not None:
            self.order_feed.publish([order])
        if self.catalog_feed is not None and adjustments:
            touched = await self.catalog.get_products(
                [adjustment.product_id for adjustment in adjustments], fresh=True
            )
            self.catalog_feed.publish(list(touched.values()))

    async def get_order(self, order_id: int) -> Optional[Order]:
        """Get a committed order."""
        record = await self.persistence.get_order_by_id(order_id)
        return Order.model_validate(record) if record else None

    async def list_orders(
        self, status: Optional[OrderStatus] = None, limit: int = 100
    ) -> List[Order]:
        """Get most recent orders."""
        records = await self.persistence.list_orders(status=status, limit=limit)
        return [Order.model_validate(record) for record in records]

    async def update_status(self, order_id: int, status: str) -> Optional[Order]:
        """
        Set an order's status (operator action).

        Any of the four lifecycle values is accepted; anything else is a
        ValidationError. Returns None when the order does not exist.
        """
        try:
            new_status = OrderStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown order status '{status}'", field="status")

        record = await self.persistence.update_status(order_id, new_status)
        if record is None:
            return None
        order = Order.model_validate(record)
        logger.info(f"[ORDER SERVICE] Order {order_id} status -> {new_status.value}")
        if self.order_feed is not None:
            self.order_feed.publish([order])
        return order
