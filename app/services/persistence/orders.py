"""Order persistence service."""
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.db.models import OrderItemRecord, OrderRecord
from app.services.ordering.models import ACTIVE_STATUSES, CustomerInfo, OrderLine, OrderStatus


class OrderPersistenceService:
    """Service for persisting order data."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add_order(
        self,
        customer: CustomerInfo,
        lines: Iterable[OrderLine],
        total: int,
        scheduled_for: Optional[datetime] = None,
        eta_minutes: Optional[int] = None,
    ) -> OrderRecord:
        """
        Stage a new pending order and its items in the open transaction.

        Flushes so the order gets its id, but does not commit: the caller
        commits the order together with its stock adjustments.
        """
        order = OrderRecord(
            status=OrderStatus.PENDING.value,
            total=total,
            customer_name=customer.name.strip(),
            customer_phone=customer.phone.strip(),
            customer_address=(customer.address or "").strip() or None,
            payment_method=customer.payment_method.value,
            cash_amount=customer.cash_amount,
            delivery_method=customer.delivery_method.value,
            scheduling_type=customer.scheduling_type.value,
            scheduled_for=scheduled_for,
            eta_minutes=eta_minutes,
            items=[
                OrderItemRecord(
                    product_id=line.product_id,
                    product_name=line.product_name,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    line_total=line.line_total,
                    selected_modifiers=dict(line.selected_modifiers),
                    selected_tier=line.selected_tier,
                    recipe_selection=dict(line.recipe_selection) if line.recipe_selection else None,
                    annotations=list(line.annotations),
                )
                for line in lines
            ],
        )
        self.db.add(order)
        await self.db.flush()
        return order

    async def get_order_by_id(self, order_id: int) -> Optional[OrderRecord]:
        """Get order by ID with items."""
        result = await self.db.execute(
            select(OrderRecord)
            .where(OrderRecord.id == order_id)
            .options(selectinload(OrderRecord.items))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_orders(
        self, status: Optional[OrderStatus] = None, limit: int = 100
    ) -> List[OrderRecord]:
        """Get most recent orders, optionally filtered by status."""
        query = (
            select(OrderRecord)
            .options(selectinload(OrderRecord.items))
            .order_by(desc(OrderRecord.created_at), desc(OrderRecord.id))
            .limit(limit)
        )
        if status is not None:
            query = query.where(OrderRecord.status == status.value)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def count_active_orders(self) -> int:
        """Count pending and processing orders."""
        result = await self.db.execute(
            select(func.count(OrderRecord.id)).where(
                OrderRecord.status.in_([status.value for status in ACTIVE_STATUSES])
            )
        )
        return result.scalar() or 0

    async def update_status(self, order_id: int, status: OrderStatus) -> Optional[OrderRecord]:
        """Update order status."""
        order = await self.get_order_by_id(order_id)
        if not order:
            return None
        order.status = status.value
        await self.db.commit()
        return await self.get_order_by_id(order_id)
