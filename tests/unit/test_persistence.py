"""Unit tests for order persistence."""
import pytest
from datetime import datetime

from app.services.ordering.models import CustomerInfo, DeliveryMethod, OrderLine, OrderStatus
from app.services.persistence.orders import OrderPersistenceService


def make_lines():
    return [
        OrderLine(
            product_id="pasta",
            product_name="Sorrentinos",
            quantity=2,
            unit_price=7700,
            line_total=15400,
            selected_modifiers={"sauce": "bolognesa"},
            annotations=["Sauce: Bolognesa (+$1200)"],
        ),
        OrderLine(
            product_id="product-a",
            product_name="Product A",
            quantity=1,
            unit_price=500,
            line_total=500,
        ),
    ]


class TestOrderPersistence:
    """Test order persistence service."""

    @pytest.mark.asyncio
    async def test_add_order(self, test_db, customer):
        """Test staging and committing a new order with items."""
        service = OrderPersistenceService(test_db)

        order = await service.add_order(customer, make_lines(), total=15900, eta_minutes=30)
        await test_db.commit()

        assert order.id is not None
        assert order.status == "pending"
        assert order.total == 15900
        assert order.customer_name == "Ana Perez"
        assert order.eta_minutes == 30
        assert order.created_at is not None
        assert len(order.items) == 2

    @pytest.mark.asyncio
    async def test_add_order_is_not_committed(self, test_db, session_factory, customer):
        """Test that add_order leaves the commit to the caller."""
        service = OrderPersistenceService(test_db)

        await service.add_order(customer, make_lines(), total=15900)
        await test_db.rollback()

        async with session_factory() as session:
            assert await OrderPersistenceService(session).list_orders() == []

    @pytest.mark.asyncio
    async def test_get_order_by_id(self, test_db, customer):
        """Test retrieving order by ID with items."""
        service = OrderPersistenceService(test_db)
        created = await service.add_order(customer, make_lines(), total=15900)
        await test_db.commit()

        retrieved = await service.get_order_by_id(created.id)

        assert retrieved is not None
        assert retrieved.id == created.id
        assert [item.product_id for item in retrieved.items] == ["pasta", "product-a"]
        assert retrieved.items[0].selected_modifiers == {"sauce": "bolognesa"}
        assert retrieved.items[0].annotations == ["Sauce: Bolognesa (+$1200)"]

    @pytest.mark.asyncio
    async def test_get_order_by_id_missing(self, test_db):
        """Test retrieving a missing order returns None."""
        service = OrderPersistenceService(test_db)
        assert await service.get_order_by_id(12345) is None

    @pytest.mark.asyncio
    async def test_delivery_fields_and_schedule(self, test_db):
        """Test delivery address and reservation time are stored."""
        service = OrderPersistenceService(test_db)
        customer = CustomerInfo(
            name=" Luis ",
            phone="1144443333",
            address=" Calle Falsa 123 ",
            delivery_method=DeliveryMethod.DELIVERY,
            cash_amount=20000,
        )
        scheduled_for = datetime(2026, 10, 20, 21, 0)

        order = await service.add_order(
            customer, make_lines(), total=15900, scheduled_for=scheduled_for
        )
        await test_db.commit()

        assert order.customer_name == "Luis"
        assert order.customer_address == "Calle Falsa 123"
        assert order.delivery_method == "delivery"
        assert order.scheduled_for == scheduled_for

    @pytest.mark.asyncio
    async def test_update_status(self, test_db, customer):
        """Test updating order status."""
        service = OrderPersistenceService(test_db)
        order = await service.add_order(customer, make_lines(), total=15900)
        await test_db.commit()

        updated = await service.update_status(order.id, OrderStatus.PROCESSING)

        assert updated is not None
        assert updated.status == "processing"

    @pytest.mark.asyncio
    async def test_update_status_missing(self, test_db):
        """Test updating a missing order returns None."""
        service = OrderPersistenceService(test_db)
        assert await service.update_status(999, OrderStatus.COMPLETED) is None

    @pytest.mark.asyncio
    async def test_count_active_orders(self, test_db, customer):
        """Test only pending and processing orders count as active."""
        service = OrderPersistenceService(test_db)
        ids = []
        for _ in range(4):
            order = await service.add_order(customer, make_lines(), total=15900)
            ids.append(order.id)
        await test_db.commit()

        await service.update_status(ids[0], OrderStatus.PROCESSING)
        await service.update_status(ids[1], OrderStatus.COMPLETED)
        await service.update_status(ids[2], OrderStatus.CANCELLED)

        assert await service.count_active_orders() == 2

    @pytest.mark.asyncio
    async def test_list_orders_newest_first(self, test_db, customer):
        """Test orders are listed most recent first and limited."""
        service = OrderPersistenceService(test_db)
        ids = []
        for _ in range(3):
            order = await service.add_order(customer, make_lines(), total=15900)
            await test_db.commit()
            ids.append(order.id)

        orders = await service.list_orders(limit=2)

        assert [order.id for order in orders] == [ids[2], ids[1]]
