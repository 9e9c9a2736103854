"""FastAPI dependencies."""
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.database import get_db
from app.services.cart.registry import CartRegistry
from app.services.catalog.repository import CatalogRepository
from app.services.feeds import ChangeFeed
from app.services.notification.dispatcher import NotificationDispatcher
from app.services.ordering.changes import OrderChangeLog
from app.services.ordering.service import OrderService

# Process-wide change feeds (one storefront per process)
catalog_feed: ChangeFeed = ChangeFeed("catalog")
order_feed: ChangeFeed = ChangeFeed("orders")

# Feed consumers: open carts track committed stock, order lists poll the change log
cart_registry = CartRegistry()
order_changes = OrderChangeLog()
catalog_feed.subscribe(cart_registry.refresh_known_stock)
order_feed.subscribe(order_changes.record)


def get_catalog_repository(db: AsyncSession = Depends(get_db)) -> CatalogRepository:
    """Get catalog repository instance."""
    return CatalogRepository(db)


def get_order_service(db: AsyncSession = Depends(get_db)) -> OrderService:
    """Get order service instance."""
    return OrderService(db, catalog_feed=catalog_feed, order_feed=order_feed)


def get_notification_dispatcher() -> NotificationDispatcher:
    """Get notification dispatcher instance."""
    return NotificationDispatcher()


def get_order_changes() -> OrderChangeLog:
    """Get the process-wide order change log."""
    return order_changes
