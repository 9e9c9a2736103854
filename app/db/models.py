"""Database models."""
from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ProductRecord(Base):
    """Catalog product with its live stock counter."""

    __tablename__ = "products"
    __table_args__ = (CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),)

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    category = Column(String, nullable=True, index=True)
    description = Column(Text, nullable=True)
    base_price = Column(Integer, nullable=False, default=0)
    stock = Column(Integer, nullable=False, default=0)
    modifier_groups = Column(JSON, nullable=True)  # [{id, name, required, options: [...]}]
    tier_pricing = Column(JSON, nullable=True)  # {tier: price}
    tier_units = Column(JSON, nullable=True)  # {tier: stock units per package}
    recipe = Column(JSON, nullable=True)  # {constituent_id: sub-units per container}


class OrderRecord(Base):
    """Committed order."""

    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    status = Column(String, default="pending", nullable=False, index=True)  # pending, processing, completed, cancelled
    total = Column(Integer, nullable=False)
    customer_name = Column(String, nullable=False)
    customer_phone = Column(String, nullable=False)
    customer_address = Column(String, nullable=True)
    payment_method = Column(String, nullable=False)  # cash, transfer
    cash_amount = Column(Integer, nullable=True)
    delivery_method = Column(String, nullable=False)  # pickup, delivery
    scheduling_type = Column(String, nullable=False)  # immediate, reserved
    scheduled_for = Column(DateTime, nullable=True)
    eta_minutes = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    items = relationship(
        "OrderItemRecord",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItemRecord.id",
    )


class OrderItemRecord(Base):
    """Snapshot of one cart line at commit time."""

    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False)
    product_id = Column(String, nullable=False)
    product_name = Column(String, nullable=False)
    quantity = Column(Integer, default=1, nullable=False)
    unit_price = Column(Integer, nullable=False)
    line_total = Column(Integer, nullable=False)
    selected_modifiers = Column(JSON, nullable=True)  # {group_id: option_id}
    selected_tier = Column(String, nullable=True)
    recipe_selection = Column(JSON, nullable=True)  # {constituent_id: count}
    annotations = Column(JSON, nullable=True)  # Human-readable selection labels

    # Relationships
    order = relationship("OrderRecord", back_populates="items")
