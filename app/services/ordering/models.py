"""Order models."""
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict


class OrderStatus(str, Enum):
    """Lifecycle states of an order."""

    PENDING = "pending"  # Entered only through a successful commit
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        return self.value


ACTIVE_STATUSES = (OrderStatus.PENDING, OrderStatus.PROCESSING)


class SchedulingType(str, Enum):
    IMMEDIATE = "immediate"
    RESERVED = "reserved"


class PaymentMethod(str, Enum):
    CASH = "cash"
    TRANSFER = "transfer"


class DeliveryMethod(str, Enum):
    PICKUP = "pickup"
    DELIVERY = "delivery"


class CustomerInfo(BaseModel):
    """Customer contact, payment and scheduling choices captured at checkout."""

    name: str = ""
    phone: str = ""
    address: Optional[str] = None
    payment_method: PaymentMethod = PaymentMethod.CASH
    cash_amount: Optional[int] = None
    proof_of_payment_confirmed: bool = False
    delivery_method: DeliveryMethod = DeliveryMethod.PICKUP
    scheduling_type: SchedulingType = SchedulingType.IMMEDIATE
    scheduled_for: Optional[datetime] = None


class OrderLine(BaseModel):
    """Line snapshot stored with a committed order."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    product_id: str
    product_name: str
    quantity: int
    unit_price: int
    line_total: int
    selected_modifiers: Dict[str, str] = {}
    selected_tier: Optional[str] = None
    recipe_selection: Optional[Dict[str, int]] = None
    annotations: List[str] = []


class Order(BaseModel):
    """Immutable view of a committed order."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: int
    status: OrderStatus
    total: int
    customer_name: str
    customer_phone: str
    customer_address: Optional[str] = None
    payment_method: PaymentMethod
    cash_amount: Optional[int] = None
    delivery_method: DeliveryMethod
    scheduling_type: SchedulingType
    scheduled_for: Optional[datetime] = None
    eta_minutes: Optional[int] = None
    created_at: datetime
    items: List[OrderLine] = []

    @property
    def change_due(self) -> Optional[int]:
        """Change to hand back for cash orders."""
        if self.payment_method != PaymentMethod.CASH or self.cash_amount is None:
            return None
        return max(0, self.cash_amount - self.total)
