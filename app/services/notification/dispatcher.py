"""Order summary rendering and notification deep link."""
import logging
import re
from typing import List, Optional
from urllib.parse import quote

from pydantic import BaseModel

from app.core.config import Settings, settings as default_settings
from app.core.errors import ConfigurationError
from app.services.ordering.models import (
    DeliveryMethod,
    Order,
    PaymentMethod,
    SchedulingType,
)

logger = logging.getLogger(__name__)

DEEP_LINK_BASE = "https://wa.me"


class Notification(BaseModel):
    """Rendered summary plus the link that hands it to the channel."""

    order_id: int
    text: str
    link: str


class NotificationDispatcher:
    """Renders committed orders and builds the channel deep link."""

    def __init__(self, config: Optional[Settings] = None):
        self.settings = config or default_settings

    @property
    def channel_number(self) -> str:
        """Configured channel number, digits only."""
        return re.sub(r"\D", "", self.settings.notification_phone or "")

    def ensure_configured(self) -> None:
        """Fail fast when no notification channel is configured."""
        if not self.channel_number:
            raise ConfigurationError(
                "Notification channel is not configured (set NOTIFICATION_PHONE)"
            )

    def render(self, order: Order) -> str:
        """Render the human-readable order summary."""
        lines: List[str] = [f"*--- {self.settings.store_name} ---*", f"Order #{order.id}", ""]

        lines.append("*Customer:*")
        lines.append(f"Name: {order.customer_name}")
        lines.append(f"Phone: {order.customer_phone}")
        if order.delivery_method == DeliveryMethod.DELIVERY:
            lines.append(f"Address: {order.customer_address}")
        lines.append("")

        if order.delivery_method == DeliveryMethod.PICKUP:
            lines.append(f"*Delivery:* Pickup at {self.settings.pickup_address}")
        else:
            lines.append("*Delivery:* Home delivery")

        if order.scheduling_type == SchedulingType.RESERVED and order.scheduled_for:
            lines.append(
                f"*Order type:* Reserved for {order.scheduled_for.strftime('%d/%m/%Y %H:%M')}"
            )
        else:
            lines.append(f"*Order type:* Immediate (ready in about {order.eta_minutes} min)")
        lines.append("")

        lines.append("*Items:*")
        for item in order.items:
            lines.append(
                f"{item.quantity}x {item.product_name} (${item.unit_price} each): ${item.line_total}"
            )
            for annotation in item.annotations:
                lines.append(f"  - {annotation}")
        lines.append("")

        lines.append(f"*Total:* ${order.total}")
        lines.append("")

        if order.payment_method == PaymentMethod.CASH:
            lines.append("*Payment:* Cash")
            lines.append(f"*Pays with:* ${order.cash_amount}")
            lines.append(f"*Change:* ${order.change_due}")
        else:
            lines.append("*Payment:* Transfer")
            if self.settings.transfer_alias:
                lines.append(f"*Alias:* {self.settings.transfer_alias}")
            lines.append("(Please send the proof of payment)")
        lines.append("")

        lines.append("Thank you for your order!")
        return "\n".join(lines)

    def build_link(self, text: str) -> str:
        """Deep link that opens the channel with ``text`` prefilled."""
        self.ensure_configured()
        return f"{DEEP_LINK_BASE}/{self.channel_number}?text={quote(text, safe='')}"

    def dispatch(self, order: Order) -> Notification:
        """Render an order and build its hand-off link."""
        text = self.render(order)
        link = self.build_link(text)
        logger.info(f"[NOTIFICATION] Summary ready for order {order.id} ({len(text)} chars)")
        return Notification(order_id=order.id, text=text, link=link)
