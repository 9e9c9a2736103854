"""Order validation service."""
from datetime import datetime, timezone
from typing import Optional

from app.core.errors import ValidationError
from app.services.ordering.models import (
    CustomerInfo,
    DeliveryMethod,
    PaymentMethod,
    SchedulingType,
)

MIN_PHONE_DIGITS = 8


def to_naive_utc(value: datetime) -> datetime:
    """Normalize a timestamp to naive UTC; naive input is taken as UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class OrderValidator:
    """Checks customer and scheduling input for a checkout."""

    @staticmethod
    def validate_schedule(customer: CustomerInfo, now: datetime) -> Optional[datetime]:
        """
        Validate scheduling fields.

        Args:
            customer: Checkout input
            now: Current time, naive UTC

        Returns:
            The reservation time as naive UTC, or None for immediate orders
        """
        if customer.scheduling_type == SchedulingType.RESERVED:
            if customer.scheduled_for is None:
                raise ValidationError(
                    "Reserved orders need a reservation time", field="scheduled_for"
                )
            scheduled_for = to_naive_utc(customer.scheduled_for)
            if scheduled_for <= now:
                raise ValidationError(
                    "Reservation time must be in the future", field="scheduled_for"
                )
            return scheduled_for

        if customer.scheduled_for is not None:
            raise ValidationError(
                "Immediate orders cannot carry a reservation time", field="scheduled_for"
            )
        return None

    @staticmethod
    def validate_customer(customer: CustomerInfo, total: int) -> None:
        """Validate contact, delivery and payment fields against the order total."""
        if not customer.name.strip():
            raise ValidationError("Name is required", field="name")

        phone = customer.phone.strip()
        if not phone:
            raise ValidationError("Phone is required", field="phone")
        if not phone.isdigit():
            raise ValidationError("Phone must contain digits only", field="phone")
        if len(phone) < MIN_PHONE_DIGITS:
            raise ValidationError(
                f"Phone must have at least {MIN_PHONE_DIGITS} digits", field="phone"
            )

        if customer.delivery_method == DeliveryMethod.DELIVERY and not (customer.address or "").strip():
            raise ValidationError("Address is required for delivery", field="address")

        if customer.payment_method == PaymentMethod.CASH:
            if customer.cash_amount is None or customer.cash_amount <= 0:
                raise ValidationError(
                    "Cash amount must be greater than zero", field="cash_amount"
                )
            if customer.cash_amount < total:
                raise ValidationError(
                    f"Cash amount must cover the order total (${total})", field="cash_amount"
                )
        elif customer.payment_method == PaymentMethod.TRANSFER:
            if not customer.proof_of_payment_confirmed:
                raise ValidationError(
                    "Confirm that you will send the proof of payment",
                    field="proof_of_payment_confirmed",
                )
