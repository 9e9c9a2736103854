"""Typed failures raised by the fulfillment core.

Every failure carries a stable ``code`` and an HTTP ``status_code`` so the API
layer can surface it verbatim. ``retryable`` tells the caller whether simply
trying again may succeed.
"""
from typing import Any, Dict, Optional


class OrderError(Exception):
    """Base class for all fulfillment errors."""

    code = "order_error"
    status_code = 400
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the error for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "retryable": self.retryable,
        }


class ValidationError(OrderError):
    """Malformed or incomplete order/customer input."""

    code = "validation_error"
    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["field"] = self.field
        return data


class ModifierNotRecognizedError(OrderError):
    """A selection references an option, tier or constituent the product does not offer."""

    code = "modifier_not_recognized"
    status_code = 409

    def __init__(
        self,
        product_id: str,
        group_id: Optional[str] = None,
        option_id: Optional[str] = None,
        message: Optional[str] = None,
    ):
        super().__init__(
            message
            or f"Product '{product_id}' does not offer option '{option_id}' in group '{group_id}'"
        )
        self.product_id = product_id
        self.group_id = group_id
        self.option_id = option_id

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(
            product_id=self.product_id,
            group_id=self.group_id,
            option_id=self.option_id,
        )
        return data


class StockInsufficientError(OrderError):
    """Live stock cannot cover the order. Names the offending product."""

    code = "stock_insufficient"
    status_code = 409

    def __init__(
        self,
        product_id: str,
        requested: int,
        available: int,
        constituent_id: Optional[str] = None,
    ):
        if constituent_id:
            message = (
                f"Insufficient stock of '{constituent_id}' for '{product_id}': "
                f"need={requested}, have={available}"
            )
        else:
            message = f"Insufficient stock of '{product_id}': need={requested}, have={available}"
        super().__init__(message)
        self.product_id = product_id
        self.constituent_id = constituent_id
        self.requested = requested
        self.available = available

    @property
    def failing_product_id(self) -> str:
        """Id of the product whose counter is short."""
        return self.constituent_id or self.product_id

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(
            product_id=self.product_id,
            constituent_id=self.constituent_id,
            requested=self.requested,
            available=self.available,
        )
        return data


class TransactionAbortError(OrderError):
    """The atomic commit itself failed (store unavailable, conflict, timeout)."""

    code = "transaction_aborted"
    status_code = 503
    retryable = True


class ConfigurationError(OrderError):
    """Required external configuration is missing."""

    code = "configuration_error"
    status_code = 500
