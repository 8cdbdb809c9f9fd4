"""Exception hierarchy for the AmwalPay integration."""

from __future__ import annotations


class AmwalPayError(Exception):
    """Base exception for all AmwalPay integration errors.

    All package-specific exceptions inherit from this class.
    """

    def __init__(self, message: str = "An error occurred in the AmwalPay integration") -> None:
        self.message = message
        super().__init__(self.message)


class ConfigurationError(AmwalPayError):
    """Exception raised when merchant settings are missing or unusable.

    Raised before any hash is computed: an empty key is never signed with.
    """

    def __init__(self, message: str = "AmwalPay is not configured", setting: str = "unknown") -> None:
        self.setting = setting
        super().__init__(f"[{setting}] {message}")


class InvalidAmountError(AmwalPayError, ValueError):
    """Exception raised when an order amount cannot be sent to the gateway."""

    def __init__(self, amount: object) -> None:
        self.amount = amount
        super().__init__(f"Invalid payment amount: {amount!r}")


class MalformedCallbackError(AmwalPayError):
    """Exception raised when a gateway callback is missing or has a bad field."""

    def __init__(self, message: str = "Malformed callback", field: str = "unknown") -> None:
        self.field = field
        super().__init__(f"Callback field '{field}': {message}")


class ComputationError(AmwalPayError):
    """Exception raised when the secure hash could not be computed."""

    def __init__(
        self,
        message: str = "Secure hash computation failed",
        original_error: Exception | None = None,
    ) -> None:
        self.original_error = original_error
        super().__init__(message)


class OrderNotFoundError(AmwalPayError):
    """Exception raised when the host has no order for the given id."""

    def __init__(self, order_id: str) -> None:
        self.order_id = order_id
        super().__init__(f"Invalid order ID: {order_id}")
