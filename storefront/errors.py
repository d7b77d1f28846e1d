"""
Exception hierarchy for storefront operations
"""
from enum import Enum
from typing import Optional


class StorefrontError(Exception):
    """Base exception for all storefront errors."""

    default_user_message = "Something went wrong. Please try again."

    def __init__(self, message: str, user_message: Optional[str] = None):
        super().__init__(message)
        self.user_message = user_message or self.default_user_message


class InputValidationError(StorefrontError, ValueError):
    """Raised by client-side format checks, before any network call."""

    default_user_message = "Please check the information you entered."


class BusinessRuleError(StorefrontError, ValueError):
    """Raised when an operation violates a cart or discount rule."""


class QuantityOutOfRangeError(BusinessRuleError):
    """Raised when a quantity falls outside the allowed bounds."""

    def __init__(self, quantity: int, minimum: int = 1, maximum: int = 10):
        self.quantity = quantity
        self.minimum = minimum
        self.maximum = maximum
        super().__init__(
            f"Quantity must be between {minimum} and {maximum}, got {quantity}",
            user_message=f"Quantity must be between {minimum} and {maximum}.",
        )


class CartItemNotFoundError(BusinessRuleError):
    """Raised when a cart item id is not in the current snapshot."""

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(
            f"Cart item not found: {item_id}",
            user_message="This item is no longer in your cart.",
        )


class DiscountFailure(str, Enum):
    """Reasons a discount code could not be applied"""
    FORMAT_INVALID = "format_invalid"
    CART_EMPTY = "cart_empty"
    NOT_APPLICABLE = "not_applicable"
    EXPIRED = "expired"
    USAGE_LIMIT_REACHED = "usage_limit_reached"
    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"


DISCOUNT_MESSAGES = {
    DiscountFailure.FORMAT_INVALID: "Invalid promo code format. Use 3-50 uppercase letters and numbers only.",
    DiscountFailure.CART_EMPTY: "Cart must contain items to apply promo code.",
    DiscountFailure.NOT_APPLICABLE: (
        "This promo code does not apply to your current order. "
        "Please check the minimum amount requirements."
    ),
    DiscountFailure.EXPIRED: "This promo code has expired.",
    DiscountFailure.USAGE_LIMIT_REACHED: "This promo code has reached its usage limit.",
    DiscountFailure.NOT_FOUND: "Invalid promo code. Please check the code and try again.",
    DiscountFailure.UNAVAILABLE: "Failed to apply promo code. Please try again later.",
}


class DiscountError(BusinessRuleError):
    """Raised when a discount code is rejected locally or by the server."""

    def __init__(self, reason: DiscountFailure, detail: Optional[str] = None):
        self.reason = reason
        self.detail = detail
        message = f"Discount rejected: {reason.value}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message, user_message=DISCOUNT_MESSAGES[reason])


class NetworkError(StorefrontError):
    """Raised when the remote API cannot be reached or answers unexpectedly."""

    default_user_message = "We could not reach the store. Please try again."

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class ResponseSchemaError(NetworkError):
    """Raised when a response body does not match the expected envelope."""


class RemoteRejectedError(StorefrontError):
    """Raised when the server answers with success=false."""

    def __init__(self, message: str, status_code: Optional[int] = None, errors: Optional[dict] = None):
        self.status_code = status_code
        self.errors = errors or {}
        super().__init__(message, user_message=message)


class AuthenticationError(StorefrontError):
    """Raised when the token is missing or rejected."""

    default_user_message = "Please login to continue."

    def __init__(self, message: str = "Authentication required", status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)
