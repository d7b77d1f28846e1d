"""
Discount code normalisation and server-side validation
"""
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

import structlog

from storefront.clients.api_client import StorefrontApiClient
from storefront.errors import (
    DiscountError,
    DiscountFailure,
    NetworkError,
    RemoteRejectedError,
)
from storefront.models import DiscountCode


CODE_PATTERN = re.compile(r"^[A-Z0-9]{3,50}$")


def normalize_code(raw_code: Optional[str]) -> str:
    """
    Trim and upper-case a user-supplied code.

    Raises:
        DiscountError: FORMAT_INVALID when the result is not 3-50 of [A-Z0-9]
    """
    code = (raw_code or "").strip().upper()
    if not CODE_PATTERN.match(code):
        raise DiscountError(DiscountFailure.FORMAT_INVALID, detail=code or "empty")
    return code


def classify_rejection(message: str, status_code: Optional[int] = None) -> DiscountFailure:
    """Map a server rejection to a failure reason"""
    if status_code is not None and status_code >= 500:
        return DiscountFailure.UNAVAILABLE
    text = (message or "").lower()
    if "does not apply" in text or "minimum" in text:
        return DiscountFailure.NOT_APPLICABLE
    if "usage limit" in text:
        return DiscountFailure.USAGE_LIMIT_REACHED
    if "expired" in text:
        return DiscountFailure.EXPIRED
    if "format" in text:
        return DiscountFailure.FORMAT_INVALID
    if "greater than zero" in text:
        return DiscountFailure.CART_EMPTY
    # 404 and "Invalid discount code" both mean the code does not exist
    return DiscountFailure.NOT_FOUND


@dataclass(frozen=True)
class OrderContext:
    """What the server needs to price a code against the cart"""
    subtotal: Decimal
    product_ids: List[str] = field(default_factory=list)
    category_ids: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class AppliedDiscount:
    """A code the server accepted, with the amount it is worth"""
    discount_amount: Decimal
    discount_code: DiscountCode

    def describe(self) -> str:
        code = self.discount_code
        if code.type.value == "percentage":
            return f"{code.value.normalize():f}% off"
        return f"${code.value} off"


class DiscountService:
    """Validates discount codes against the current order"""

    def __init__(self, client: StorefrontApiClient):
        self.client = client
        self.logger = structlog.get_logger().bind(component="discount_service")

    def apply(self, code: str, context: OrderContext) -> AppliedDiscount:
        """
        Validate a code with the server.

        Args:
            code: Raw or normalised code
            context: Subtotal and ids of the current order

        Returns:
            AppliedDiscount

        Raises:
            DiscountError: with the reason the code was rejected
        """
        code = normalize_code(code)

        if Decimal(context.subtotal) <= 0:
            raise DiscountError(DiscountFailure.CART_EMPTY)

        try:
            result = self.client.validate_discount_code(
                code,
                context.subtotal,
                context.product_ids,
                context.category_ids,
            )
        except RemoteRejectedError as e:
            reason = classify_rejection(str(e), e.status_code)
            self.logger.info("Discount code rejected", code=code, reason=reason.value, status=e.status_code)
            raise DiscountError(reason, detail=str(e)) from e
        except NetworkError as e:
            self.logger.error("Discount validation unavailable", code=code, error=str(e))
            raise DiscountError(DiscountFailure.UNAVAILABLE, detail=str(e)) from e

        if result.discount_amount <= 0:
            raise DiscountError(DiscountFailure.NOT_APPLICABLE)

        applied = AppliedDiscount(
            discount_amount=result.discount_amount,
            discount_code=result.discount_code,
        )
        self.logger.info(
            "Discount code applied",
            code=code,
            discount_amount=str(applied.discount_amount),
            description=applied.describe(),
        )
        return applied
