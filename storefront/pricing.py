"""
Order total and shipping calculations shared by cart and checkout
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from storefront.config import get_config
from storefront.errors import InputValidationError
from storefront.models import CENT, OrderSummary


ZERO = Decimal("0.00")


def to_money(value: Any) -> Decimal:
    """
    Coerce a number to a cent-quantised Decimal.

    Floats go through str() so 0.1 becomes 0.10 rather than its binary
    expansion. Negative or non-numeric amounts are rejected.
    """
    if value is None:
        return ZERO
    if isinstance(value, bool):
        raise InputValidationError(f"Not an amount: {value!r}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InputValidationError(f"Not an amount: {value!r}")
    if not amount.is_finite():
        raise InputValidationError(f"Not an amount: {value!r}")
    if amount < 0:
        raise InputValidationError(f"Amount cannot be negative: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_order_summary(
    subtotal: Any = 0,
    shipping: Any = 0,
    discount: Any = 0,
    tax_rate: Optional[Decimal] = None,
) -> OrderSummary:
    """
    Calculate the order summary.

    Tax is charged on the subtotal only: shipping is untaxed and the discount
    is subtracted after tax, so tax is computed on the pre-discount subtotal.
    The total is floored at zero.

    Args:
        subtotal: Sum of line totals
        shipping: Shipping cost
        discount: Discount amount
        tax_rate: Tax rate as a fraction (defaults to config.tax_rate)

    Returns:
        OrderSummary with every field rounded to cents
    """
    rate = get_config().tax_rate if tax_rate is None else Decimal(str(tax_rate))

    clean_subtotal = to_money(subtotal)
    clean_shipping = to_money(shipping)
    clean_discount = to_money(discount)

    tax = (clean_subtotal * rate).quantize(CENT, rounding=ROUND_HALF_UP)
    total = clean_subtotal + clean_shipping + tax - clean_discount

    return OrderSummary(
        subtotal=clean_subtotal,
        shipping=clean_shipping,
        tax=tax,
        discount=clean_discount,
        total=max(ZERO, total),
    )


def shipping_cost(
    subtotal: Any = 0,
    threshold: Optional[Decimal] = None,
    flat_fee: Optional[Decimal] = None,
) -> Decimal:
    """Free shipping at or above the threshold, flat fee below it"""
    config = get_config()
    threshold = config.free_shipping_threshold if threshold is None else Decimal(str(threshold))
    flat_fee = config.flat_shipping_fee if flat_fee is None else Decimal(str(flat_fee))

    if to_money(subtotal) >= threshold:
        return ZERO
    return to_money(flat_fee)


def shipping_methods() -> List[Dict[str, Any]]:
    """Default shipping methods offered at checkout"""
    return [
        {
            "id": "standard",
            "name": "Standard Shipping",
            "cost": Decimal("10.00"),
            "delivery_time": "5-7 business days",
        },
        {
            "id": "express",
            "name": "Express Shipping",
            "cost": Decimal("20.00"),
            "delivery_time": "2-3 business days",
        },
        {
            "id": "overnight",
            "name": "Overnight Shipping",
            "cost": Decimal("35.00"),
            "delivery_time": "Next business day",
        },
        {
            "id": "free",
            "name": "Free Shipping",
            "cost": ZERO,
            "delivery_time": "7-10 business days",
            "min_order_amount": Decimal("100.00"),
        },
    ]


def format_currency(amount: Any) -> str:
    return f"${to_money(amount)}"


def validate_order_totals(summary: OrderSummary) -> bool:
    """Check that total matches its components (within one cent)"""
    expected = max(ZERO, summary.subtotal + summary.shipping + summary.tax - summary.discount)
    return abs(summary.total - expected) < CENT
