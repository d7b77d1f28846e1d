"""
Field-level validation rules for the checkout forms
"""
import re
from dataclasses import dataclass
from typing import Dict, Optional, Pattern

from storefront.models import PaymentData, ShippingData


@dataclass(frozen=True)
class FieldRule:
    """Validation rule for one form field"""
    message: str
    required: bool = True
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[Pattern] = None


NAME_PATTERN = re.compile(r"^[a-zA-Z\s]+$")

SHIPPING_RULES: Dict[str, FieldRule] = {
    "first_name": FieldRule(
        "First name must be 2-50 characters and contain only letters",
        min_length=2, max_length=50, pattern=NAME_PATTERN,
    ),
    "last_name": FieldRule(
        "Last name must be 2-50 characters and contain only letters",
        min_length=2, max_length=50, pattern=NAME_PATTERN,
    ),
    "email": FieldRule(
        "Please enter a valid email address",
        pattern=re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$"),
    ),
    "phone": FieldRule(
        "Please enter a valid phone number",
        pattern=re.compile(r"^\+?[1-9]\d{0,15}$"),
    ),
    "address": FieldRule("Address must be 10-200 characters", min_length=10, max_length=200),
    "city": FieldRule(
        "City must be 2-50 characters and contain only letters",
        min_length=2, max_length=50, pattern=NAME_PATTERN,
    ),
    "zip_code": FieldRule("Please enter a valid ZIP code", pattern=re.compile(r"^\d{5}(-\d{4})?$")),
    "country": FieldRule("Please select a country"),
}


def validate_field(name: str, value: Optional[str], rule: FieldRule) -> Optional[str]:
    """Return the error message for a field, or None if it is valid"""
    value = (value or "").strip()

    if not value:
        return f"{name} is required" if rule.required else None
    if rule.min_length is not None and len(value) < rule.min_length:
        return rule.message
    if rule.max_length is not None and len(value) > rule.max_length:
        return rule.message
    if rule.pattern is not None and not rule.pattern.match(value):
        return rule.message
    return None


def validate_shipping(shipping: ShippingData) -> Dict[str, str]:
    """Validate every shipping field. Returns {field: message} for failures."""
    errors = {}
    for name, rule in SHIPPING_RULES.items():
        error = validate_field(name, getattr(shipping, name), rule)
        if error:
            errors[name] = error
    return errors


def validate_payment(payment: PaymentData) -> Dict[str, str]:
    errors = {}
    if not payment.method.strip():
        errors["method"] = "Please select a payment method"
    if not payment.customer_name.strip():
        errors["customer_name"] = "Customer name is required"
    if not payment.customer_email.strip():
        errors["customer_email"] = "Customer email is required"
    elif not SHIPPING_RULES["email"].pattern.match(payment.customer_email.strip()):
        errors["customer_email"] = SHIPPING_RULES["email"].message
    return errors
