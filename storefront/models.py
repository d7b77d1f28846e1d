"""
Data models and validation using Pydantic
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Generic, List, Literal, Optional, Tuple, TypeVar

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


CENT = Decimal("0.01")
MAX_ITEM_QUANTITY = 10

T = TypeVar("T")


def _as_str(value: Any) -> Any:
    """Server ids arrive as ints; the client keys everything by string."""
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------

class CartItem(BaseModel):
    """Represents a line in the shopping cart"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(..., description="Server id, or tmp-<hex> before confirmation")
    product_id: str = Field(..., description="Product identifier")
    quantity: int = Field(..., ge=1, le=MAX_ITEM_QUANTITY, description="Quantity (1-10)")
    unit_price: Decimal = Field(..., ge=0, alias="price", description="Price per unit at add time")
    size: Optional[str] = None
    color: Optional[str] = None
    name: Optional[str] = None
    original_price: Optional[Decimal] = Field(default=None, ge=0)

    @field_validator("id", "product_id", mode="before")
    @classmethod
    def ids_as_strings(cls, v):
        return _as_str(v)

    @classmethod
    def new(
        cls,
        product_id: str,
        unit_price: Any,
        quantity: int = 1,
        size: Optional[str] = None,
        color: Optional[str] = None,
        name: Optional[str] = None,
        original_price: Any = None,
    ) -> "CartItem":
        """Create an unconfirmed item carrying a temporary client id"""
        return cls(
            id=f"tmp-{uuid.uuid4().hex[:12]}",
            product_id=product_id,
            quantity=quantity,
            unit_price=unit_price,
            size=size,
            color=color,
            name=name,
            original_price=original_price,
        )

    @property
    def is_temporary(self) -> bool:
        return self.id.startswith("tmp-")

    @property
    def line_key(self) -> Tuple[str, Optional[str], Optional[str]]:
        """Rows with the same key are merged instead of duplicated"""
        return (self.product_id, self.size, self.color)

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    @property
    def savings(self) -> Decimal:
        if self.original_price is None:
            return Decimal("0")
        return (self.original_price - self.unit_price) * self.quantity


class CartSnapshot(BaseModel):
    """Immutable view of the cart; totals are always derived from items"""
    model_config = ConfigDict(frozen=True)

    user_id: Optional[str] = None
    items: Tuple[CartItem, ...] = ()

    @computed_field
    @property
    def total_items(self) -> int:
        return sum(item.quantity for item in self.items)

    @computed_field
    @property
    def total_price(self) -> Decimal:
        return sum((item.line_total for item in self.items), Decimal("0"))

    @computed_field
    @property
    def total_savings(self) -> Decimal:
        return sum((item.savings for item in self.items), Decimal("0"))

    @computed_field
    @property
    def item_count(self) -> int:
        return len(self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def get_item(self, item_id: str) -> Optional[CartItem]:
        """Get an item by id"""
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def product_ids(self) -> List[str]:
        return [item.product_id for item in self.items]


# ---------------------------------------------------------------------------
# Discounts
# ---------------------------------------------------------------------------

class DiscountType(str, Enum):
    """Discount type enum"""
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class DiscountCode(BaseModel):
    """Discount code record as returned by the store"""
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    code: str = Field(..., pattern=r"^[A-Z0-9]{3,50}$")
    name: str = ""
    type: DiscountType
    value: Decimal = Field(..., ge=0)
    minimum_amount: Optional[Decimal] = None
    usage_limit: Optional[int] = None
    used_count: int = 0
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    is_active: bool = True
    applicable_products: Optional[List[str]] = None
    applicable_categories: Optional[List[str]] = None

    @field_validator("id", mode="before")
    @classmethod
    def id_as_string(cls, v):
        return _as_str(v)

    @field_validator("applicable_products", "applicable_categories", mode="before")
    @classmethod
    def restriction_ids_as_strings(cls, v):
        if v is None:
            return v
        return [_as_str(x) for x in v]

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        expires_at = _as_utc(self.expires_at)
        return expires_at is not None and expires_at <= now

    def has_started(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        starts_at = _as_utc(self.starts_at)
        return starts_at is None or starts_at <= now

    def usage_exhausted(self) -> bool:
        return bool(self.usage_limit) and self.used_count >= self.usage_limit

    def meets_minimum(self, subtotal: Decimal) -> bool:
        return self.minimum_amount is None or Decimal(subtotal) >= self.minimum_amount

    def is_usable(self, subtotal: Decimal, now: Optional[datetime] = None) -> bool:
        """Active, started, not expired, not exhausted, and minimum met"""
        return (
            self.is_active
            and self.has_started(now)
            and not self.is_expired(now)
            and not self.usage_exhausted()
            and self.meets_minimum(subtotal)
        )

    def applies_to(self, product_ids: List[str], category_ids: List[str]) -> bool:
        """Empty restriction lists mean the code applies to everything"""
        if self.applicable_products and not set(self.applicable_products) & set(product_ids):
            return False
        if self.applicable_categories and not set(self.applicable_categories) & set(category_ids):
            return False
        return True

    def calculate_discount(
        self,
        subtotal: Decimal,
        product_ids: Optional[List[str]] = None,
        category_ids: Optional[List[str]] = None,
        now: Optional[datetime] = None,
    ) -> Decimal:
        """Discount amount for an order; 0 when the code does not apply"""
        subtotal = Decimal(subtotal)
        if not self.is_usable(subtotal, now):
            return Decimal("0.00")
        if not self.applies_to(product_ids or [], category_ids or []):
            return Decimal("0.00")

        if self.type == DiscountType.PERCENTAGE:
            amount = subtotal * self.value / 100
        else:
            amount = min(self.value, subtotal)

        return max(Decimal("0.00"), amount.quantize(CENT, rounding=ROUND_HALF_UP))


# ---------------------------------------------------------------------------
# Order summary
# ---------------------------------------------------------------------------

class OrderSummary(BaseModel):
    """Derived totals for the current cart"""
    model_config = ConfigDict(frozen=True)

    subtotal: Decimal = Decimal("0.00")
    shipping: Decimal = Decimal("0.00")
    tax: Decimal = Decimal("0.00")
    discount: Decimal = Decimal("0.00")
    total: Decimal = Decimal("0.00")


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------

class ShippingData(BaseModel):
    """Shipping form fields"""
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    city: str = ""
    zip_code: str = ""
    country: str = "US"


class PaymentData(BaseModel):
    """Payment form fields"""
    method: str = "stripe"
    customer_name: str = ""
    customer_email: str = ""


class CheckoutState(BaseModel):
    """Serialisable checkout progress"""
    current_step: int = Field(default=1, ge=1, le=4)
    shipping_data: ShippingData = Field(default_factory=ShippingData)
    payment_data: PaymentData = Field(default_factory=PaymentData)
    is_authenticated: bool = False


class UserProfile(BaseModel):
    """Authenticated user profile"""
    id: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def id_as_string(cls, v):
        return _as_str(v)


# ---------------------------------------------------------------------------
# Wire envelopes
# ---------------------------------------------------------------------------

class ApiSuccess(BaseModel, Generic[T]):
    """Successful response envelope"""
    success: Literal[True]
    data: T
    message: Optional[str] = None


class ApiFailure(BaseModel):
    """Failed response envelope"""
    success: Literal[False]
    message: str = "Request failed"
    errors: Optional[dict] = None


class CartListing(BaseModel):
    """Payload of GET /cart"""
    items: List[CartItem] = Field(default_factory=list)
    total: Decimal = Decimal("0")
    count: int = 0


class CartItemAdded(BaseModel):
    """Payload of POST /cart/add"""
    cart_item_id: str
    quantity: int

    @field_validator("cart_item_id", mode="before")
    @classmethod
    def id_as_string(cls, v):
        return _as_str(v)


class CartItemChanged(BaseModel):
    """Payload of PUT and DELETE /cart/items/{id}"""
    cart_item_id: str
    new_quantity: Optional[int] = None
    action: Optional[str] = None

    @field_validator("cart_item_id", mode="before")
    @classmethod
    def id_as_string(cls, v):
        return _as_str(v)


class DiscountValidation(BaseModel):
    """Payload of POST /discount-codes/validate"""
    discount_amount: Decimal = Field(..., ge=0)
    discount_code: DiscountCode
    final_amount: Optional[Decimal] = None


class ProfilePayload(BaseModel):
    """Payload of GET /user/profile"""
    user: UserProfile
