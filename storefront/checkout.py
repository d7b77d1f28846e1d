"""
Checkout wizard: Shipping -> Payment -> Review -> Confirmation
"""
from enum import IntEnum
from threading import RLock
from typing import Dict, List, Optional

import structlog
from pydantic import ValidationError

from storefront.cache import LocalCache
from storefront.config import Config, get_config
from storefront.errors import InputValidationError
from storefront.models import CheckoutState, PaymentData, ShippingData, UserProfile
from storefront.scheduler import DebouncedTask
from storefront.validation import validate_payment, validate_shipping


CHECKOUT_STATE_KEY = "checkout_state"

SHIPPING_REQUIRED = ("first_name", "last_name", "email", "address")


class CheckoutStep(IntEnum):
    """Checkout steps, in order"""
    SHIPPING = 1
    PAYMENT = 2
    REVIEW = 3
    CONFIRMATION = 4


class CheckoutSession:
    """
    Linear checkout state machine.

    `next()` advances only when the current step's required fields are
    filled; `previous()` always steps back; `go_to()` jumps anywhere in
    range without re-checking earlier steps. Field changes schedule a
    debounced save of the whole state to the cache so a reload can resume.
    """

    def __init__(self, cache: LocalCache, config: Optional[Config] = None, autosave: bool = True):
        self.cache = cache
        self.config = config or get_config()
        self.current_step = CheckoutStep.SHIPPING
        self.shipping_data = ShippingData()
        self.payment_data = PaymentData()
        self.is_authenticated = False
        self._lock = RLock()
        self._autosave: Optional[DebouncedTask] = None
        if autosave:
            self._autosave = DebouncedTask(
                self.save, self.config.autosave_debounce_ms, name="checkout-autosave"
            )
        self.logger = structlog.get_logger().bind(component="checkout")

    @property
    def state(self) -> CheckoutState:
        with self._lock:
            return CheckoutState(
                current_step=int(self.current_step),
                shipping_data=self.shipping_data.model_copy(),
                payment_data=self.payment_data.model_copy(),
                is_authenticated=self.is_authenticated,
            )

    @property
    def is_first_step(self) -> bool:
        return self.current_step == CheckoutStep.SHIPPING

    @property
    def is_last_step(self) -> bool:
        return self.current_step == CheckoutStep.CONFIRMATION

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def missing_fields(self) -> List[str]:
        """Required fields of the current step that are still empty"""
        with self._lock:
            if self.current_step == CheckoutStep.SHIPPING:
                return [name for name in SHIPPING_REQUIRED if not getattr(self.shipping_data, name).strip()]
            if self.current_step == CheckoutStep.PAYMENT:
                return [] if self.payment_data.method.strip() else ["method"]
            return []

    def can_proceed(self) -> bool:
        with self._lock:
            if self.current_step == CheckoutStep.CONFIRMATION:
                return False
            return not self.missing_fields()

    def next(self) -> bool:
        """Advance one step if the current step is complete"""
        with self._lock:
            if not self.can_proceed():
                self.logger.debug(
                    "Checkout step incomplete",
                    step=self.current_step.name,
                    missing=self.missing_fields(),
                )
                return False
            return self._move_to(CheckoutStep(self.current_step + 1))

    def previous(self) -> bool:
        with self._lock:
            if self.current_step == CheckoutStep.SHIPPING:
                return False
            return self._move_to(CheckoutStep(self.current_step - 1))

    def go_to(self, step: int) -> bool:
        """Jump to any step in [1, 4]; earlier steps are not re-validated"""
        if isinstance(step, bool) or step not in CheckoutStep._value2member_map_:
            self.logger.warning("Ignoring jump to unknown checkout step", step=step)
            return False
        with self._lock:
            return self._move_to(CheckoutStep(step))

    def _move_to(self, step: CheckoutStep) -> bool:
        previous, self.current_step = self.current_step, step
        self.logger.info("Checkout step changed", from_step=previous.name, to_step=step.name)
        return True

    # ------------------------------------------------------------------
    # Form data
    # ------------------------------------------------------------------

    def update_shipping(self, **fields) -> ShippingData:
        with self._lock:
            self.shipping_data = self._merge(self.shipping_data, fields)
        self._changed()
        return self.shipping_data

    def update_payment(self, **fields) -> PaymentData:
        with self._lock:
            self.payment_data = self._merge(self.payment_data, fields)
        self._changed()
        return self.payment_data

    def prefill(self, profile: UserProfile) -> None:
        """Fill contact fields from the user's profile; address is left blank"""
        with self._lock:
            self.shipping_data = ShippingData(
                first_name=profile.first_name,
                last_name=profile.last_name,
                email=profile.email,
                phone=profile.phone or "",
            )
            self.payment_data = self.payment_data.model_copy(update={
                "customer_name": f"{profile.first_name} {profile.last_name}".strip(),
                "customer_email": profile.email,
            })
        self._changed()

    def validate_shipping(self) -> Dict[str, str]:
        return validate_shipping(self.shipping_data)

    def validate_payment(self) -> Dict[str, str]:
        return validate_payment(self.payment_data)

    @staticmethod
    def _merge(model, fields: dict):
        unknown = set(fields) - set(type(model).model_fields)
        if unknown:
            raise InputValidationError(f"Unknown checkout fields: {', '.join(sorted(unknown))}")
        try:
            return type(model).model_validate({**model.model_dump(), **fields})
        except ValidationError as e:
            raise InputValidationError(f"Invalid checkout fields: {e.error_count()} error(s)") from e

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _changed(self) -> None:
        if self._autosave is not None:
            self._autosave.schedule()

    def save(self) -> None:
        """Write the current state to the cache"""
        payload = self.state.model_dump(mode="json")
        self.cache.set(CHECKOUT_STATE_KEY, payload, self.config.checkout_state_ttl_ms)
        self.logger.debug("Checkout state saved", step=payload["current_step"])

    def flush(self) -> bool:
        """Write a pending auto-save now. Returns True if one was pending."""
        if self._autosave is None:
            return False
        return self._autosave.flush()

    def restore(self) -> bool:
        """
        Load saved progress from the cache.

        Returns:
            True if a saved state was restored
        """
        raw = self.cache.get(CHECKOUT_STATE_KEY)
        if raw is None:
            return False

        try:
            saved = CheckoutState.model_validate(raw)
        except ValidationError as e:
            self.logger.warning("Discarding unreadable checkout state", error_count=e.error_count())
            self.cache.invalidate(CHECKOUT_STATE_KEY)
            return False

        with self._lock:
            self.current_step = CheckoutStep(saved.current_step)
            self.shipping_data = saved.shipping_data
            self.payment_data = saved.payment_data

        self.logger.info("Checkout state restored", step=self.current_step.name)
        return True

    def reset(self) -> None:
        """Forget all progress, here and in the cache"""
        if self._autosave is not None:
            self._autosave.discard()
        with self._lock:
            self.current_step = CheckoutStep.SHIPPING
            self.shipping_data = ShippingData()
            self.payment_data = PaymentData()
        self.cache.invalidate(CHECKOUT_STATE_KEY)
        self.logger.info("Checkout state cleared")

    def close(self) -> None:
        """Cancel the pending auto-save"""
        if self._autosave is not None:
            self._autosave.cancel()
