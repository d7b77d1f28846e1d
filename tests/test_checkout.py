"""
Unit tests for the checkout state machine
"""
import time

import pytest

from storefront.cache import LocalCache
from storefront.checkout import CHECKOUT_STATE_KEY, CheckoutSession, CheckoutStep
from storefront.errors import InputValidationError
from storefront.models import UserProfile


SHIPPING = {
    "first_name": "Ada",
    "last_name": "Lovelace",
    "email": "ada@example.com",
    "address": "12 Analytical Engine Road",
}


class TestCheckoutNavigation:
    """Test step transitions"""

    @pytest.fixture
    def cache(self, clock):
        return LocalCache(clock=clock)

    @pytest.fixture
    def checkout(self, cache, config):
        session = CheckoutSession(cache, config, autosave=False)
        yield session
        session.close()

    def test_starts_at_shipping(self, checkout):
        assert checkout.current_step == CheckoutStep.SHIPPING
        assert checkout.is_first_step is True
        assert checkout.can_proceed() is False

    def test_next_blocked_until_shipping_complete(self, checkout):
        checkout.update_shipping(**{k: v for k, v in SHIPPING.items() if k != "address"})

        assert checkout.missing_fields() == ["address"]
        assert checkout.next() is False
        assert checkout.current_step == CheckoutStep.SHIPPING

        checkout.update_shipping(address=SHIPPING["address"])

        assert checkout.next() is True
        assert checkout.current_step == CheckoutStep.PAYMENT

    def test_whitespace_counts_as_missing(self, checkout):
        checkout.update_shipping(**{**SHIPPING, "email": "   "})

        assert checkout.missing_fields() == ["email"]

    def test_walks_to_confirmation_and_stops(self, checkout):
        checkout.update_shipping(**SHIPPING)

        assert checkout.next() is True
        assert checkout.next() is True
        assert checkout.next() is True
        assert checkout.is_last_step is True
        assert checkout.can_proceed() is False
        assert checkout.next() is False
        assert checkout.current_step == CheckoutStep.CONFIRMATION

    def test_payment_requires_method(self, checkout):
        checkout.update_shipping(**SHIPPING)
        checkout.next()
        checkout.update_payment(method="")

        assert checkout.next() is False
        assert checkout.missing_fields() == ["method"]

    def test_previous(self, checkout):
        assert checkout.previous() is False

        checkout.go_to(3)

        assert checkout.previous() is True
        assert checkout.current_step == CheckoutStep.PAYMENT

    def test_go_to_skips_validation(self, checkout):
        assert checkout.go_to(CheckoutStep.REVIEW) is True
        assert checkout.current_step == CheckoutStep.REVIEW

    @pytest.mark.parametrize("step", [0, 5, -1, True, "2"])
    def test_go_to_out_of_range_is_noop(self, checkout, step):
        assert checkout.go_to(step) is False
        assert checkout.current_step == CheckoutStep.SHIPPING

    def test_unknown_field_rejected(self, checkout):
        with pytest.raises(InputValidationError):
            checkout.update_shipping(favourite_colour="blue")

    def test_prefill_from_profile(self, checkout):
        checkout.prefill(UserProfile(id=7, first_name="Ada", last_name="Lovelace", email="ada@example.com"))

        assert checkout.shipping_data.first_name == "Ada"
        assert checkout.shipping_data.address == ""
        assert checkout.payment_data.customer_name == "Ada Lovelace"
        assert checkout.missing_fields() == ["address"]

    def test_validate_shipping_reports_fields(self, checkout):
        checkout.update_shipping(**{**SHIPPING, "phone": "+14155550100", "zip_code": "ABCDE", "city": "London"})

        errors = checkout.validate_shipping()

        assert errors == {"zip_code": "Please enter a valid ZIP code"}


class TestCheckoutPersistence:
    """Test save, restore and auto-save"""

    @pytest.fixture
    def cache(self, clock):
        return LocalCache(clock=clock)

    @pytest.fixture
    def checkout(self, cache, config):
        session = CheckoutSession(cache, config)
        yield session
        session.close()

    def test_save_and_restore(self, cache, config, checkout):
        checkout.update_shipping(**SHIPPING)
        checkout.next()
        checkout.save()

        restored = CheckoutSession(cache, config, autosave=False)

        assert restored.restore() is True
        assert restored.current_step == CheckoutStep.PAYMENT
        assert restored.shipping_data.address == SHIPPING["address"]

    def test_restore_nothing_saved(self, checkout):
        assert checkout.restore() is False

    def test_restore_discards_corrupt_state(self, cache, checkout):
        cache.set(CHECKOUT_STATE_KEY, {"current_step": 9})

        assert checkout.restore() is False
        assert cache.get(CHECKOUT_STATE_KEY) is None

    def test_saved_state_expires_after_an_hour(self, cache, clock, checkout):
        checkout.save()
        clock.advance(60 * 60 * 1000)

        assert checkout.restore() is False

    def test_field_change_schedules_autosave(self, cache, checkout):
        checkout.update_shipping(first_name="Ada")

        assert cache.get(CHECKOUT_STATE_KEY) is None
        assert checkout.flush() is True
        assert cache.get(CHECKOUT_STATE_KEY)["shipping_data"]["first_name"] == "Ada"
        assert checkout.flush() is False

    def test_autosave_fires_after_debounce(self, cache, checkout):
        checkout.update_shipping(first_name="Ada")
        checkout.update_shipping(last_name="Lovelace")

        deadline = time.monotonic() + 2
        while cache.get(CHECKOUT_STATE_KEY) is None and time.monotonic() < deadline:
            time.sleep(0.02)

        saved = cache.get(CHECKOUT_STATE_KEY)
        assert saved["shipping_data"]["last_name"] == "Lovelace"

    def test_reset_clears_state_and_pending_save(self, cache, checkout):
        checkout.update_shipping(**SHIPPING)
        checkout.go_to(3)
        checkout.save()
        checkout.update_shipping(first_name="Grace")

        checkout.reset()

        assert checkout.current_step == CheckoutStep.SHIPPING
        assert checkout.shipping_data.first_name == ""
        assert cache.get(CHECKOUT_STATE_KEY) is None
        assert checkout.flush() is False

    def test_close_cancels_pending_save(self, cache, checkout):
        checkout.update_shipping(first_name="Ada")
        checkout.close()

        time.sleep(0.1)

        assert cache.get(CHECKOUT_STATE_KEY) is None
