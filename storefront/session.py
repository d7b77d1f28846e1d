"""
Session context: wires cache, API client, storage and the cart, discount and
checkout components for one user session
"""
from decimal import Decimal
from typing import Optional

import structlog
from pydantic import ValidationError

from storefront.cache import LocalCache
from storefront.cart_service import CartService
from storefront.checkout import CheckoutSession
from storefront.clients.api_client import StorefrontApiClient
from storefront.config import Config, get_config, load_config
from storefront.discount import AppliedDiscount, DiscountService, OrderContext
from storefront.errors import AuthenticationError, StorefrontError
from storefront.logging import configure_logging
from storefront.models import OrderSummary, UserProfile
from storefront.pricing import ZERO, calculate_order_summary, shipping_cost
from storefront.storage import AUTH_TOKEN, USER_DATA, LocalStorage


USER_PROFILE_KEY = "user_profile"


class StorefrontSession:
    """Application root owning every storefront component"""

    def __init__(
        self,
        config: Optional[Config] = None,
        client: Optional[StorefrontApiClient] = None,
        cache: Optional[LocalCache] = None,
        storage: Optional[LocalStorage] = None,
        autosave: bool = True,
    ):
        self.config = config or get_config()
        self.cache = cache or LocalCache(self.config.cache_default_ttl_ms)
        self.storage = storage or LocalStorage(self.config.storage_path)
        self.client = client or StorefrontApiClient(self.config, token_provider=self._auth_token)
        self.cart = CartService(self.client, self.cache, self.config)
        self.discounts = DiscountService(self.client)
        self.checkout = CheckoutSession(self.cache, self.config, autosave=autosave)
        self.applied_discount: Optional[AppliedDiscount] = None
        self.user: Optional[UserProfile] = None
        self.logger = structlog.get_logger().bind(component="session")

    def _auth_token(self) -> Optional[str]:
        return self.storage.get(AUTH_TOKEN) or self.config.auth_token

    @property
    def discount_amount(self) -> Decimal:
        if self.applied_discount is None:
            return ZERO
        return self.applied_discount.discount_amount

    def order_summary(self) -> OrderSummary:
        """Totals for the current cart and applied discount"""
        subtotal = self.cart.snapshot.total_price
        return calculate_order_summary(
            subtotal=subtotal,
            shipping=shipping_cost(
                subtotal,
                threshold=self.config.free_shipping_threshold,
                flat_fee=self.config.flat_shipping_fee,
            ),
            discount=self.discount_amount,
            tax_rate=self.config.tax_rate,
        )

    def apply_discount(self, raw_code: str, category_ids: Optional[list] = None) -> AppliedDiscount:
        """
        Apply a discount code to the current cart.

        On any failure the applied discount is reset to zero before the
        error propagates.

        Raises:
            DiscountError: the code was rejected
        """
        snapshot = self.cart.snapshot
        context = OrderContext(
            subtotal=snapshot.total_price,
            product_ids=snapshot.product_ids(),
            category_ids=list(category_ids or []),
        )
        try:
            self.applied_discount = self.discounts.apply(raw_code, context)
        except Exception:
            self.applied_discount = None
            raise
        return self.applied_discount

    def remove_discount(self) -> None:
        self.applied_discount = None

    def load_user(self) -> Optional[UserProfile]:
        """
        Load the signed-in user's profile and prefill checkout with it.

        Returns:
            The profile, or None for a guest
        """
        cached = self.cache.get(USER_PROFILE_KEY)
        profile = None
        if cached is not None:
            try:
                profile = UserProfile.model_validate(cached)
            except ValidationError as e:
                self.logger.warning("Discarding unreadable cached profile", error_count=e.error_count())
                self.cache.invalidate(USER_PROFILE_KEY)

        if profile is None:
            try:
                profile = self.client.get_user_profile()
            except AuthenticationError:
                self.logger.info("No authenticated user, continuing as guest")
                self.user = None
                self.checkout.is_authenticated = False
                return None
            except StorefrontError as e:
                self.logger.error("Error loading user profile", error=str(e))
                raise
            payload = profile.model_dump(mode="json")
            self.cache.set(USER_PROFILE_KEY, payload, self.config.user_cache_ttl_ms)
            self.storage.set(USER_DATA, payload)

        self.user = profile
        self.checkout.is_authenticated = True
        self.checkout.prefill(profile)
        self.logger.info("User loaded", user_id=profile.id)
        return profile

    def logout(self) -> None:
        """Forget the user, their token and any cached data"""
        self.storage.remove(AUTH_TOKEN)
        self.storage.remove(USER_DATA)
        self.cache.clear()
        self.checkout.reset()
        self.checkout.is_authenticated = False
        self.applied_discount = None
        self.user = None
        self.logger.info("Session logged out")

    def close(self) -> None:
        """Cancel scheduled tasks and close the HTTP session"""
        self.checkout.close()
        self.client.close()
        self.logger.info("Session closed")


def open_session(config: Optional[Config] = None) -> StorefrontSession:
    """Load config, configure logging and build a session"""
    config = config or load_config()
    configure_logging(config.service_name, config.log_level, json_output=config.log_json)
    return StorefrontSession(config)
