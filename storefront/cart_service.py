"""
Cart reconciliation: optimistic local mutations confirmed by the remote API
"""
from collections import Counter
from contextlib import contextmanager
from threading import Lock, RLock
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple, TypeVar

import structlog
from pydantic import ValidationError

from storefront.cache import LocalCache
from storefront.clients.api_client import StorefrontApiClient
from storefront.config import Config, get_config
from storefront.errors import (
    CartItemNotFoundError,
    InputValidationError,
    QuantityOutOfRangeError,
)
from storefront.models import CartItem, CartSnapshot
from storefront.patches import (
    AddItemPatch,
    CartPatch,
    ClearCartPatch,
    RemoveItemPatch,
    UpdateQuantityPatch,
)
from storefront.storage import CART_BACKUP, LocalStorage


CART_CACHE_PREFIX = "cart_"

R = TypeVar("R")


def cart_cache_key(user_id: str) -> str:
    return f"{CART_CACHE_PREFIX}{user_id}"


def line_lock_key(item: CartItem) -> str:
    product_id, size, color = item.line_key
    return f"line:{product_id}:{size or ''}:{color or ''}"


class CartService:
    """
    Owns the in-memory cart snapshot for one user.

    Every mutation is applied locally first, then sent to the API. A failed
    call reverts that mutation's patch and re-raises; nothing is retried.
    The cart cache namespace is invalidated only after the server confirms.
    """

    def __init__(
        self,
        client: StorefrontApiClient,
        cache: LocalCache,
        config: Optional[Config] = None,
        user_id: Optional[str] = None,
    ):
        self.client = client
        self.cache = cache
        self.config = config or get_config()
        self.max_quantity = self.config.max_item_quantity
        self._snapshot = CartSnapshot(user_id=user_id)
        self._lock = RLock()
        self._item_locks: Dict[str, Lock] = {}
        self._item_locks_guard = Lock()
        self._pending: Counter = Counter()
        self.logger = structlog.get_logger().bind(component="cart_service")

    # ------------------------------------------------------------------
    # Read-only projection
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> CartSnapshot:
        with self._lock:
            return self._snapshot

    @property
    def user_id(self) -> Optional[str]:
        return self.snapshot.user_id

    @property
    def pending(self) -> FrozenSet[str]:
        """Ids of items with a mutation in flight"""
        with self._lock:
            return frozenset(key for key, count in self._pending.items() if count > 0)

    def find(self, item_id: str) -> Optional[CartItem]:
        return self.snapshot.get_item(item_id)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def load(self, user_id: str, force_refresh: bool = False) -> CartSnapshot:
        """
        Load the cart for a user, from cache when possible.

        Args:
            user_id: User identifier
            force_refresh: Skip the cache and fetch from the API

        Returns:
            The new snapshot
        """
        key = cart_cache_key(user_id)
        items = None if force_refresh else self.cache.get(key)

        if items is not None:
            self.logger.debug("Cart loaded from cache", user_id=user_id, count=len(items))
        else:
            try:
                items = tuple(self.client.get_cart(user_id))
            except Exception as e:
                self.logger.error("Error loading cart", user_id=user_id, error=str(e))
                raise
            self.cache.set(key, items, self.config.cart_cache_ttl_ms)
            self.logger.info("Cart loaded from API", user_id=user_id, count=len(items))

        with self._lock:
            self._snapshot = CartSnapshot(user_id=user_id, items=tuple(items))
            return self._snapshot

    def add(self, item: CartItem) -> CartSnapshot:
        """
        Add an item, merging with an existing row of the same
        product/size/color.

        Raises:
            QuantityOutOfRangeError: merged quantity would exceed the maximum
        """
        user_id = self._require_user()
        self._check_quantity(item.quantity)
        patch = AddItemPatch(item)

        # adds of one line key run one at a time; an existing row is also
        # locked against update/remove on its id
        with self._item_lock(line_lock_key(item)):
            with self._lock:
                existing = self._find_line(item)
            row_key = existing.id if existing is not None else item.id

            with self._item_lock(row_key):
                with self._lock:
                    current = self._find_line(item)
                if current is not None:
                    self._check_quantity(current.quantity + item.quantity)

                result = self._run(
                    patch,
                    lambda: self.client.add_item(user_id, item),
                    row_key,
                    "add",
                    product_id=item.product_id,
                    quantity=item.quantity,
                )

                # the server id must be in place before the next add of this line
                with self._lock:
                    self._snapshot = self._with_items(patch.confirm(self._snapshot.items, result.cart_item_id))
                    return self._snapshot

    def update_quantity(self, item_id: str, quantity: int) -> CartSnapshot:
        """
        Set an item's quantity.

        Raises:
            QuantityOutOfRangeError: quantity outside [1, max], before any mutation
            CartItemNotFoundError: item_id is not in the cart
        """
        self._check_quantity(quantity)
        user_id = self._require_user()

        with self._item_lock(item_id):
            if self.find(item_id) is None:
                raise CartItemNotFoundError(item_id)

            self._run(
                UpdateQuantityPatch(item_id, quantity),
                lambda: self.client.update_item(user_id, item_id, quantity),
                item_id,
                "update_quantity",
                item_id=item_id,
                quantity=quantity,
            )
        return self.snapshot

    def remove(self, item_id: str) -> CartSnapshot:
        """
        Remove an item. On failure it is re-inserted at its old position.

        Raises:
            CartItemNotFoundError: item_id is not in the cart
        """
        user_id = self._require_user()

        with self._item_lock(item_id):
            if self.find(item_id) is None:
                raise CartItemNotFoundError(item_id)

            self._run(
                RemoveItemPatch(item_id),
                lambda: self.client.remove_item(user_id, item_id),
                item_id,
                "remove",
                item_id=item_id,
            )
        return self.snapshot

    def clear(self, user_id: Optional[str] = None) -> CartSnapshot:
        """
        Empty the cart. On failure the prior items are restored.

        Raises:
            InputValidationError: user_id is not the loaded cart's user
        """
        current_user = self._require_user()
        if user_id is not None and user_id != current_user:
            raise InputValidationError(f"Cart belongs to {current_user}, not {user_id}")
        user_id = current_user

        self._run(
            ClearCartPatch(),
            lambda: self.client.clear_cart(user_id),
            None,
            "clear",
        )
        self.cache.invalidate(cart_cache_key(user_id))
        return self.snapshot

    def sync(self, user_id: str, local_items: Iterable[CartItem]) -> List[CartItem]:
        """
        Merge a guest cart into the user's server cart after login.

        Quantities of rows with the same line key are summed and capped at
        the maximum. Each local row is pushed with `add`.

        Returns:
            Local items that could not be synced
        """
        self.load(user_id, force_refresh=True)
        failed = []

        for local in local_items:
            with self._lock:
                existing = self._find_line(local)
            room = self.max_quantity - (existing.quantity if existing is not None else 0)
            if room < 1:
                continue

            item = CartItem.new(
                product_id=local.product_id,
                unit_price=local.unit_price,
                quantity=min(local.quantity, room),
                size=local.size,
                color=local.color,
                name=local.name,
                original_price=local.original_price,
            )
            try:
                self.add(item)
            except Exception as e:
                self.logger.warning("Guest cart item not synced", product_id=local.product_id, error=str(e))
                failed.append(local)

        self.logger.info("Guest cart synced", user_id=user_id, failed=len(failed))
        return failed

    def backup(self, storage: LocalStorage) -> None:
        """Write the current items to local storage"""
        items = [item.model_dump(mode="json", by_alias=True) for item in self.snapshot.items]
        storage.set(CART_BACKUP, items)
        self.logger.debug("Cart backed up", count=len(items))

    def restore_backup(self, storage: LocalStorage) -> List[CartItem]:
        """Read backed-up items; unreadable rows are skipped"""
        raw = storage.get(CART_BACKUP, [])
        if not isinstance(raw, list):
            self.logger.warning("Cart backup is not a list, ignoring")
            return []

        items = []
        for row in raw:
            try:
                items.append(CartItem.model_validate(row))
            except ValidationError as e:
                self.logger.warning("Skipping invalid cart backup row", error_count=e.error_count())
        return items

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _run(
        self,
        patch: CartPatch,
        remote_call: Callable[[], R],
        pending_key: Optional[str],
        action: str,
        **log_context,
    ) -> R:
        """Apply patch, call the API, revert on any failure"""
        with self._lock:
            self._snapshot = self._with_items(patch.apply(self._snapshot.items))
            if pending_key is not None:
                self._pending[pending_key] += 1

        try:
            result = remote_call()
        except Exception as e:
            with self._lock:
                self._snapshot = self._with_items(patch.revert(self._snapshot.items))
            self.logger.warning(
                "Cart mutation rolled back",
                action=action,
                user_id=self.user_id,
                error=str(e),
                **log_context,
            )
            raise
        finally:
            if pending_key is not None:
                with self._lock:
                    self._pending[pending_key] -= 1
                    if self._pending[pending_key] <= 0:
                        del self._pending[pending_key]

        removed = self.cache.invalidate_pattern(CART_CACHE_PREFIX)
        self.logger.info(
            "Cart mutation confirmed",
            action=action,
            user_id=self.user_id,
            cache_entries_invalidated=removed,
            **log_context,
        )
        return result

    def _with_items(self, items: Tuple[CartItem, ...]) -> CartSnapshot:
        return CartSnapshot(user_id=self._snapshot.user_id, items=items)

    def _find_line(self, item: CartItem) -> Optional[CartItem]:
        for existing in self._snapshot.items:
            if existing.line_key == item.line_key:
                return existing
        return None

    def _check_quantity(self, quantity: int) -> None:
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise InputValidationError(f"Quantity must be an integer, got {quantity!r}")
        if quantity < 1 or quantity > self.max_quantity:
            raise QuantityOutOfRangeError(quantity, 1, self.max_quantity)

    def _require_user(self) -> str:
        user_id = self.user_id
        if not user_id:
            raise InputValidationError(
                "Cart has no user; call load() first",
                user_message="Please login to use the cart.",
            )
        return user_id

    @contextmanager
    def _item_lock(self, key: str):
        with self._item_locks_guard:
            lock = self._item_locks.setdefault(key, Lock())
        with lock:
            yield
