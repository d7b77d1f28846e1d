"""
Reversible cart mutations.

Each patch is applied to the item tuple immediately and can be reverted if
the remote call fails. A revert only touches the rows its own apply changed,
so rolling back one mutation leaves concurrent mutations on other rows alone.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Tuple

from storefront.models import CartItem


Items = Tuple[CartItem, ...]


def _index_of(items: Items, item_id: str) -> Optional[int]:
    for index, item in enumerate(items):
        if item.id == item_id:
            return index
    return None


def _replace_at(items: Items, index: int, item: CartItem) -> Items:
    return items[:index] + (item,) + items[index + 1:]


class CartPatch(ABC):
    """A mutation with a deterministic undo"""

    @abstractmethod
    def apply(self, items: Items) -> Items:
        pass

    @abstractmethod
    def revert(self, items: Items) -> Items:
        pass


@dataclass
class AddItemPatch(CartPatch):
    """Append a new row, or increase the quantity of a row with the same line key"""
    item: CartItem
    merged_into: Optional[str] = None

    def apply(self, items: Items) -> Items:
        for index, existing in enumerate(items):
            if existing.line_key == self.item.line_key:
                self.merged_into = existing.id
                merged = existing.model_copy(update={"quantity": existing.quantity + self.item.quantity})
                return _replace_at(items, index, merged)

        self.merged_into = None
        return items + (self.item,)

    def revert(self, items: Items) -> Items:
        # take back only this patch's quantity; the row may carry later merges
        row_id = self.item.id if self.merged_into is None else self.merged_into
        index = _index_of(items, row_id)
        if index is None:
            return items
        existing = items[index]
        quantity = existing.quantity - self.item.quantity
        if quantity < 1:
            return items[:index] + items[index + 1:]
        return _replace_at(items, index, existing.model_copy(update={"quantity": quantity}))

    def confirm(self, items: Items, server_id: str) -> Items:
        """Swap the temporary id of an appended row for the server id"""
        if self.merged_into is not None or server_id == self.item.id:
            return items
        index = _index_of(items, self.item.id)
        if index is None:
            return items
        return _replace_at(items, index, items[index].model_copy(update={"id": server_id}))


@dataclass
class UpdateQuantityPatch(CartPatch):
    """Set the quantity of one row"""
    item_id: str
    quantity: int
    previous: Optional[int] = None

    def apply(self, items: Items) -> Items:
        index = _index_of(items, self.item_id)
        if index is None:
            return items
        self.previous = items[index].quantity
        return _replace_at(items, index, items[index].model_copy(update={"quantity": self.quantity}))

    def revert(self, items: Items) -> Items:
        index = _index_of(items, self.item_id)
        if index is None or self.previous is None:
            return items
        return _replace_at(items, index, items[index].model_copy(update={"quantity": self.previous}))


@dataclass
class RemoveItemPatch(CartPatch):
    """Drop one row; revert puts it back at its original position"""
    item_id: str
    removed: Optional[CartItem] = None
    position: Optional[int] = None

    def apply(self, items: Items) -> Items:
        index = _index_of(items, self.item_id)
        if index is None:
            return items
        self.removed = items[index]
        self.position = index
        return items[:index] + items[index + 1:]

    def revert(self, items: Items) -> Items:
        if self.removed is None or _index_of(items, self.item_id) is not None:
            return items
        position = min(self.position, len(items))
        return items[:position] + (self.removed,) + items[position:]


@dataclass
class ClearCartPatch(CartPatch):
    """Empty the cart; revert restores the prior rows ahead of any added since"""
    previous: Items = field(default_factory=tuple)

    def apply(self, items: Items) -> Items:
        self.previous = items
        return ()

    def revert(self, items: Items) -> Items:
        restored_ids = {item.id for item in self.previous}
        added_since = tuple(item for item in items if item.id not in restored_ids)
        return self.previous + added_since
