"""
Unit tests for reversible cart patches
"""
from decimal import Decimal

import pytest

from storefront.models import CartItem
from storefront.patches import AddItemPatch, ClearCartPatch, RemoveItemPatch, UpdateQuantityPatch


def make_item(item_id, product_id, quantity=1, price="10.00", size=None, color=None):
    return CartItem(id=item_id, product_id=product_id, quantity=quantity, price=Decimal(price), size=size, color=color)


@pytest.fixture
def items():
    return (
        make_item("1", "P1", 2, "50.00", size="M"),
        make_item("2", "P2", 1, "30.00"),
        make_item("3", "P3", 3, "5.00"),
    )


class TestAddItemPatch:
    """Test add/merge and its undo"""

    def test_appends_new_line(self, items):
        new = CartItem.new(product_id="P9", unit_price="1.00")
        patch = AddItemPatch(new)

        applied = patch.apply(items)

        assert applied[-1] == new
        assert patch.revert(applied) == items

    def test_merges_same_line_key(self, items):
        extra = CartItem.new(product_id="P1", unit_price="50.00", quantity=3, size="M")
        patch = AddItemPatch(extra)

        applied = patch.apply(items)

        assert len(applied) == 3
        assert applied[0].quantity == 5
        assert patch.merged_into == "1"
        assert patch.revert(applied) == items

    def test_different_size_is_a_new_line(self, items):
        patch = AddItemPatch(CartItem.new(product_id="P1", unit_price="50.00", size="L"))

        assert len(patch.apply(items)) == 4

    def test_confirm_swaps_temporary_id(self, items):
        new = CartItem.new(product_id="P9", unit_price="1.00")
        patch = AddItemPatch(new)
        applied = patch.apply(items)

        confirmed = patch.confirm(applied, "77")

        assert confirmed[-1].id == "77"
        assert confirmed[-1].is_temporary is False

    def test_revert_of_appended_row_keeps_later_merge(self, items):
        first = AddItemPatch(CartItem.new(product_id="P9", unit_price="1.00", quantity=2))
        second = AddItemPatch(CartItem.new(product_id="P9", unit_price="1.00", quantity=3))
        applied = second.apply(first.apply(items))

        reverted = first.revert(applied)

        assert second.merged_into == first.item.id
        assert reverted[-1].id == first.item.id
        assert reverted[-1].quantity == 3

    def test_revert_leaves_other_changes(self, items):
        new = CartItem.new(product_id="P9", unit_price="1.00")
        patch = AddItemPatch(new)
        applied = patch.apply(items)
        concurrent = UpdateQuantityPatch("2", 4).apply(applied)

        reverted = patch.revert(concurrent)

        assert [item.id for item in reverted] == ["1", "2", "3"]
        assert reverted[1].quantity == 4


class TestUpdateQuantityPatch:
    """Test quantity change and its undo"""

    def test_apply_and_revert(self, items):
        patch = UpdateQuantityPatch("1", 5)

        applied = patch.apply(items)

        assert applied[0].quantity == 5
        assert patch.previous == 2
        assert patch.revert(applied) == items

    def test_unknown_id_is_noop(self, items):
        patch = UpdateQuantityPatch("missing", 5)

        assert patch.apply(items) == items
        assert patch.revert(items) == items


class TestRemoveItemPatch:
    """Test removal and positional re-insert"""

    def test_revert_restores_position(self, items):
        patch = RemoveItemPatch("2")

        applied = patch.apply(items)

        assert [item.id for item in applied] == ["1", "3"]
        assert patch.revert(applied) == items

    def test_revert_clamps_position(self, items):
        patch = RemoveItemPatch("3")
        applied = patch.apply(items)
        shorter = RemoveItemPatch("1").apply(applied)

        reverted = patch.revert(shorter)

        assert [item.id for item in reverted] == ["2", "3"]


class TestClearCartPatch:
    """Test clearing and restoring"""

    def test_apply_and_revert(self, items):
        patch = ClearCartPatch()

        assert patch.apply(items) == ()
        assert patch.revert(()) == items

    def test_revert_keeps_items_added_since(self, items):
        patch = ClearCartPatch()
        patch.apply(items)
        added = make_item("9", "P9")

        reverted = patch.revert((added,))

        assert reverted == items + (added,)
