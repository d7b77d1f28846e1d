"""
Unit tests for data models
"""
from decimal import Decimal

import pytest
from pydantic import ValidationError

from storefront.models import CartItem, CartSnapshot


class TestCartItem:
    """Test CartItem model"""

    def test_server_ids_coerced_to_strings(self):
        item = CartItem(id=5, product_id=42, quantity=1, price="9.99")

        assert item.id == "5"
        assert item.product_id == "42"
        assert item.unit_price == Decimal("9.99")

    def test_new_item_is_temporary(self):
        item = CartItem.new(product_id="P1", unit_price="1.00")

        assert item.is_temporary is True
        assert item.id.startswith("tmp-")

    @pytest.mark.parametrize("quantity", [0, 11])
    def test_quantity_bounds(self, quantity):
        with pytest.raises(ValidationError):
            CartItem(id="1", product_id="P1", quantity=quantity, price="1.00")

    def test_savings(self):
        item = CartItem(id="1", product_id="P1", quantity=2, price="40.00", original_price="50.00")

        assert item.line_total == Decimal("80.00")
        assert item.savings == Decimal("20.00")


class TestCartSnapshot:
    """Test derived totals"""

    def test_totals_derived_from_items(self):
        snapshot = CartSnapshot(user_id="u1", items=(
            CartItem(id="1", product_id="P1", quantity=2, price="50.00"),
            CartItem(id="2", product_id="P2", quantity=1, price="30.00"),
        ))

        assert snapshot.total_items == 3
        assert snapshot.item_count == 2
        assert snapshot.total_price == Decimal("130.00")
        assert snapshot.product_ids() == ["P1", "P2"]
        assert snapshot.get_item("2").product_id == "P2"
        assert snapshot.get_item("9") is None

    def test_empty(self):
        snapshot = CartSnapshot()

        assert snapshot.is_empty is True
        assert snapshot.total_price == Decimal("0")

    def test_serialises_computed_totals(self):
        snapshot = CartSnapshot(items=(CartItem(id="1", product_id="P1", quantity=3, price="2.00"),))

        dumped = snapshot.model_dump()

        assert dumped["total_items"] == 3
        assert dumped["total_price"] == Decimal("6.00")
