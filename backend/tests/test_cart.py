"""Tests for the terminal cart: merging, variants and quantity edits."""

from decimal import Decimal

import pytest

from dinepos.core.exceptions import NotFoundError, ValidationError
from dinepos.services.cart_service import Cart, line_key, variant_signature


class TestVariantSignature:
    def test_no_variants_uses_product_id(self):
        assert line_key("P-A") == "P-A"
        assert line_key("P-A", {}) == "P-A"

    def test_signature_sorted_by_group(self):
        selection = {"size": {"id": "large"}, "crust": {"id": "cheese"}}
        assert variant_signature(selection) == "crust:cheese|size:large"
        assert line_key("P-PZ", selection) == "P-PZ_crust:cheese|size:large"


class TestCart:
    def test_same_product_merges(self, products):
        cart = Cart()
        cart.add_line(products["A"])
        cart.add_line(products["A"])

        assert len(cart.lines) == 1
        assert cart.lines[0].qty == 2
        assert cart.subtotal == Decimal("200")

    def test_variant_price_added_to_base(self, products):
        cart = Cart()
        line = cart.add_line(products["PIZZA"], {"size": "large", "crust": "cheese"})

        assert line.unit_price == Decimal("320")
        assert line.variants["size"]["name"] == "Large"

    def test_different_variants_are_separate_lines(self, products):
        cart = Cart()
        cart.add_line(products["PIZZA"], {"size": "regular"})
        cart.add_line(products["PIZZA"], {"size": "large"})
        cart.add_line(products["PIZZA"], {"size": "large"})

        assert len(cart.lines) == 2
        by_key = {line.key: line for line in cart.lines}
        assert by_key["P-PZ_size:large"].qty == 2
        assert by_key["P-PZ_size:regular"].qty == 1

    def test_unknown_option_rejected(self, products):
        cart = Cart()
        with pytest.raises(ValidationError):
            cart.add_line(products["PIZZA"], {"size": "family"})
        with pytest.raises(ValidationError):
            cart.add_line(products["PIZZA"], {"topping": "olive"})
        assert cart.is_empty

    def test_out_of_stock_rejected(self, products):
        cart = Cart()
        with pytest.raises(ValidationError, match="out of stock"):
            cart.add_line(products["OOS"])

    def test_set_quantity_keeps_add_time_price(self, products):
        cart = Cart()
        cart.add_line(products["A"])
        products["A"].price = Decimal("150")

        line = cart.set_quantity("P-A", 3)

        assert line.qty == 3
        assert line.unit_price == Decimal("100")
        assert cart.subtotal == Decimal("300")

    def test_set_quantity_zero_removes(self, products):
        cart = Cart()
        cart.add_line(products["A"])
        cart.add_line(products["B"])

        assert cart.set_quantity("P-A", 0) is None
        assert [line.key for line in cart.lines] == ["P-B"]

    def test_set_quantity_unknown_line(self):
        with pytest.raises(NotFoundError):
            Cart().set_quantity("nope", 1)

    def test_remove_and_clear(self, products):
        cart = Cart()
        cart.add_line(products["A"])
        cart.add_line(products["B"])
        cart.remove_line("P-A")
        cart.remove_line("P-A")  # removing twice is harmless
        assert len(cart.lines) == 1

        cart.clear()
        assert cart.is_empty
        assert cart.subtotal == Decimal("0")

    def test_note(self, products):
        cart = Cart()
        cart.add_line(products["B"], note="less sugar")
        assert cart.lines[0].notes == "less sugar"
        cart.set_note("P-B", "")
        assert cart.lines[0].notes is None
