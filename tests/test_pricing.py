"""Tests for unit price calculation."""

import logging
from decimal import Decimal

import pytest
from pydantic import ValidationError

from storefront_server.models import AddOn, Product, Variation
from storefront_server.pricing import effective_price, format_price, line_savings


class TestEffectivePrice:
    def test_base_price(self, shampoo: Product) -> None:
        assert effective_price(shampoo) == Decimal("200")

    def test_discounted_price_wins_when_lower(self, serum: Product) -> None:
        assert effective_price(serum) == Decimal("450")

    def test_discounted_price_ignored_when_not_lower(self) -> None:
        product = Product(id="p", name="P", base_price=Decimal("100"), discounted_price=Decimal("120"))
        assert effective_price(product) == Decimal("100")

    def test_variation_price_added(self, serum: Product) -> None:
        assert effective_price(serum, serum.get_variation("50ml")) == Decimal("600")

    def test_add_ons_counted_by_quantity(self, serum: Product) -> None:
        pouch = serum.get_add_on("pouch").model_copy(update={"quantity": 2})
        wrap = serum.get_add_on("wrap")
        assert effective_price(serum, None, [pouch, wrap]) == Decimal("450") + Decimal("100") + Decimal("25")

    def test_negative_total_clamped_to_zero(self, caplog: pytest.LogCaptureFixture) -> None:
        product = Product(id="p", name="P", base_price=Decimal("10"))
        rebate = AddOn(id="r", name="Rebate", price=Decimal("-25"))

        with caplog.at_level(logging.WARNING):
            price = effective_price(product, None, [rebate])

        assert price == Decimal("0")
        assert "clamping" in caplog.text

    def test_negative_variation_price_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Variation(id="v", name="Broken", price=Decimal("-1"))

    def test_never_negative(self, serum: Product) -> None:
        add_on_sets = [[], [AddOn(id="x", name="X", price=Decimal("-1000"))], serum.add_ons]
        for variation in [None, *serum.variations]:
            for add_ons in add_on_sets:
                assert effective_price(serum, variation, add_ons) >= 0


def test_line_savings(serum: Product, shampoo: Product) -> None:
    assert line_savings(serum, 3) == Decimal("150")
    assert line_savings(shampoo, 3) == Decimal("0")


@pytest.mark.parametrize(
    "amount, expected",
    [
        (Decimal("600"), "600"),
        (Decimal("600.00"), "600"),
        (Decimal("99.5"), "99.50"),
        (Decimal("12.3"), "12.30"),
    ],
)
def test_format_price(amount: Decimal, expected: str) -> None:
    assert format_price(amount) == expected
