"""Shared fixtures."""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from storefront_server.backend_client import StorefrontClient
from storefront_server.models import (
    AddOn,
    PaymentMethod,
    Product,
    ShippingMethod,
    Variation,
    Voucher,
)


@pytest.fixture
def shampoo() -> Product:
    return Product(
        id="shampoo",
        name="Shampoo",
        description="Gentle daily shampoo",
        base_price=Decimal("200"),
        category="hair-care",
        stock=5,
    )


@pytest.fixture
def serum() -> Product:
    """Discounted product with sized variations and add-ons."""
    return Product(
        id="serum",
        name="Vitamin C Serum",
        description="Brightening serum",
        base_price=Decimal("500"),
        discounted_price=Decimal("450"),
        category="skin-care",
        brand="Glow",
        stock=10,
        variations=[
            Variation(id="30ml", name="30ml", price=Decimal("0")),
            Variation(id="50ml", name="50ml", price=Decimal("150"), stock=2),
        ],
        add_ons=[
            AddOn(id="pouch", name="Travel Pouch", price=Decimal("50"), category="extras"),
            AddOn(id="wrap", name="Gift Wrap", price=Decimal("25"), category="extras"),
        ],
    )


@pytest.fixture
def standard_shipping() -> ShippingMethod:
    return ShippingMethod(id="lbc-standard", name="LBC Standard", price=Decimal("50"), estimated_days="3-5 days")


@pytest.fixture
def gcash() -> PaymentMethod:
    return PaymentMethod(id="gcash", name="GCash", account_number="09171234567", account_name="H&HBC")


@pytest.fixture
def save10() -> Voucher:
    return Voucher(
        id="v-1",
        code="save10",
        discount={"type": "percentage", "value": Decimal("10")},
        min_order_amount=Decimal("0"),
    )


@pytest.fixture
def fake_client() -> MagicMock:
    """StorefrontClient stand-in; every coroutine method is an AsyncMock."""
    return MagicMock(spec=StorefrontClient)
