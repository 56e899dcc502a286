"""Tests for the order message and Messenger link."""

import re
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from urllib.parse import unquote

import pytest

from storefront_server.handoff import (
    build_messenger_url,
    build_order_message,
    format_item_line,
    generate_order_number,
)
from storefront_server.models import AddOn, Order, OrderItem, ShippingAddress


@pytest.fixture
def order() -> Order:
    return Order(
        id="order-1",
        order_number="20250601-4821",
        customer_name="Maria Santos",
        contact_number="09171234567",
        shipping_address=ShippingAddress(
            street="12 Mabini St", city="Quezon City", province="Metro Manila", postal_code="1100"
        ),
        shipping_method="LBC Express",
        shipping_fee=Decimal("200"),
        subtotal=Decimal("1300"),
        voucher_discount=Decimal("130"),
        total_amount=Decimal("1370"),
        payment_method="GCash",
        voucher_code="SAVE10",
        items=[
            OrderItem(
                product_id="serum",
                product_name="Vitamin C Serum",
                base_price=Decimal("500"),
                discounted_price=Decimal("450"),
                quantity=2,
                variation_id="50ml",
                variation_name="50ml",
                variation_price=Decimal("150"),
                add_ons=[
                    AddOn(id="pouch", name="Travel Pouch", price=Decimal("50"), quantity=1),
                    AddOn(id="wrap", name="Gift Wrap", price=Decimal("25"), quantity=2),
                ],
                item_total=Decimal("1300"),
            )
        ],
    )


def test_item_line_format(order: Order) -> None:
    assert (
        format_item_line(order.items[0], "₱")
        == "• Vitamin C Serum (50ml) + Travel Pouch, Gift Wrap x2 x2 - ₱1300"
    )


def test_item_line_without_options() -> None:
    item = OrderItem(
        product_id="shampoo", product_name="Shampoo", base_price=Decimal("200"), quantity=3, item_total=Decimal("600")
    )
    assert format_item_line(item, "₱") == "• Shampoo x3 - ₱600"


def test_message_sections_in_order(order: Order) -> None:
    message = build_order_message(order, "H&HBC SHOPPE")

    expected_order = [
        "🛍️ H&HBC SHOPPE ORDER",
        "Order #: 20250601-4821",
        "Customer: Maria Santos",
        "Contact: 09171234567",
        "12 Mabini St\nQuezon City, Metro Manila 1100\nPhilippines",
        "Shipping Method: LBC Express",
        "• Vitamin C Serum",
        "SUBTOTAL: ₱1300",
        "SHIPPING FEE: ₱200",
        "VOUCHER (SAVE10): -₱130",
        "TOTAL: ₱1370",
        "Payment: GCash",
        "Payment Screenshot",
    ]
    positions = [message.index(fragment) for fragment in expected_order]
    assert positions == sorted(positions)
    assert "Notes" not in message


def test_message_optional_parts(order: Order) -> None:
    order = order.model_copy(update={"voucher_code": None, "voucher_discount": Decimal("0"), "notes": "Call first"})
    message = build_order_message(order, "Shop", currency="$")
    assert "VOUCHER" not in message
    assert message.index("Payment Screenshot") < message.index("📝 Notes: Call first")
    assert "SUBTOTAL: $1300" in message


def test_messenger_url_matches_encode_uri_component() -> None:
    url = build_messenger_url("100082987099531", "Hi! (2x) it's ₱5 & more")
    assert url == (
        "https://m.me/100082987099531?text="
        "Hi!%20(2x)%20it's%20%E2%82%B15%20%26%20more"
    )


def test_messenger_url_round_trips_message(order: Order) -> None:
    message = build_order_message(order, "H&HBC SHOPPE")
    url = build_messenger_url("123", message)
    encoded = url.split("?text=", 1)[1]
    assert "\n" not in encoded
    assert unquote(encoded) == message


def test_order_number_format() -> None:
    number = generate_order_number(datetime(2025, 6, 1, 9, 30))
    assert re.fullmatch(r"20250601-\d{4}", number)


def test_order_number_uses_utc_date() -> None:
    manila_morning = datetime(2025, 6, 2, 3, 0, tzinfo=timezone(timedelta(hours=8)))
    assert generate_order_number(manila_morning).startswith("20250601-")


def test_order_number_suffix_from_epoch_millis() -> None:
    now = datetime(2025, 6, 1, 12, 0, 7, 123000, tzinfo=timezone.utc)
    assert generate_order_number(now) == "20250601-7123"


def test_message_includes_email_when_given(order: Order) -> None:
    assert "Email" not in build_order_message(order, "Shop")

    message = build_order_message(order.model_copy(update={"email": "maria@example.com"}), "Shop")

    assert message.index("📞 Contact:") < message.index("📧 Email: maria@example.com")
    assert message.index("📧 Email:") < message.index("SHIPPING ADDRESS")
