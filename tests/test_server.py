"""Tests for the MCP tool handlers."""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from storefront_server import server
from storefront_server.config import StorefrontSettings
from storefront_server.exceptions import BackendError
from storefront_server.models import Order, OrderStatus, PaymentMethod, Product, ShippingMethod


@pytest.fixture(autouse=True)
def configured(
    tmp_path,
    fake_client: MagicMock,
    shampoo: Product,
    serum: Product,
    standard_shipping: ShippingMethod,
    gcash: PaymentMethod,
) -> MagicMock:
    fake_client.get_products.return_value = [shampoo, serum]
    fake_client.get_shipping_methods.return_value = [standard_shipping]
    fake_client.get_payment_methods.return_value = [gcash]
    fake_client.create_order.side_effect = lambda order: order.model_copy(update={"id": "order-7"})
    settings = StorefrontSettings(
        backend_url="https://shop.example.co",
        backend_key="key",
        admin_password="s3cret",
        messenger_page_id="12345",
        session_file=str(tmp_path / "session.json"),
    )
    server.setup(settings, client=fake_client)
    return fake_client


async def call(name: str, arguments: dict | None = None) -> str:
    result = await server.call_tool(name, arguments or {})
    return result[0].text


@pytest.mark.asyncio
async def test_search_products() -> None:
    text = await call("storefront_search_products", {"query": "serum"})
    assert "Found 1 product(s)" in text
    assert "Vitamin C Serum" in text
    assert "Price: ₱450 (was ₱500)" in text


@pytest.mark.asyncio
async def test_add_to_cart_with_options() -> None:
    text = await call(
        "storefront_add_to_cart",
        {"product_id": "serum", "quantity": 2, "variation_id": "50ml", "add_on_ids": ["wrap"]},
    )
    assert "Line ID:" in text
    assert "Cart total: ₱1250" in text

    cart = await call("storefront_get_cart")
    assert "Vitamin C Serum (50ml)" in cart
    assert "Add-ons: Gift Wrap x1" in cart


@pytest.mark.asyncio
async def test_add_to_cart_reports_stock_limit() -> None:
    await call("storefront_add_to_cart", {"product_id": "shampoo", "quantity": 3})
    text = await call("storefront_add_to_cart", {"product_id": "shampoo", "quantity": 3})
    assert text.startswith("Could not add Shampoo: Only 5 items available")


@pytest.mark.asyncio
async def test_unknown_variation() -> None:
    text = await call("storefront_add_to_cart", {"product_id": "serum", "variation_id": "1l"})
    assert text == "Variation 1l not found for Vitamin C Serum"


@pytest.mark.asyncio
async def test_update_and_remove_line() -> None:
    await call("storefront_add_to_cart", {"product_id": "shampoo", "quantity": 1})
    line_id = server.session.cart.items[0].id

    assert not (await call("storefront_update_cart_quantity", {"line_id": line_id, "quantity": 4})).startswith(
        "Failed"
    )
    assert server.session.cart.get_total_items() == 4
    assert "removed" in await call("storefront_remove_from_cart", {"line_id": line_id})
    assert await call("storefront_get_cart") == "Your cart is empty"


@pytest.mark.asyncio
async def test_place_order_flow(configured: MagicMock) -> None:
    await call("storefront_add_to_cart", {"product_id": "shampoo", "quantity": 2})
    details = await call(
        "storefront_set_checkout_details",
        {
            "customer_name": "Maria Santos",
            "contact_number": "09171234567",
            "street": "12 Mabini St",
            "city": "Quezon City",
            "province": "Metro Manila",
            "postal_code": "1100",
            "shipping_method_id": "lbc-standard",
            "payment_method_id": "gcash",
        },
    )
    assert "Still missing" not in details

    text = await call("storefront_place_order")

    assert "Total: ₱450" in text
    assert "https://m.me/12345?text=" in text
    assert server.session.cart.get_total_items() == 0
    configured.create_order_items.assert_awaited_once()


@pytest.mark.asyncio
async def test_place_order_with_empty_cart() -> None:
    text = await call("storefront_place_order")
    assert text.startswith("Cannot place order:")


@pytest.mark.asyncio
async def test_backend_errors_become_tool_errors(configured: MagicMock) -> None:
    configured.get_shipping_methods.side_effect = BackendError("backend unavailable")
    assert await call("storefront_list_shipping_methods") == "Error: backend unavailable"


@pytest.mark.asyncio
async def test_admin_tools_require_login(configured: MagicMock) -> None:
    assert await call("admin_get_orders") == server.NOT_AUTHENTICATED
    assert (await call("admin_login", {"password": "wrong"})).startswith("Login failed")

    assert await call("admin_login", {"password": "s3cret"}) == "Admin access granted"
    configured.get_orders.return_value = []
    assert await call("admin_get_orders") == "No orders found"

    text = await call("admin_update_order_status", {"order_id": "o-1", "status": "shipped"})
    assert text == "Order o-1 is now shipped"
    configured.update_order_status.assert_awaited_once_with("o-1", OrderStatus.SHIPPED)

    await call("admin_logout")
    assert await call("admin_get_order_details", {"order_id": "o-1"}) == server.NOT_AUTHENTICATED


@pytest.mark.asyncio
async def test_admin_order_details(configured: MagicMock) -> None:
    server.auth_manager.login("s3cret")
    configured.get_order_details.return_value = Order.model_validate(
        {
            "id": "o-1",
            "order_number": "20250601-0001",
            "customer_name": "Maria",
            "contact_number": "0917",
            "shipping_address": {"street": "1 St", "city": "QC", "province": "MM", "postal_code": "1100"},
            "shipping_method": "LBC Standard",
            "shipping_fee": Decimal("50"),
            "subtotal": Decimal("400"),
            "total_amount": Decimal("450"),
            "payment_method": "GCash",
        }
    )

    text = await call("admin_get_order_details", {"order_id": "o-1"})

    assert text.startswith("Order #20250601-0001")
    assert "Status: pending" in text
    assert "Address: 1 St, QC, MM 1100" in text


@pytest.mark.asyncio
async def test_unknown_tool() -> None:
    assert await call("storefront_teleport") == "Unknown tool: storefront_teleport"


@pytest.mark.asyncio
async def test_cart_resource() -> None:
    await call("storefront_add_to_cart", {"product_id": "shampoo"})
    content = await server.read_resource("storefront://cart")
    assert '"item_count": 1' in content
