"""MCP Server for the storefront."""

import asyncio
import json
import logging
from typing import Any, Optional

from mcp.server import Server
from mcp.types import Resource, TextContent, Tool
from pydantic import AnyUrl

from .auth import AdminAuthManager
from .backend_client import StorefrontClient
from .catalog import ProductCatalog, build_category_tree, filter_by_category, search_products
from .checkout import CheckoutSession
from .config import StorefrontSettings, load_settings
from .exceptions import CheckoutError, NotAuthenticatedError
from .models import Category, CustomerDetails, Order, OrderStatus, Product, ShippingAddress
from .pricing import format_price

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("storefront-mcp-server")

# Initialize server
app = Server("storefront-mcp-server")

# Global state
settings: StorefrontSettings
auth_manager: AdminAuthManager
storefront_client: StorefrontClient
session: CheckoutSession
product_catalog: ProductCatalog

NOT_AUTHENTICATED = "Error: Admin access required. Please login with admin_login first."


def setup(config: StorefrontSettings, client: Optional[StorefrontClient] = None) -> None:
    """Create the client, admin gate and checkout session from settings."""
    global settings, auth_manager, storefront_client, session, product_catalog

    settings = config
    storefront_client = client or StorefrontClient(config.backend_url, config.backend_key)
    auth_manager = AdminAuthManager(config.admin_password, config.session_file)
    session = CheckoutSession(
        storefront_client,
        store_name=config.store_name,
        messenger_page_id=config.messenger_page_id,
        currency=config.currency,
    )
    product_catalog = ProductCatalog(storefront_client)


def require_admin() -> None:
    if not auth_manager.is_authenticated():
        raise NotAuthenticatedError("Admin access required")


def money(amount: Any) -> str:
    return f"{settings.currency}{format_price(amount)}"


def format_product(index: int, product: Product) -> list[str]:
    lines = [f"\n{index}. {product.name}", f"   ID: {product.id}"]
    if product.brand:
        lines.append(f"   Brand: {product.brand}")
    lines.append(f"   Category: {product.category}")
    if product.discounted_price is not None and product.discounted_price < product.base_price:
        lines.append(f"   Price: {money(product.discounted_price)} (was {money(product.base_price)})")
    else:
        lines.append(f"   Price: {money(product.base_price)}")
    lines.append(f"   Stock: {product.stock if product.stock is not None else 'unknown'}")
    for variation in product.variations:
        stock = f", stock {variation.stock}" if variation.stock is not None else ""
        lines.append(f"   - Variation {variation.id}: {variation.name} (+{money(variation.price)}{stock})")
    for add_on in product.add_ons:
        lines.append(f"   - Add-on {add_on.id}: {add_on.name} (+{money(add_on.price)})")
    return lines


def format_cart() -> str:
    cart = session.cart.snapshot()
    if not cart.items:
        return "Your cart is empty"

    lines = [f"Shopping Cart ({cart.item_count} items):\n"]
    for i, item in enumerate(cart.items, 1):
        name = item.product.name
        if item.selected_variation:
            name += f" ({item.selected_variation.name})"
        lines.append(f"\n{i}. {name}")
        lines.append(f"   Line ID: {item.id}")
        if item.selected_add_ons:
            add_ons = ", ".join(f"{a.name} x{a.quantity or 1}" for a in item.selected_add_ons)
            lines.append(f"   Add-ons: {add_ons}")
        lines.append(f"   Unit price: {money(item.unit_price)}")
        lines.append(f"   Quantity: {item.quantity}")
        lines.append(f"   Subtotal: {money(item.total_price)}")

    lines.append(f"\n{'='*50}")
    lines.append(f"Subtotal: {money(session.subtotal)}")
    if cart.savings > 0:
        lines.append(f"You save: {money(cart.savings)}")
    if session.shipping_method:
        lines.append(f"Shipping ({session.shipping_method.name}): {money(session.shipping_fee)}")
    if session.voucher:
        lines.append(f"Voucher {session.voucher.code}: -{money(session.voucher_discount)}")
    lines.append(f"Total: {money(session.total)}")
    return "\n".join(lines)


def format_order(order: Order) -> list[str]:
    lines = [f"Order #{order.order_number}", f"   ID: {order.id}", f"   Status: {order.status.value}"]
    if order.created_at:
        lines.append(f"   Date: {order.created_at.strftime('%Y-%m-%d %H:%M')}")
    lines.append(f"   Customer: {order.customer_name} ({order.contact_number})")
    lines.append(f"   Total: {money(order.total_amount)}")
    if order.voucher_code:
        lines.append(f"   Voucher: {order.voucher_code} (-{money(order.voucher_discount)})")
    if order.items:
        lines.append(f"   Items ({len(order.items)}):")
        for item in order.items:
            lines.append(f"     - {item.product_name} x{item.quantity} ({money(item.item_total)})")
    return lines


def format_categories(categories: list[Category]) -> list[str]:
    lines = []
    for category in categories:
        lines.append(f"{'  ' * category.level}- {category.name} (ID: {category.id})")
        lines.extend(format_categories(category.subcategories))
    return lines


@app.list_resources()
async def list_resources() -> list[Resource]:
    """List available resources."""
    return [
        Resource(
            uri=AnyUrl("storefront://cart"),
            name="Shopping Cart",
            mimeType="application/json",
            description="Current shopping cart contents",
        ),
        Resource(
            uri=AnyUrl("storefront://catalog"),
            name="Catalog",
            mimeType="application/json",
            description="Available products",
        ),
    ]


@app.read_resource()
async def read_resource(uri: AnyUrl) -> str:
    """Read a resource by URI."""
    uri_str = str(uri)

    if uri_str == "storefront://cart":
        return session.cart.snapshot().model_dump_json(indent=2)

    elif uri_str == "storefront://catalog":
        products = await product_catalog.get_products()
        return json.dumps([p.model_dump(mode="json") for p in products], indent=2)

    raise ValueError(f"Unknown resource: {uri}")


@app.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools."""
    return [
        Tool(
            name="storefront_search_products",
            description="Search the catalog by name, description or brand, optionally within a category",
            inputSchema={
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "Search term (optional)"},
                    "category": {"type": "string", "description": "Category ID (optional)"},
                },
            },
        ),
        Tool(
            name="storefront_list_categories",
            description="List product categories and subcategories",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="storefront_get_product",
            description="Get a product with its variations, add-ons and stock",
            inputSchema={
                "type": "object",
                "properties": {
                    "product_id": {"type": "string", "description": "Product ID"},
                },
                "required": ["product_id"],
            },
        ),
        Tool(
            name="storefront_add_to_cart",
            description="Add a product to the shopping cart. Identical selections are merged into one line.",
            inputSchema={
                "type": "object",
                "properties": {
                    "product_id": {"type": "string", "description": "Product ID to add to cart"},
                    "quantity": {
                        "type": "integer",
                        "description": "Quantity to add (default: 1)",
                        "default": 1,
                    },
                    "variation_id": {"type": "string", "description": "Variation ID (optional)"},
                    "add_on_ids": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Add-on IDs; repeat an ID to add it several times (optional)",
                    },
                },
                "required": ["product_id"],
            },
        ),
        Tool(
            name="storefront_update_cart_quantity",
            description="Set the quantity of a cart line. A quantity of 0 removes the line.",
            inputSchema={
                "type": "object",
                "properties": {
                    "line_id": {"type": "string", "description": "Cart line ID"},
                    "quantity": {"type": "integer", "description": "New quantity to set"},
                },
                "required": ["line_id", "quantity"],
            },
        ),
        Tool(
            name="storefront_remove_from_cart",
            description="Remove a line from the shopping cart",
            inputSchema={
                "type": "object",
                "properties": {
                    "line_id": {"type": "string", "description": "Cart line ID to remove"},
                },
                "required": ["line_id"],
            },
        ),
        Tool(
            name="storefront_clear_cart",
            description="Remove everything from the shopping cart",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="storefront_get_cart",
            description="Get current shopping cart contents with totals, shipping and voucher discount",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="storefront_list_shipping_methods",
            description="List available shipping methods and their fees",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="storefront_list_payment_methods",
            description="List available payment methods and account details",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="storefront_apply_voucher",
            description="Apply a voucher code to the current cart",
            inputSchema={
                "type": "object",
                "properties": {
                    "code": {"type": "string", "description": "Voucher code (case-insensitive)"},
                },
                "required": ["code"],
            },
        ),
        Tool(
            name="storefront_remove_voucher",
            description="Remove the applied voucher",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="storefront_set_checkout_details",
            description="Set customer, shipping address, shipping method, payment method and notes for checkout",
            inputSchema={
                "type": "object",
                "properties": {
                    "customer_name": {"type": "string"},
                    "contact_number": {"type": "string"},
                    "email": {"type": "string"},
                    "street": {"type": "string"},
                    "city": {"type": "string"},
                    "province": {"type": "string"},
                    "postal_code": {"type": "string"},
                    "country": {"type": "string", "default": "Philippines"},
                    "shipping_method_id": {"type": "string"},
                    "payment_method_id": {"type": "string"},
                    "notes": {"type": "string"},
                },
            },
        ),
        Tool(
            name="storefront_place_order",
            description="Place the order and get the Messenger link to send it to the shop",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="admin_login",
            description="Unlock admin tools with the admin password",
            inputSchema={
                "type": "object",
                "properties": {
                    "password": {"type": "string", "description": "Admin password"},
                },
                "required": ["password"],
            },
        ),
        Tool(
            name="admin_logout",
            description="Lock admin tools",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="admin_get_orders",
            description="List recent orders (admin only)",
            inputSchema={
                "type": "object",
                "properties": {
                    "include_items": {
                        "type": "boolean",
                        "description": "Include order items (default: false)",
                        "default": False,
                    },
                },
            },
        ),
        Tool(
            name="admin_get_order_details",
            description="Get an order with all its items (admin only)",
            inputSchema={
                "type": "object",
                "properties": {
                    "order_id": {"type": "string", "description": "Order ID"},
                },
                "required": ["order_id"],
            },
        ),
        Tool(
            name="admin_update_order_status",
            description="Change an order's status (admin only)",
            inputSchema={
                "type": "object",
                "properties": {
                    "order_id": {"type": "string", "description": "Order ID"},
                    "status": {
                        "type": "string",
                        "enum": [status.value for status in OrderStatus],
                    },
                },
                "required": ["order_id", "status"],
            },
        ),
    ]


@app.call_tool()
async def call_tool(name: str, arguments: Any) -> list[TextContent]:
    """Handle tool calls."""
    arguments = arguments or {}
    try:
        if name == "storefront_search_products":
            query = arguments.get("query") or ""
            category = arguments.get("category")

            products = await product_catalog.get_products()
            if category:
                products = filter_by_category(products, category)
            products = search_products(products, query)

            if not products:
                return [TextContent(type="text", text=f"No products found for: {query or category or 'catalog'}")]

            result_lines = [f"Found {len(products)} product(s):\n"]
            for i, product in enumerate(products, 1):
                result_lines.extend(format_product(i, product))
            return [TextContent(type="text", text="\n".join(result_lines))]

        elif name == "storefront_list_categories":
            categories = build_category_tree(await storefront_client.get_categories())
            if not categories:
                return [TextContent(type="text", text="No categories found")]
            return [TextContent(type="text", text="\n".join(["Categories:"] + format_categories(categories)))]

        elif name == "storefront_get_product":
            product = await product_catalog.find(arguments["product_id"])
            if product is None:
                return [TextContent(type="text", text=f"Product {arguments['product_id']} not found")]
            lines = format_product(1, product)
            if product.description:
                lines.append(f"   Description: {product.description}")
            return [TextContent(type="text", text="\n".join(lines).lstrip())]

        elif name == "storefront_add_to_cart":
            product_id = arguments["product_id"]
            quantity = arguments.get("quantity", 1)

            product = await product_catalog.find(product_id)
            if product is None:
                return [TextContent(type="text", text=f"Product {product_id} not found")]

            variation = None
            if arguments.get("variation_id"):
                variation = product.get_variation(arguments["variation_id"])
                if variation is None:
                    return [
                        TextContent(
                            type="text",
                            text=f"Variation {arguments['variation_id']} not found for {product.name}",
                        )
                    ]

            add_ons = []
            for add_on_id in arguments.get("add_on_ids") or []:
                add_on = product.get_add_on(add_on_id)
                if add_on is None:
                    return [TextContent(type="text", text=f"Add-on {add_on_id} not found for {product.name}")]
                add_ons.append(add_on)

            result = session.cart.add_to_cart(product, quantity, variation, add_ons)
            if result:
                text = f"{result.message}. Line ID: {result.item.id}. Cart total: {money(session.subtotal)}"
            else:
                text = f"Could not add {product.name}: {result.message}"
            return [TextContent(type="text", text=text)]

        elif name == "storefront_update_cart_quantity":
            result = session.cart.update_quantity(arguments["line_id"], arguments["quantity"])
            prefix = "" if result else "Failed: "
            return [TextContent(type="text", text=f"{prefix}{result.message}")]

        elif name == "storefront_remove_from_cart":
            line_id = arguments["line_id"]
            if session.cart.remove_from_cart(line_id):
                return [TextContent(type="text", text=f"Successfully removed line {line_id} from cart")]
            return [TextContent(type="text", text=f"Line {line_id} is not in the cart")]

        elif name == "storefront_clear_cart":
            session.cart.clear_cart()
            return [TextContent(type="text", text="Cart cleared")]

        elif name == "storefront_get_cart":
            return [TextContent(type="text", text=format_cart())]

        elif name == "storefront_list_shipping_methods":
            methods = await storefront_client.get_shipping_methods()
            if not methods:
                return [TextContent(type="text", text="No shipping methods available")]
            result_lines = ["Shipping methods:"]
            for method in methods:
                days = f" ({method.estimated_days})" if method.estimated_days else ""
                result_lines.append(f"- {method.name}{days}: {money(method.price)} [ID: {method.id}]")
            return [TextContent(type="text", text="\n".join(result_lines))]

        elif name == "storefront_list_payment_methods":
            methods = await storefront_client.get_payment_methods()
            if not methods:
                return [TextContent(type="text", text="No payment methods available")]
            result_lines = ["Payment methods:"]
            for method in methods:
                result_lines.append(f"- {method.name} [ID: {method.id}]")
                if method.account_number:
                    result_lines.append(f"   Account: {method.account_name} {method.account_number}")
            return [TextContent(type="text", text="\n".join(result_lines))]

        elif name == "storefront_apply_voucher":
            result = await session.apply_voucher(arguments["code"])
            if not result.ok:
                return [TextContent(type="text", text=f"Voucher not applied: {result.error}")]
            return [
                TextContent(
                    type="text",
                    text=(
                        f"Voucher {result.voucher.code} applied: -{money(result.discount)}. "
                        f"New total: {money(session.total)}"
                    ),
                )
            ]

        elif name == "storefront_remove_voucher":
            session.remove_voucher()
            return [TextContent(type="text", text="Voucher removed")]

        elif name == "storefront_set_checkout_details":
            current = session.customer
            address = current.shipping_address
            session.set_customer_details(
                CustomerDetails(
                    customer_name=arguments.get("customer_name", current.customer_name),
                    contact_number=arguments.get("contact_number", current.contact_number),
                    email=arguments.get("email", current.email),
                    shipping_address=ShippingAddress(
                        street=arguments.get("street", address.street),
                        city=arguments.get("city", address.city),
                        province=arguments.get("province", address.province),
                        postal_code=arguments.get("postal_code", address.postal_code),
                        country=arguments.get("country", address.country),
                    ),
                )
            )
            if "notes" in arguments:
                session.set_notes(arguments["notes"])

            if arguments.get("shipping_method_id"):
                methods = await storefront_client.get_shipping_methods()
                method = next((m for m in methods if m.id == arguments["shipping_method_id"]), None)
                if method is None:
                    return [
                        TextContent(type="text", text=f"Shipping method {arguments['shipping_method_id']} not found")
                    ]
                session.select_shipping_method(method)

            if arguments.get("payment_method_id"):
                methods = await storefront_client.get_payment_methods()
                payment = next((m for m in methods if m.id == arguments["payment_method_id"]), None)
                if payment is None:
                    return [
                        TextContent(type="text", text=f"Payment method {arguments['payment_method_id']} not found")
                    ]
                session.select_payment_method(payment)

            missing = session.missing_details()
            text = "Checkout details saved."
            if missing:
                text += f" Still missing: {', '.join(missing)}"
            return [TextContent(type="text", text=text)]

        elif name == "storefront_place_order":
            try:
                handoff = await session.finalize_order()
            except CheckoutError as e:
                return [TextContent(type="text", text=f"Cannot place order: {e.message}")]

            # Stock changed with this order
            product_catalog.invalidate()
            return [
                TextContent(
                    type="text",
                    text=(
                        f"Order #{handoff.order.order_number} placed. Total: {money(handoff.order.total_amount)}\n\n"
                        f"Send it to the shop via Messenger:\n{handoff.url}\n\n{handoff.message}"
                    ),
                )
            ]

        elif name == "admin_login":
            if auth_manager.login(arguments["password"]):
                return [TextContent(type="text", text="Admin access granted")]
            return [TextContent(type="text", text="Login failed. Incorrect password.")]

        elif name == "admin_logout":
            auth_manager.logout()
            return [TextContent(type="text", text="Successfully logged out")]

        elif name == "admin_get_orders":
            require_admin()

            orders = await storefront_client.get_orders(include_items=arguments.get("include_items", False))
            if not orders:
                return [TextContent(type="text", text="No orders found")]

            result_lines = [f"Found {len(orders)} order(s):"]
            for i, order in enumerate(orders, 1):
                lines = format_order(order)
                result_lines.append(f"\n{i}. {lines[0]}")
                result_lines.extend(lines[1:])
            return [TextContent(type="text", text="\n".join(result_lines))]

        elif name == "admin_get_order_details":
            require_admin()

            order_id = arguments["order_id"]
            order = await storefront_client.get_order_details(order_id)
            if order is None:
                return [TextContent(type="text", text=f"Order {order_id} not found")]

            lines = format_order(order)
            address = order.shipping_address
            lines.append(f"   Shipping: {order.shipping_method} ({money(order.shipping_fee)})")
            lines.append(f"   Address: {address.street}, {address.city}, {address.province} {address.postal_code}")
            lines.append(f"   Payment: {order.payment_method}")
            if order.notes:
                lines.append(f"   Notes: {order.notes}")
            return [TextContent(type="text", text="\n".join(lines))]

        elif name == "admin_update_order_status":
            require_admin()

            status = OrderStatus(arguments["status"])
            await storefront_client.update_order_status(arguments["order_id"], status)
            return [TextContent(type="text", text=f"Order {arguments['order_id']} is now {status.value}")]

        else:
            return [TextContent(type="text", text=f"Unknown tool: {name}")]

    except NotAuthenticatedError:
        return [TextContent(type="text", text=NOT_AUTHENTICATED)]
    except Exception as e:
        logger.error(f"Error executing tool {name}: {e}", exc_info=True)
        return [
            TextContent(
                type="text",
                text=f"Error: {str(e)}",
            )
        ]


async def main() -> None:
    """Main entry point for the MCP server."""
    setup(load_settings())

    logger.info("Starting Storefront MCP Server...")

    # Import and run the server
    from mcp.server.stdio import stdio_server

    try:
        async with stdio_server() as (read_stream, write_stream):
            await app.run(
                read_stream,
                write_stream,
                app.create_initialization_options(),
            )
    finally:
        await storefront_client.close()


if __name__ == "__main__":
    asyncio.run(main())
