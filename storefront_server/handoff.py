"""Order hand-off to the Messenger chat channel."""

from datetime import datetime, timezone
from typing import Optional
from urllib.parse import quote

from pydantic import BaseModel

from .models import Order, OrderItem
from .pricing import format_price

MESSENGER_BASE_URL = "https://m.me"

# Characters JavaScript's encodeURIComponent leaves untouched
_URI_COMPONENT_SAFE = "-_.!~*'()"


class OrderHandoff(BaseModel):
    """A persisted order plus the chat message announcing it."""

    order: Order
    message: str
    url: str


def generate_order_number(now: Optional[datetime] = None) -> str:
    """Order number ``YYYYMMDD-NNNN``: UTC date and the last four digits of the epoch milliseconds."""
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    else:
        now = now.astimezone(timezone.utc)
    millis = int(now.timestamp()) * 1000 + now.microsecond // 1000
    return f"{now:%Y%m%d}-{str(millis)[-4:]}"


def format_item_line(item: OrderItem, currency: str) -> str:
    line = f"• {item.product_name}"
    if item.variation_name:
        line += f" ({item.variation_name})"
    if item.add_ons:
        names = [
            f"{add_on.name} x{add_on.quantity}" if add_on.quantity and add_on.quantity > 1 else add_on.name
            for add_on in item.add_ons
        ]
        line += f" + {', '.join(names)}"
    line += f" x{item.quantity} - {currency}{format_price(item.item_total)}"
    return line


def build_order_message(order: Order, store_name: str, currency: str = "₱") -> str:
    """
    Render the order as the text block sent to the shop's chat.

    Args:
        order: Order to announce
        store_name: Shop name used in the header and sign-off
        currency: Currency symbol prefixed to amounts

    Returns:
        UTF-8 text, one item per line
    """
    lines = [
        f"🛍️ {store_name} ORDER",
        "",
        f"🧾 Order #: {order.order_number}",
        f"👤 Customer: {order.customer_name}",
        f"📞 Contact: {order.contact_number}",
    ]
    if order.email:
        lines.append(f"📧 Email: {order.email}")
    lines.extend(
        [
            "",
            "🚚 SHIPPING ADDRESS:",
            order.shipping_address.format(),
            "",
            f"📦 Shipping Method: {order.shipping_method}",
            "",
            "📋 ORDER DETAILS:",
        ]
    )
    lines.extend(format_item_line(item, currency) for item in order.items)
    lines.extend(
        [
            "",
            f"💰 SUBTOTAL: {currency}{format_price(order.subtotal)}",
            f"🚚 SHIPPING FEE: {currency}{format_price(order.shipping_fee)}",
        ]
    )
    if order.voucher_code:
        lines.append(f"🎟️ VOUCHER ({order.voucher_code}): -{currency}{format_price(order.voucher_discount)}")
    lines.extend(
        [
            f"💰 TOTAL: {currency}{format_price(order.total_amount)}",
            "",
            f"💳 Payment: {order.payment_method}",
            "📸 Payment Screenshot: Please attach your payment receipt screenshot",
        ]
    )
    if order.notes:
        lines.extend(["", f"📝 Notes: {order.notes}"])
    lines.extend(["", f"Please confirm this order to proceed. Thank you for choosing {store_name}!"])
    return "\n".join(lines)


def build_messenger_url(page_id: str, message: str) -> str:
    """Deep link opening a Messenger conversation prefilled with ``message``."""
    return f"{MESSENGER_BASE_URL}/{page_id}?text={quote(message, safe=_URI_COMPONENT_SAFE)}"
