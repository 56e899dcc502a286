"""Checkout session: cart totals, shipping, vouchers and order placement."""

import logging
from decimal import Decimal
from typing import Optional

from .backend_client import StorefrontClient
from .cart import CartStore
from .exceptions import BackendError, CheckoutError
from .handoff import OrderHandoff, build_messenger_url, build_order_message, generate_order_number
from .models import CustomerDetails, Order, OrderItem, PaymentMethod, ShippingMethod, Voucher
from .vouchers import VoucherResult, compute_discount, evaluate_voucher

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def compute_order_total(subtotal: Decimal, shipping_fee: Decimal, voucher_discount: Decimal) -> Decimal:
    """Subtotal plus shipping minus voucher discount, never below zero."""
    return max(subtotal + shipping_fee - voucher_discount, ZERO)


async def apply_voucher(client: StorefrontClient, code: str, subtotal: Decimal) -> VoucherResult:
    """
    Look up a voucher by code and check it against a subtotal.

    Backend failures are reported through ``VoucherResult.error``.
    """
    code = code.strip()
    if not code:
        return VoucherResult(error="Please enter a voucher code")
    try:
        voucher = await client.get_voucher(code)
    except BackendError as e:
        logger.error(f"Voucher lookup failed for {code.upper()}: {e}")
        return VoucherResult(error="Could not validate voucher. Please try again.")
    return evaluate_voucher(voucher, subtotal)


class CheckoutSession:
    """
    One shopper's checkout state.

    Owns the cart, the selected shipping and payment methods, the customer
    details and at most one applied voucher.
    """

    def __init__(
        self,
        client: StorefrontClient,
        store_name: str = "H&HBC SHOPPE",
        messenger_page_id: str = "",
        currency: str = "₱",
        cart: Optional[CartStore] = None,
    ) -> None:
        self.client = client
        self.store_name = store_name
        self.messenger_page_id = messenger_page_id
        self.currency = currency
        self.cart = cart if cart is not None else CartStore()
        self.customer = CustomerDetails()
        self.shipping_method: Optional[ShippingMethod] = None
        self.payment_method: Optional[PaymentMethod] = None
        self.notes: Optional[str] = None
        self.voucher: Optional[Voucher] = None

    @property
    def subtotal(self) -> Decimal:
        return self.cart.get_total_price()

    @property
    def shipping_fee(self) -> Decimal:
        return self.shipping_method.price if self.shipping_method is not None else ZERO

    @property
    def voucher_discount(self) -> Decimal:
        """Discount of the applied voucher against the current subtotal."""
        if self.voucher is None:
            return ZERO
        subtotal = self.subtotal
        if subtotal < self.voucher.min_order_amount:
            return ZERO
        return compute_discount(self.voucher, subtotal)

    @property
    def total(self) -> Decimal:
        return compute_order_total(self.subtotal, self.shipping_fee, self.voucher_discount)

    async def apply_voucher(self, code: str) -> VoucherResult:
        if self.voucher is not None:
            return VoucherResult(
                error=f"Voucher {self.voucher.code} is already applied. Remove it first.",
                voucher=self.voucher,
            )
        result = await apply_voucher(self.client, code, self.subtotal)
        if result.ok:
            self.voucher = result.voucher
        return result

    def remove_voucher(self) -> None:
        self.voucher = None

    def select_shipping_method(self, method: ShippingMethod) -> None:
        self.shipping_method = method

    def select_payment_method(self, method: PaymentMethod) -> None:
        self.payment_method = method

    def set_customer_details(self, details: CustomerDetails) -> None:
        self.customer = details

    def set_notes(self, notes: Optional[str]) -> None:
        self.notes = notes.strip() if notes else None

    def missing_details(self) -> list[str]:
        """Names of required checkout fields that are still empty."""
        address = self.customer.shipping_address
        required = {
            "customer_name": self.customer.customer_name,
            "contact_number": self.customer.contact_number,
            "street": address.street,
            "city": address.city,
            "province": address.province,
            "postal_code": address.postal_code,
        }
        return [name for name, value in required.items() if not value.strip()]

    def build_order(self) -> Order:
        """Assemble the order record from the current session state."""
        if not len(self.cart):
            raise CheckoutError("empty_cart", "Your cart is empty")
        missing = self.missing_details()
        if missing:
            raise CheckoutError("missing_details", f"Missing checkout details: {', '.join(missing)}")
        if self.shipping_method is None:
            raise CheckoutError("no_shipping_method", "Please select a shipping method")
        if self.payment_method is None:
            raise CheckoutError("no_payment_method", "Please select a payment method")

        subtotal = self.subtotal
        if self.voucher is not None:
            check = evaluate_voucher(self.voucher, subtotal)
            if not check.ok:
                raise CheckoutError("voucher_rejected", check.error or "Voucher no longer applies")

        items = [
            OrderItem(
                product_id=item.product.id,
                product_name=item.product.name,
                product_description=item.product.description or None,
                base_price=item.product.base_price,
                discounted_price=item.product.discounted_price,
                quantity=item.quantity,
                variation_id=item.selected_variation.id if item.selected_variation else None,
                variation_name=item.selected_variation.name if item.selected_variation else None,
                variation_price=item.selected_variation.price if item.selected_variation else ZERO,
                add_ons=item.selected_add_ons,
                item_total=item.total_price,
            )
            for item in self.cart.items
        ]
        discount = self.voucher_discount
        return Order(
            order_number=generate_order_number(),
            customer_name=self.customer.customer_name.strip(),
            contact_number=self.customer.contact_number.strip(),
            email=self.customer.email,
            shipping_address=self.customer.shipping_address,
            shipping_method=self.shipping_method.name,
            shipping_fee=self.shipping_fee,
            subtotal=subtotal,
            voucher_discount=discount,
            total_amount=compute_order_total(subtotal, self.shipping_fee, discount),
            payment_method=self.payment_method.name,
            notes=self.notes,
            voucher_id=self.voucher.id if self.voucher else None,
            voucher_code=self.voucher.code if self.voucher else None,
            items=items,
        )

    async def finalize_order(self) -> OrderHandoff:
        """
        Persist the order and produce the Messenger hand-off.

        The order row is written first, then its items; if the items cannot
        be written the order row is deleted again. The cart and voucher are
        cleared only once both writes succeeded.

        Raises:
            CheckoutError: If the session is not ready for checkout
            BackendError: If the order could not be persisted
        """
        order = self.build_order()
        logger.info(f"=== PLACE ORDER: {order.order_number}, total={order.total_amount} ===")

        created = await self.client.create_order(order)
        try:
            await self.client.create_order_items(created.id, order.items)
        except BackendError as e:
            logger.error(f"Order items for {order.order_number} failed, removing order {created.id}: {e}")
            try:
                await self.client.delete_order(created.id)
            except BackendError as cleanup_error:
                logger.error(f"Could not remove orphaned order {created.id}: {cleanup_error}")
            raise

        if self.voucher is not None:
            try:
                await self.client.redeem_voucher(self.voucher)
            except BackendError as e:
                # The order stands; the redemption count is off by one
                logger.error(f"Could not record use of voucher {self.voucher.code}: {e}")

        message = build_order_message(created, self.store_name, self.currency)
        handoff = OrderHandoff(
            order=created,
            message=message,
            url=build_messenger_url(self.messenger_page_id, message),
        )

        self.cart.clear_cart()
        self.voucher = None
        self.notes = None
        logger.info(f"Order {created.order_number} placed")
        return handoff
