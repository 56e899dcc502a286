"""In-memory shopping cart with stock ceilings."""

import logging
import uuid
from decimal import Decimal
from typing import Iterable, Optional

from pydantic import BaseModel

from .models import AddOn, Cart, CartItem, Product, Variation
from .pricing import line_savings

logger = logging.getLogger(__name__)


class CartResult(BaseModel):
    """Outcome of a cart mutation. Truthy when the cart was changed."""

    success: bool
    message: str
    item: Optional[CartItem] = None
    available: Optional[int] = None
    can_add: Optional[int] = None

    def __bool__(self) -> bool:
        return self.success


def resolve_stock(product: Product, variation: Optional[Variation] = None) -> int:
    """Stock ceiling: variation stock, then product stock, then zero."""
    if variation is not None and variation.stock is not None:
        return variation.stock
    if product.stock is not None:
        return product.stock
    return 0


def normalize_add_ons(add_ons: Optional[Iterable[AddOn]]) -> list[AddOn]:
    """
    Group add-ons by id into a multiset.

    Every occurrence counts ``quantity`` (default 1) towards the grouped
    quantity, so ``[sauce, sauce]`` and ``[sauce x2]`` normalize the same way.
    """
    grouped: dict[str, AddOn] = {}
    for add_on in add_ons or ():
        count = add_on.quantity or 1
        existing = grouped.get(add_on.id)
        if existing is not None:
            existing.quantity = (existing.quantity or 1) + count
        else:
            grouped[add_on.id] = add_on.model_copy(update={"quantity": count})
    return list(grouped.values())


def _add_on_key(add_ons: Iterable[AddOn]) -> frozenset[tuple[str, int]]:
    return frozenset((add_on.id, add_on.quantity or 1) for add_on in add_ons)


class CartStore:
    """
    Ordered collection of cart line items.

    Lines are merged by identity: product id, variation id (or none) and the
    add-on multiset. Stock checks use the product snapshot held by the line,
    they are not re-validated against the backend.
    """

    def __init__(self) -> None:
        self._items: list[CartItem] = []

    @property
    def items(self) -> list[CartItem]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def get_item(self, line_id: str) -> Optional[CartItem]:
        for item in self._items:
            if item.id == line_id:
                return item
        return None

    def _find_line(
        self, product: Product, variation: Optional[Variation], add_ons: list[AddOn]
    ) -> Optional[CartItem]:
        variation_id = variation.id if variation is not None else None
        key = _add_on_key(add_ons)
        for item in self._items:
            if item.product.id != product.id:
                continue
            item_variation_id = item.selected_variation.id if item.selected_variation is not None else None
            if item_variation_id != variation_id:
                continue
            if _add_on_key(item.selected_add_ons) == key:
                return item
        return None

    def add_to_cart(
        self,
        product: Product,
        quantity: int = 1,
        variation: Optional[Variation] = None,
        add_ons: Optional[Iterable[AddOn]] = None,
    ) -> CartResult:
        """
        Add a product to the cart, merging into an identical line if present.

        Args:
            product: Product snapshot
            quantity: Quantity to add
            variation: Selected variation
            add_ons: Selected add-ons, duplicates are grouped

        Returns:
            CartResult; the cart is unchanged when ``success`` is False
        """
        logger.info(f"=== ADD TO CART: product_id={product.id}, quantity={quantity} ===")

        if quantity < 1:
            return CartResult(success=False, message="Quantity must be at least 1")

        available = resolve_stock(product, variation)
        if available <= 0:
            logger.info(f"ADD TO CART REJECTED: {product.name} is out of stock")
            return CartResult(success=False, message="This item is out of stock!", available=0, can_add=0)

        grouped = normalize_add_ons(add_ons)
        existing = self._find_line(product, variation, grouped)

        if existing is not None:
            new_quantity = existing.quantity + quantity
            if new_quantity > available:
                can_add = max(available - existing.quantity, 0)
                logger.info(
                    f"ADD TO CART REJECTED: {new_quantity} exceeds stock {available} for {product.name}"
                )
                return CartResult(
                    success=False,
                    message=(
                        f"Only {available} items available in stock! "
                        f"You already have {existing.quantity} in your cart."
                    ),
                    item=existing,
                    available=available,
                    can_add=can_add,
                )
            # Keep the line on the catalog snapshot its stock was checked against
            existing.product = product
            existing.selected_variation = variation
            existing.quantity = new_quantity
            return CartResult(
                success=True,
                message=f"Updated {product.name} to quantity {new_quantity}",
                item=existing,
                available=available,
                can_add=available - new_quantity,
            )

        if quantity > available:
            logger.info(f"ADD TO CART REJECTED: {quantity} exceeds stock {available} for {product.name}")
            return CartResult(
                success=False,
                message=f"Only {available} items available in stock!",
                available=available,
                can_add=available,
            )

        item = CartItem(
            id=uuid.uuid4().hex,
            product=product,
            quantity=quantity,
            selected_variation=variation,
            selected_add_ons=grouped,
        )
        self._items.append(item)
        return CartResult(
            success=True,
            message=f"Added {product.name} (quantity: {quantity}) to cart",
            item=item,
            available=available,
            can_add=available - quantity,
        )

    def update_quantity(self, line_id: str, quantity: int) -> CartResult:
        """Set a line's quantity; zero or less removes the line."""
        item = self.get_item(line_id)
        if item is None:
            return CartResult(success=False, message=f"Item {line_id} is not in the cart")

        if quantity <= 0:
            self.remove_from_cart(line_id)
            return CartResult(success=True, message=f"Removed {item.product.name} from cart")

        available = item.available_stock
        if quantity > available:
            logger.info(f"UPDATE CART REJECTED: {quantity} exceeds stock {available} for {item.product.name}")
            return CartResult(
                success=False,
                message=f"Only {available} items available in stock!",
                item=item,
                available=available,
                can_add=max(available - item.quantity, 0),
            )

        logger.debug(f"Updating quantity of {item.product.name}: {item.quantity} -> {quantity}")
        item.quantity = quantity
        return CartResult(
            success=True,
            message=f"Updated {item.product.name} to quantity {quantity}",
            item=item,
            available=available,
            can_add=available - quantity,
        )

    def remove_from_cart(self, line_id: str) -> bool:
        """Delete a line. Returns False when no such line exists."""
        before = len(self._items)
        self._items = [item for item in self._items if item.id != line_id]
        return len(self._items) < before

    def clear_cart(self) -> None:
        self._items = []

    def get_total_price(self) -> Decimal:
        return sum((item.total_price for item in self._items), Decimal("0"))

    def get_total_items(self) -> int:
        return sum(item.quantity for item in self._items)

    def get_total_savings(self) -> Decimal:
        return sum(
            (line_savings(item.product, item.quantity) for item in self._items),
            Decimal("0"),
        )

    def snapshot(self) -> Cart:
        return Cart(
            items=self.items,
            total=self.get_total_price(),
            item_count=self.get_total_items(),
            savings=self.get_total_savings(),
        )
