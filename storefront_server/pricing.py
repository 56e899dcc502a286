"""Unit price calculation for catalog products."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Iterable, Optional

if TYPE_CHECKING:
    from .models import AddOn, Product, Variation

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def base_price(product: Product) -> Decimal:
    """Discounted price when it undercuts the regular price, else the regular price."""
    if product.discounted_price is not None and product.discounted_price < product.base_price:
        return product.discounted_price
    return product.base_price


def effective_price(
    product: Product,
    variation: Optional[Variation] = None,
    add_ons: Optional[Iterable[AddOn]] = None,
) -> Decimal:
    """
    Compute the per-unit price of a product with its selected options.

    Args:
        product: Catalog product
        variation: Selected variation, its price is added to the base
        add_ons: Selected add-ons, each counted ``quantity`` times (default 1)

    Returns:
        Unit price, never negative
    """
    price = base_price(product)
    if variation is not None:
        price += variation.price
    for add_on in add_ons or ():
        price += add_on.price * (add_on.quantity or 1)

    if price < ZERO:
        logger.warning(f"Negative unit price {price} computed for product {product.id}, clamping to 0")
        return ZERO
    return price


def line_savings(product: Product, quantity: int) -> Decimal:
    """Amount saved on a line thanks to the product's discounted price."""
    discounted = base_price(product)
    if discounted >= product.base_price:
        return ZERO
    return (product.base_price - discounted) * quantity


def format_price(amount: Decimal) -> str:
    """Render whole amounts without decimals (600) and others with cents (99.50)."""
    if amount == amount.to_integral_value():
        return f"{amount:.0f}"
    return f"{amount:.2f}"
