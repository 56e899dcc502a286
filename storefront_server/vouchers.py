"""Voucher eligibility and discount computation."""

import logging
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from pydantic import BaseModel

from .models import FixedDiscount, PercentageDiscount, Voucher
from .pricing import format_price

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")

INVALID_CODE = "Invalid voucher code"
EXPIRED = "This voucher has expired"
MAX_USES_REACHED = "This voucher has reached its maximum number of uses"
NOT_ACTIVE = "This voucher is not active"


class VoucherResult(BaseModel):
    """Outcome of applying a voucher to a subtotal."""

    discount: Decimal = Decimal("0")
    error: Optional[str] = None
    voucher: Optional[Voucher] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def compute_discount(voucher: Voucher, subtotal: Decimal) -> Decimal:
    """Discount granted by a voucher; never more than the subtotal."""
    discount = voucher.discount
    if isinstance(discount, PercentageDiscount):
        amount = (subtotal * discount.value / 100).quantize(CENTS, rounding=ROUND_HALF_UP)
        return min(amount, subtotal)
    if isinstance(discount, FixedDiscount):
        return min(discount.value, subtotal)
    raise TypeError(f"Unknown discount type: {discount!r}")


def evaluate_voucher(
    voucher: Optional[Voucher], subtotal: Decimal, now: Optional[datetime] = None
) -> VoucherResult:
    """
    Check a voucher against a subtotal.

    Checks run in a fixed order and the first failure wins: unknown or
    inactive code, expiry, redemption ceiling, active flag, minimum order.

    Args:
        voucher: Voucher fetched by code, or None when the code is unknown
        subtotal: Cart subtotal before shipping
        now: Reference time for expiry (default: current UTC time)

    Returns:
        VoucherResult with either a discount or an error message
    """
    if voucher is None or not voucher.is_active:
        return VoucherResult(error=INVALID_CODE)

    if now is None:
        now = datetime.now(timezone.utc)
    if voucher.expires_at is not None:
        expires_at = voucher.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if expires_at < now:
            return VoucherResult(error=EXPIRED, voucher=voucher)

    if voucher.max_uses is not None and voucher.used_count >= voucher.max_uses:
        return VoucherResult(error=MAX_USES_REACHED, voucher=voucher)

    if not voucher.is_active:
        return VoucherResult(error=NOT_ACTIVE, voucher=voucher)

    if subtotal < voucher.min_order_amount:
        shortfall = voucher.min_order_amount - subtotal
        return VoucherResult(
            error=(
                f"Minimum order amount of {format_price(voucher.min_order_amount)} not met. "
                f"Add {format_price(shortfall)} more to use this voucher."
            ),
            voucher=voucher,
        )

    discount = compute_discount(voucher, subtotal)
    logger.info(f"Voucher {voucher.code} accepted: discount {discount} on subtotal {subtotal}")
    return VoucherResult(discount=discount, voucher=voucher)
