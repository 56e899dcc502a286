"""Tests for voucher evaluation."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from storefront_server.models import FixedDiscount, PercentageDiscount, Voucher
from storefront_server.vouchers import (
    EXPIRED,
    INVALID_CODE,
    MAX_USES_REACHED,
    compute_discount,
    evaluate_voucher,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_voucher(**overrides) -> Voucher:
    data = {
        "id": "v-1",
        "code": "SAVE10",
        "discount": {"type": "percentage", "value": Decimal("10")},
    }
    data.update(overrides)
    return Voucher(**data)


class TestDiscount:
    def test_percentage(self) -> None:
        voucher = make_voucher()
        assert compute_discount(voucher, Decimal("500")) == Decimal("50.0")

    def test_percentage_rounds_to_cents(self) -> None:
        voucher = make_voucher(discount={"type": "percentage", "value": Decimal("15")})
        assert compute_discount(voucher, Decimal("99.99")) == Decimal("15.00")

    def test_fixed_capped_at_subtotal(self) -> None:
        voucher = make_voucher(discount={"type": "fixed", "value": Decimal("100")})
        assert compute_discount(voucher, Decimal("50")) == Decimal("50")
        assert compute_discount(voucher, Decimal("300")) == Decimal("100")


class TestEvaluateVoucher:
    def test_unknown_code(self) -> None:
        result = evaluate_voucher(None, Decimal("100"), NOW)
        assert result.error == INVALID_CODE
        assert result.discount == 0

    def test_inactive_code_is_invalid(self) -> None:
        result = evaluate_voucher(make_voucher(is_active=False), Decimal("100"), NOW)
        assert result.error == INVALID_CODE

    def test_expired(self) -> None:
        voucher = make_voucher(expires_at=NOW - timedelta(days=1))
        assert evaluate_voucher(voucher, Decimal("100"), NOW).error == EXPIRED

    def test_naive_expiry_treated_as_utc(self) -> None:
        voucher = make_voucher(expires_at=datetime(2025, 6, 2))
        assert evaluate_voucher(voucher, Decimal("100"), NOW).ok

    def test_expiry_checked_before_uses(self) -> None:
        voucher = make_voucher(expires_at=NOW - timedelta(days=1), max_uses=1, used_count=1)
        assert evaluate_voucher(voucher, Decimal("100"), NOW).error == EXPIRED

    @pytest.mark.parametrize("is_active", [True, False])
    def test_max_uses_reached_always_rejected(self, is_active: bool) -> None:
        voucher = make_voucher(max_uses=1, used_count=1, is_active=is_active)
        result = evaluate_voucher(voucher, Decimal("100"), NOW)
        assert not result.ok
        assert result.discount == 0

    def test_max_uses_message(self) -> None:
        voucher = make_voucher(max_uses=5, used_count=5)
        assert evaluate_voucher(voucher, Decimal("100"), NOW).error == MAX_USES_REACHED

    def test_minimum_order_reports_shortfall(self) -> None:
        voucher = make_voucher(min_order_amount=Decimal("500"))

        result = evaluate_voucher(voucher, Decimal("400"), NOW)

        assert not result.ok
        assert "500" in result.error
        assert "Add 100 more" in result.error

    def test_accepted(self) -> None:
        result = evaluate_voucher(make_voucher(), Decimal("1000"), NOW)
        assert result.ok
        assert result.discount == Decimal("100")
        assert result.voucher.code == "SAVE10"

    def test_future_expiry_and_remaining_uses_accepted(self) -> None:
        voucher = make_voucher(expires_at=NOW + timedelta(days=3), max_uses=10, used_count=9)
        assert evaluate_voucher(voucher, Decimal("200"), NOW).discount == Decimal("20")


class TestVoucherModel:
    def test_code_canonicalized(self) -> None:
        assert make_voucher(code="  welcome5 ").code == "WELCOME5"

    def test_flat_backend_row(self) -> None:
        voucher = Voucher.model_validate(
            {
                "id": "v-2",
                "code": "flat100",
                "discount_type": "fixed",
                "discount_value": 100,
                "min_order_amount": 300,
                "max_uses": None,
                "used_count": 0,
                "is_active": True,
                "expires_at": "2030-01-01T00:00:00+00:00",
            }
        )
        assert isinstance(voucher.discount, FixedDiscount)
        assert voucher.discount.value == Decimal("100")
        assert voucher.min_order_amount == Decimal("300")
        assert voucher.expires_at.year == 2030

    def test_nested_discount(self) -> None:
        assert isinstance(make_voucher().discount, PercentageDiscount)
