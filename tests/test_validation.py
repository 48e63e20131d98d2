"""Unit tests for payment amount validation."""

from decimal import Decimal

import pytest

from feeledger.core.exceptions import ExceedsDue, InvalidAmount
from feeledger.ledger.snapshot import FeeSnapshot
from feeledger.ledger.validation import check_ledger_delta, parse_amount, validate_payment_amount


@pytest.mark.parametrize(
    "value",
    [-50, "-50", 0, "0", "0.001", "abc", "", None, "NaN", "Infinity", True, "1e30", "-1e30", "10000000000", "9999999999.995"],
)
def test_invalid_amounts(value) -> None:
    with pytest.raises(InvalidAmount):
        parse_amount(value)


@pytest.mark.parametrize(
    "value, expected",
    [("4000", "4000.00"), (" 12.5 ", "12.50"), (99.999, "100.00"), (Decimal("0.005"), "0.01"), (7, "7.00")],
)
def test_amounts_are_normalized_to_cents(value, expected) -> None:
    assert parse_amount(value) == Decimal(expected)


def test_amount_equal_to_due_is_accepted() -> None:
    assert validate_payment_amount("6000", Decimal("10000"), Decimal("6000")) == Decimal("6000")


def test_amount_within_epsilon_is_accepted() -> None:
    assert validate_payment_amount("100.01", Decimal("100"), Decimal("100")) == Decimal("100.01")


def test_amount_one_cent_beyond_epsilon_is_rejected() -> None:
    with pytest.raises(ExceedsDue) as exc:
        validate_payment_amount("100.02", Decimal("100"), Decimal("100"))
    assert "100.02" in exc.value.message
    assert exc.value.status_code == 400


def test_fully_paid_ledger_rejects_further_payment() -> None:
    with pytest.raises(ExceedsDue):
        validate_payment_amount("1", Decimal("10000"), Decimal("0"))


def test_zero_total_fee_accepts_any_positive_amount() -> None:
    assert validate_payment_amount("500", Decimal("0"), Decimal("0")) == Decimal("500")


def test_zero_total_fee_still_rejects_non_positive() -> None:
    with pytest.raises(InvalidAmount):
        validate_payment_amount("-1", Decimal("0"), Decimal("0"))


def test_edit_delta_checks_only_the_increase() -> None:
    snap = FeeSnapshot(Decimal("5000"), Decimal("2000"), Decimal("3000"))
    check_ledger_delta(Decimal("-1500"), snap)
    check_ledger_delta(Decimal("0"), snap)
    check_ledger_delta(Decimal("3000.01"), snap)
    with pytest.raises(ExceedsDue):
        check_ledger_delta(Decimal("3000.02"), snap)


def test_edit_delta_on_waived_fee_is_not_checked() -> None:
    check_ledger_delta(Decimal("10000"), FeeSnapshot(Decimal("0"), Decimal("500"), Decimal("0")))


def test_largest_storable_amount_is_accepted() -> None:
    assert parse_amount("9999999999.99") == Decimal("9999999999.99")


def test_oversized_amount_on_waived_fee_is_rejected() -> None:
    with pytest.raises(InvalidAmount):
        validate_payment_amount("1e30", Decimal("0"), Decimal("0"))
