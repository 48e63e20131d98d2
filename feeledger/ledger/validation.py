"""Payment amount validation against the current due balance."""

import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from feeledger.core.exceptions import ExceedsDue, InvalidAmount

from .snapshot import ZERO, FeeSnapshot, to_finite_decimal

logger = logging.getLogger(__name__)

# Tolerance when comparing a payment against the due amount
EPSILON = Decimal("0.01")
CENT = Decimal("0.01")
# Numeric(12, 2) holds at most 10 digits before the point
MAX_AMOUNT = Decimal("1e10")


def parse_amount(value: Any) -> Decimal:
    """Normalize a proposed payment amount to a positive Decimal rounded to cents."""
    parsed = to_finite_decimal(value)
    if parsed is None:
        raise InvalidAmount(f"Payment amount {value!r} is not a number")
    try:
        amount = parsed.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise InvalidAmount(f"Payment amount {value!r} is out of range")
    if amount <= ZERO:
        raise InvalidAmount("Payment amount must be greater than zero")
    if amount >= MAX_AMOUNT:
        raise InvalidAmount(f"Payment amount must be less than {MAX_AMOUNT:,.0f}")
    return amount


def _check_within_due(amount: Decimal, total_fee: Decimal, fee_due: Decimal) -> None:
    if total_fee == ZERO:
        # Fee-waived or special arrangement: no due check
        logger.info("Total fee is 0, accepting %s without due amount validation", amount)
        return
    if amount > fee_due + EPSILON:
        raise ExceedsDue(f"Payment amount ({amount:.2f}) exceeds the due amount ({fee_due:.2f})")


def validate_payment_amount(amount: Any, total_fee: Decimal, fee_due: Decimal) -> Decimal:
    """Validate a new payment amount and return it normalized.

    Raises InvalidAmount for non-positive or non-numeric input and ExceedsDue when the
    amount is more than ``fee_due + EPSILON`` (skipped entirely when ``total_fee`` is 0).
    """
    normalized = parse_amount(amount)
    _check_within_due(normalized, total_fee, fee_due)
    return normalized


def check_ledger_delta(delta: Decimal, snapshot: FeeSnapshot) -> None:
    """Edit path: only the increase over the original amount is checked against the due balance."""
    if delta <= ZERO:
        return
    _check_within_due(delta, snapshot.total_fee, snapshot.fee_due)
