"""Ledger arithmetic for payment create / update / delete.

Pure functions: the payments service persists the results inside the same
transaction as the payment row.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from feeledger.core.enums import PaymentStatus

from .snapshot import ZERO, FeeSnapshot, due_from

logger = logging.getLogger(__name__)


class LedgerAction(str, Enum):
    create = "create"
    update = "update"
    delete = "delete"


@dataclass(frozen=True)
class LedgerChange:
    action: LedgerAction
    delta: Decimal
    before: FeeSnapshot
    after: FeeSnapshot

    @property
    def changed(self) -> bool:
        return self.delta != ZERO


def _status_value(status) -> str:
    return status.value if isinstance(status, PaymentStatus) else str(status)


def ledger_contribution(amount: Decimal, status) -> Decimal:
    """Amount a payment contributes to fee_paid: its amount when completed, else 0."""
    if _status_value(status) != PaymentStatus.completed.value:
        return ZERO
    return Decimal(amount)


def create_delta(amount: Decimal, status=PaymentStatus.completed) -> Decimal:
    return ledger_contribution(amount, status)


def update_delta(
    original_amount: Decimal,
    original_status,
    new_amount: Decimal,
    new_status,
) -> Decimal:
    return ledger_contribution(new_amount, new_status) - ledger_contribution(original_amount, original_status)


def delete_delta(amount: Decimal, status=PaymentStatus.completed) -> Decimal:
    return -ledger_contribution(amount, status)


def recompute(total_fee: Decimal, fee_paid: Decimal) -> FeeSnapshot:
    return FeeSnapshot(total_fee=total_fee, fee_paid=fee_paid, fee_due=due_from(total_fee, fee_paid))


def apply_delta(snapshot: FeeSnapshot, delta: Decimal) -> FeeSnapshot:
    fee_paid = snapshot.fee_paid + delta
    if fee_paid < ZERO:
        logger.warning(
            "Ledger delta %s would make fee_paid negative (%s), flooring at 0",
            delta, fee_paid,
        )
        fee_paid = ZERO
    return recompute(snapshot.total_fee, fee_paid)


def plan_change(action: LedgerAction, snapshot: FeeSnapshot, delta: Decimal) -> LedgerChange:
    if delta == ZERO:
        return LedgerChange(action=action, delta=ZERO, before=snapshot, after=snapshot)
    return LedgerChange(action=action, delta=delta, before=snapshot, after=apply_delta(snapshot, delta))
