"""Unit tests for ledger delta arithmetic."""

from decimal import Decimal

from feeledger.core.enums import PaymentStatus
from feeledger.ledger.snapshot import FeeSnapshot
from feeledger.ledger.updater import (
    LedgerAction,
    apply_delta,
    create_delta,
    delete_delta,
    ledger_contribution,
    plan_change,
    update_delta,
)

D = Decimal


def test_only_completed_payments_contribute() -> None:
    assert ledger_contribution(D("100"), PaymentStatus.completed) == D("100")
    assert ledger_contribution(D("100"), "completed") == D("100")
    assert ledger_contribution(D("100"), PaymentStatus.pending) == D("0")
    assert ledger_contribution(D("100"), "failed") == D("0")


def test_deltas() -> None:
    assert create_delta(D("4000")) == D("4000")
    assert update_delta(D("2000"), "completed", D("2500"), "completed") == D("500")
    assert update_delta(D("2000"), "completed", D("2000"), "failed") == D("-2000")
    assert update_delta(D("3000"), "pending", D("3000"), PaymentStatus.completed) == D("3000")
    assert delete_delta(D("4000")) == D("-4000")
    assert delete_delta(D("4000"), "pending") == D("0")


def test_apply_delta_scenario_a_then_b() -> None:
    start = FeeSnapshot(D("10000"), D("0"), D("10000"))
    after_a = apply_delta(start, D("4000"))
    assert after_a == FeeSnapshot(D("10000"), D("4000"), D("6000"))
    after_b = apply_delta(after_a, D("6000"))
    assert after_b == FeeSnapshot(D("10000"), D("10000"), D("0"))


def test_apply_delta_on_waived_fee_clamps_due() -> None:
    assert apply_delta(FeeSnapshot(D("0"), D("0"), D("0")), D("500")) == FeeSnapshot(D("0"), D("500"), D("0"))


def test_apply_delta_floors_paid_at_zero() -> None:
    assert apply_delta(FeeSnapshot(D("100"), D("30"), D("70")), D("-50")) == FeeSnapshot(D("100"), D("0"), D("100"))


def test_zero_delta_plan_is_unchanged() -> None:
    snap = FeeSnapshot(D("5000"), D("2000"), D("3000"))
    change = plan_change(LedgerAction.update, snap, D("0"))
    assert change.changed is False
    assert change.after is snap


def test_plan_change_edit_scenario_c() -> None:
    snap = FeeSnapshot(D("5000"), D("2000"), D("3000"))
    change = plan_change(LedgerAction.update, snap, D("500"))
    assert change.changed is True
    assert change.after == FeeSnapshot(D("5000"), D("2500"), D("2500"))
