"""Fee snapshot reader.

Student ledgers reach this service under several historical spellings
(``fee_due`` / ``feeDue`` / ``amountDue`` and so on). Everything that needs a
ledger goes through :func:`read_fee_snapshot`, which resolves the spellings in
a fixed preference order (snake_case, camelCase, legacy alias) and returns one
canonical, non-negative :class:`FeeSnapshot`.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional, Tuple

from feeledger.core.enums import LedgerState

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

TOTAL_FEE_KEYS: Tuple[str, ...] = ("total_fee", "totalFee", "totalFees")
FEE_PAID_KEYS: Tuple[str, ...] = ("fee_paid", "feePaid", "amountPaid")
FEE_DUE_KEYS: Tuple[str, ...] = ("fee_due", "feeDue", "amountDue")

CANONICAL_KEYS: Dict[str, Tuple[str, ...]] = {
    "total_fee": TOTAL_FEE_KEYS,
    "fee_paid": FEE_PAID_KEYS,
    "fee_due": FEE_DUE_KEYS,
}


@dataclass(frozen=True)
class FeeSnapshot:
    """Canonical ledger triple. All three values are non-negative."""

    total_fee: Decimal
    fee_paid: Decimal
    fee_due: Decimal

    def as_dict(self) -> Dict[str, str]:
        return {
            "total_fee": str(self.total_fee),
            "fee_paid": str(self.fee_paid),
            "fee_due": str(self.fee_due),
        }


def to_finite_decimal(value: Any) -> Optional[Decimal]:
    """Parse value as a finite Decimal, or return None when it is not a number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = Decimal(text)
        except InvalidOperation:
            return None
    else:
        try:
            parsed = Decimal(str(value))
        except InvalidOperation:
            return None
    if not parsed.is_finite():
        return None
    return parsed


def _first_parseable(record: Mapping[str, Any], keys: Tuple[str, ...]) -> Optional[Decimal]:
    for key in keys:
        if key not in record:
            continue
        parsed = to_finite_decimal(record[key])
        if parsed is not None:
            return parsed
    return None


def due_from(total_fee: Decimal, fee_paid: Decimal) -> Decimal:
    return max(ZERO, total_fee - fee_paid)


def read_fee_snapshot(record: Mapping[str, Any]) -> FeeSnapshot:
    """Resolve a student-like mapping into a canonical :class:`FeeSnapshot`.

    - total fee and fee paid fall back to 0 when no candidate key parses;
    - an explicit, non-negative fee due is trusted as stored;
    - a negative stored fee due is stale and is recomputed from total - paid;
    - a missing fee due is derived as ``max(0, total - paid)``.
    """
    total_fee = max(ZERO, _first_parseable(record, TOTAL_FEE_KEYS) or ZERO)
    fee_paid = max(ZERO, _first_parseable(record, FEE_PAID_KEYS) or ZERO)

    fee_due = _first_parseable(record, FEE_DUE_KEYS)
    if fee_due is None:
        fee_due = due_from(total_fee, fee_paid)
    elif fee_due < ZERO:
        logger.warning(
            "Negative fee due %s in stored ledger, recomputing from total %s and paid %s",
            fee_due, total_fee, fee_paid,
        )
        fee_due = due_from(total_fee, fee_paid)

    return FeeSnapshot(total_fee=total_fee, fee_paid=fee_paid, fee_due=fee_due)


def snapshot_from_student(student) -> FeeSnapshot:
    """Store-boundary adapter: read a persisted student's ledger columns."""
    return read_fee_snapshot(
        {
            "total_fee": student.total_fee,
            "fee_paid": student.fee_paid,
            "fee_due": student.fee_due,
        }
    )


def ledger_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Map any known spelling in payload to canonical snake_case keys. First present key wins.

    Values are passed through untouched; keys that are not ledger spellings are kept as they are.
    """
    out: Dict[str, Any] = {}
    alias_keys = set()
    for canonical, keys in CANONICAL_KEYS.items():
        alias_keys.update(keys)
        for key in keys:
            if key in payload:
                out[canonical] = payload[key]
                break
    for key, value in payload.items():
        if key not in alias_keys:
            out[key] = value
    return out


def ledger_state(snapshot: FeeSnapshot) -> LedgerState:
    """paid when nothing is due, partial when something was paid, unpaid otherwise."""
    if snapshot.fee_due == ZERO:
        return LedgerState.paid
    if snapshot.fee_paid > ZERO:
        return LedgerState.partial
    return LedgerState.unpaid
