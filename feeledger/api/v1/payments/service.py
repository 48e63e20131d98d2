"""Payments service: record, edit and delete payments, keeping the student ledger in step. Financial logic with audit."""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID

from fastapi import status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.core.config import settings
from feeledger.core.enums import AuditAction, PaymentStatus
from feeledger.core.exceptions import PaymentNotFound, ServiceError, StudentNotFound
from feeledger.core.models import Payment, Student
from feeledger.core.services import _to_decimal, _to_uuid, log_fee_audit, run_ledger_transaction
from feeledger.ledger.receipts import generate_receipt_number
from feeledger.ledger.snapshot import FeeSnapshot, snapshot_from_student
from feeledger.ledger.store import completed_payments_total, get_student_for_update, write_snapshot
from feeledger.ledger.updater import (
    LedgerAction,
    LedgerChange,
    create_delta,
    delete_delta,
    plan_change,
    recompute,
    update_delta,
)
from feeledger.ledger.validation import check_ledger_delta, parse_amount, validate_payment_amount

from .schemas import LedgerSnapshot, PaymentCreate, PaymentResponse, PaymentUpdate

logger = logging.getLogger(__name__)


def _ledger_out(snapshot: Optional[FeeSnapshot]) -> Optional[LedgerSnapshot]:
    if snapshot is None:
        return None
    return LedgerSnapshot(
        total_fee=snapshot.total_fee,
        fee_paid=snapshot.fee_paid,
        fee_due=snapshot.fee_due,
    )


def _payment_to_response(pt: Payment, ledger: Optional[FeeSnapshot] = None) -> PaymentResponse:
    return PaymentResponse(
        id=_to_uuid(pt.id),
        tenant_id=_to_uuid(pt.tenant_id),
        student_id=_to_uuid(pt.student_id),
        amount=_to_decimal(pt.amount),
        payment_date=pt.payment_date,
        payment_method=pt.payment_method,
        status=pt.status,
        transaction_reference=pt.transaction_reference,
        notes=pt.notes,
        receipt_number=pt.receipt_number,
        next_payment_due_date=pt.next_payment_due_date,
        collected_by=_to_uuid(pt.collected_by),
        created_at=pt.created_at,
        updated_at=pt.updated_at,
        ledger=_ledger_out(ledger),
    )


async def _new_receipt_number(db: AsyncSession, tenant_id: UUID, paid_at: datetime) -> str:
    """Draw a receipt number that is not yet used in the tenant."""
    max_attempts = 5
    for attempt in range(max_attempts):
        receipt_number = generate_receipt_number(paid_at)
        taken = (
            await db.execute(
                select(Payment.id).where(Payment.tenant_id == tenant_id, Payment.receipt_number == receipt_number)
            )
        ).first()
        if taken is None:
            return receipt_number
        logger.warning("Receipt number %s already used in tenant %s (attempt %d)", receipt_number, tenant_id, attempt + 1)
    raise ServiceError(
        "Could not generate unique receipt number after retries",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def _payment_audit_value(pt: Payment) -> dict:
    return {
        "amount": pt.amount,
        "status": pt.status,
        "payment_method": pt.payment_method,
        "payment_date": pt.payment_date,
        "receipt_number": pt.receipt_number,
    }


async def apply_ledger_change(
    db: AsyncSession,
    student: Student,
    change: LedgerChange,
    changed_by: Optional[UUID],
) -> FeeSnapshot:
    """
    Persist the ledger side of a payment write on the locked student row.

    Must run after the payment row has been flushed so history sums include it.
    A change with a zero delta leaves the student row untouched.
    """
    after = change.after
    if settings.ledger_resum_on_write:
        paid = await completed_payments_total(db, student.id)
        after = recompute(change.before.total_fee, paid)
        if after == change.before:
            return change.before
    elif not change.changed:
        logger.debug("Student %s: payment %s with zero ledger delta, ledger unchanged", student.id, change.action.value)
        return change.before

    logger.info(
        "Student %s: payment %s applies delta %s (paid %s -> %s, due %s -> %s)",
        student.id, change.action.value, change.delta,
        change.before.fee_paid, after.fee_paid, change.before.fee_due, after.fee_due,
    )
    write_snapshot(student, after)
    await db.flush()
    await log_fee_audit(
        db, student.tenant_id, student.id, "students", student.id,
        AuditAction.UPDATE.value,
        change.before.as_dict(),
        dict(after.as_dict(), delta=str(change.delta), action=change.action.value),
        changed_by,
    )
    return after


async def add_payment_to_ledger(
    db: AsyncSession,
    student: Student,
    amount: Decimal,
    payload_status: PaymentStatus,
    *,
    payment_date: Optional[datetime],
    payment_method: str,
    transaction_reference: Optional[str],
    notes: Optional[str],
    next_payment_due_date: Optional[datetime],
    collected_by: Optional[UUID],
) -> Tuple[Payment, FeeSnapshot]:
    """Insert a payment for a locked student and move the ledger. Caller owns the transaction."""
    snapshot = snapshot_from_student(student)
    if payload_status == PaymentStatus.completed:
        validate_payment_amount(amount, snapshot.total_fee, snapshot.fee_due)

    paid_at = payment_date or datetime.now(timezone.utc)
    pt = Payment(
        tenant_id=student.tenant_id,
        student_id=student.id,
        amount=amount,
        payment_date=paid_at,
        payment_method=payment_method,
        status=payload_status.value,
        transaction_reference=(transaction_reference or "").strip() or None,
        notes=notes,
        receipt_number=await _new_receipt_number(db, student.tenant_id, paid_at),
        next_payment_due_date=next_payment_due_date,
        collected_by=collected_by,
    )
    db.add(pt)
    await db.flush()

    change = plan_change(LedgerAction.create, snapshot, create_delta(amount, payload_status))
    after = await apply_ledger_change(db, student, change, collected_by)
    await log_fee_audit(
        db, student.tenant_id, student.id, "payments", pt.id,
        AuditAction.CREATE.value,
        None,
        _payment_audit_value(pt),
        collected_by,
    )
    return pt, after


async def record_payment(
    db: AsyncSession,
    tenant_id: UUID,
    payload: PaymentCreate,
    collected_by: Optional[UUID],
) -> PaymentResponse:
    # Amount errors are reported before the store is touched
    amount = parse_amount(payload.amount)

    async def work() -> Tuple[Payment, FeeSnapshot]:
        student = await get_student_for_update(db, tenant_id, payload.student_id)
        return await add_payment_to_ledger(
            db,
            student,
            amount,
            payload.status,
            payment_date=payload.payment_date,
            payment_method=payload.payment_method.value,
            transaction_reference=payload.transaction_reference,
            notes=payload.notes,
            next_payment_due_date=payload.next_payment_due_date,
            collected_by=collected_by,
        )

    pt, after = await run_ledger_transaction(db, work, "record_payment")
    await db.refresh(pt)
    return _payment_to_response(pt, after)


async def _get_payment(db: AsyncSession, tenant_id: UUID, payment_id: UUID) -> Payment:
    pt = (
        await db.execute(
            select(Payment)
            .where(Payment.id == payment_id, Payment.tenant_id == tenant_id)
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if not pt:
        raise PaymentNotFound()
    return pt


async def update_payment(
    db: AsyncSession,
    tenant_id: UUID,
    payment_id: UUID,
    payload: PaymentUpdate,
    changed_by: Optional[UUID],
) -> PaymentResponse:
    fields = payload.model_dump(exclude_unset=True)
    new_amount = parse_amount(fields["amount"]) if "amount" in fields else None
    if "payment_method" in fields and fields["payment_method"] is None:
        fields.pop("payment_method")
    if "status" in fields and fields["status"] is None:
        fields.pop("status")

    async def work() -> Tuple[Payment, FeeSnapshot]:
        pt = await _get_payment(db, tenant_id, payment_id)
        student = await get_student_for_update(db, tenant_id, pt.student_id)
        snapshot = snapshot_from_student(student)

        original_amount = _to_decimal(pt.amount)
        original_status = pt.status
        amount = new_amount if new_amount is not None else original_amount
        new_status = fields.get("status", PaymentStatus(original_status))
        delta = update_delta(original_amount, original_status, amount, new_status)
        # Only the increase is checked against the outstanding balance
        check_ledger_delta(delta, snapshot)

        old_value = _payment_audit_value(pt)
        pt.amount = amount
        pt.status = PaymentStatus(new_status).value
        if "payment_method" in fields:
            pt.payment_method = fields["payment_method"].value
        if "payment_date" in fields and fields["payment_date"] is not None:
            pt.payment_date = fields["payment_date"]
        if "transaction_reference" in fields:
            pt.transaction_reference = (fields["transaction_reference"] or "").strip() or None
        if "notes" in fields:
            pt.notes = fields["notes"]
        if "next_payment_due_date" in fields:
            pt.next_payment_due_date = fields["next_payment_due_date"]
        await db.flush()

        change = plan_change(LedgerAction.update, snapshot, delta)
        after = await apply_ledger_change(db, student, change, changed_by)
        await log_fee_audit(
            db, tenant_id, student.id, "payments", pt.id,
            AuditAction.UPDATE.value,
            old_value,
            _payment_audit_value(pt),
            changed_by,
        )
        return pt, after

    pt, after = await run_ledger_transaction(db, work, "update_payment")
    await db.refresh(pt)
    return _payment_to_response(pt, after)


async def delete_payment(
    db: AsyncSession,
    tenant_id: UUID,
    payment_id: UUID,
    changed_by: Optional[UUID],
) -> FeeSnapshot:
    """Delete a payment and take its contribution back out of the ledger."""

    async def work() -> FeeSnapshot:
        pt = await _get_payment(db, tenant_id, payment_id)
        student = await get_student_for_update(db, tenant_id, pt.student_id)
        snapshot = snapshot_from_student(student)
        delta = delete_delta(_to_decimal(pt.amount), pt.status)
        old_value = _payment_audit_value(pt)
        pt_id = pt.id

        await db.delete(pt)
        await db.flush()

        change = plan_change(LedgerAction.delete, snapshot, delta)
        after = await apply_ledger_change(db, student, change, changed_by)
        await log_fee_audit(
            db, tenant_id, student.id, "payments", pt_id,
            AuditAction.DELETE.value,
            old_value,
            None,
            changed_by,
        )
        return after

    return await run_ledger_transaction(db, work, "delete_payment")


async def get_payment(db: AsyncSession, tenant_id: UUID, payment_id: UUID) -> PaymentResponse:
    return _payment_to_response(await _get_payment(db, tenant_id, payment_id))


async def list_payments(
    db: AsyncSession,
    tenant_id: UUID,
    status_filter: Optional[PaymentStatus] = None,
) -> List[PaymentResponse]:
    stmt = select(Payment).where(Payment.tenant_id == tenant_id)
    if status_filter is not None:
        stmt = stmt.where(Payment.status == status_filter.value)
    stmt = stmt.order_by(Payment.payment_date.desc(), Payment.created_at.desc())
    result = await db.execute(stmt)
    return [_payment_to_response(pt) for pt in result.scalars().all()]


async def list_student_payments(
    db: AsyncSession,
    tenant_id: UUID,
    student_id: UUID,
    status_filter: Optional[PaymentStatus] = None,
) -> List[PaymentResponse]:
    student = (
        await db.execute(select(Student.id).where(Student.id == student_id, Student.tenant_id == tenant_id))
    ).scalar_one_or_none()
    if not student:
        raise StudentNotFound()
    stmt = select(Payment).where(Payment.tenant_id == tenant_id, Payment.student_id == student_id)
    if status_filter is not None:
        stmt = stmt.where(Payment.status == status_filter.value)
    stmt = stmt.order_by(Payment.payment_date.desc(), Payment.created_at.desc())
    result = await db.execute(stmt)
    return [_payment_to_response(pt) for pt in result.scalars().all()]
