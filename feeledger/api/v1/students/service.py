"""Students service: enrollment with initial payment, total fee changes, ledger view and reconcile."""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID

from fastapi import status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.core.enums import AuditAction, PaymentStatus
from feeledger.core.exceptions import ServiceError, StudentNotFound
from feeledger.core.models import Student
from feeledger.core.services import _to_uuid, log_fee_audit, run_ledger_transaction
from feeledger.ledger.snapshot import ZERO, FeeSnapshot, ledger_state, snapshot_from_student, to_finite_decimal
from feeledger.ledger.store import completed_payments_total, get_student_for_update, write_snapshot
from feeledger.ledger.updater import recompute
from feeledger.ledger.validation import parse_amount
from feeledger.api.v1.payments import service as payment_service
from feeledger.api.v1.payments.schemas import LedgerSnapshot

from .schemas import (
    LedgerReconciliation,
    StudentCreate,
    StudentLedgerResponse,
    StudentResponse,
    StudentUpdate,
)

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("name", "email", "phone", "batch_name", "enrollment_date", "is_active")


def _student_to_response(student: Student) -> StudentResponse:
    snapshot = snapshot_from_student(student)
    return StudentResponse(
        id=_to_uuid(student.id),
        tenant_id=_to_uuid(student.tenant_id),
        name=student.name,
        email=student.email,
        phone=student.phone,
        batch_name=student.batch_name,
        enrollment_date=student.enrollment_date,
        total_fee=snapshot.total_fee,
        fee_paid=snapshot.fee_paid,
        fee_due=snapshot.fee_due,
        fee_state=ledger_state(snapshot),
        is_active=student.is_active,
        created_at=student.created_at,
        updated_at=student.updated_at,
    )


def _snapshot_out(snapshot: FeeSnapshot) -> LedgerSnapshot:
    return LedgerSnapshot(
        total_fee=snapshot.total_fee,
        fee_paid=snapshot.fee_paid,
        fee_due=snapshot.fee_due,
    )


def _initial_payment_amount(payload: StudentCreate) -> Optional[Decimal]:
    raw = payload.initial_payment
    if raw is None or raw == "":
        return None
    # An explicit 0 means nothing was collected at enrollment
    if to_finite_decimal(raw) == ZERO:
        return None
    return parse_amount(raw)


async def create_student(
    db: AsyncSession,
    tenant_id: UUID,
    payload: StudentCreate,
    changed_by: Optional[UUID],
) -> StudentResponse:
    initial = _initial_payment_amount(payload)
    if initial is not None and payload.payment_method is None:
        raise ServiceError("Payment method is required when initial payment is provided", status.HTTP_400_BAD_REQUEST)

    async def work() -> Student:
        now = datetime.now(timezone.utc)
        student = Student(
            tenant_id=tenant_id,
            name=payload.name.strip(),
            email=payload.email,
            phone=payload.phone.strip(),
            batch_name=payload.batch_name,
            enrollment_date=payload.enrollment_date or now,
            total_fee=payload.total_fee,
            fee_paid=ZERO,
            fee_due=payload.total_fee,
            updated_at=now,
        )
        db.add(student)
        await db.flush()
        await log_fee_audit(
            db, tenant_id, student.id, "students", student.id,
            AuditAction.CREATE.value,
            None,
            snapshot_from_student(student).as_dict(),
            changed_by,
        )
        if initial is not None:
            await payment_service.add_payment_to_ledger(
                db,
                student,
                initial,
                PaymentStatus.completed,
                payment_date=payload.enrollment_date,
                payment_method=payload.payment_method.value,
                transaction_reference=payload.reference,
                notes=payload.payment_notes,
                next_payment_due_date=None,
                collected_by=changed_by,
            )
        return student

    student = await run_ledger_transaction(db, work, "create_student")
    await db.refresh(student)
    logger.info("Enrolled student %s with total fee %s", student.id, student.total_fee)
    return _student_to_response(student)


async def _get_student(db: AsyncSession, tenant_id: UUID, student_id: UUID) -> Student:
    student = (
        await db.execute(
            select(Student)
            .where(Student.id == student_id, Student.tenant_id == tenant_id)
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if not student:
        raise StudentNotFound()
    return student


async def get_student(db: AsyncSession, tenant_id: UUID, student_id: UUID) -> StudentResponse:
    return _student_to_response(await _get_student(db, tenant_id, student_id))


async def list_students(
    db: AsyncSession,
    tenant_id: UUID,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
) -> List[StudentResponse]:
    stmt = select(Student).where(Student.tenant_id == tenant_id)
    if is_active is not None:
        stmt = stmt.where(Student.is_active.is_(is_active))
    if search and search.strip():
        stmt = stmt.where(Student.name.ilike(f"%{search.strip()}%"))
    stmt = stmt.order_by(Student.enrollment_date.desc())
    result = await db.execute(stmt)
    return [_student_to_response(s) for s in result.scalars().all()]


async def update_student(
    db: AsyncSession,
    tenant_id: UUID,
    student_id: UUID,
    payload: StudentUpdate,
    changed_by: Optional[UUID],
) -> StudentResponse:
    fields = payload.model_dump(exclude_unset=True)

    async def work() -> Student:
        student = await get_student_for_update(db, tenant_id, student_id)
        for name in PROFILE_FIELDS:
            if name in fields and (fields[name] is not None or name in ("email", "batch_name")):
                setattr(student, name, fields[name])

        new_total = fields.get("total_fee")
        before = snapshot_from_student(student)
        if new_total is not None and new_total != before.total_fee:
            after = recompute(new_total, before.fee_paid)
            write_snapshot(student, after)
            await db.flush()
            await log_fee_audit(
                db, tenant_id, student.id, "students", student.id,
                AuditAction.UPDATE.value,
                before.as_dict(),
                after.as_dict(),
                changed_by,
            )
        elif any(name in fields for name in PROFILE_FIELDS):
            student.updated_at = datetime.now(timezone.utc)
        return student

    student = await run_ledger_transaction(db, work, "update_student")
    await db.refresh(student)
    return _student_to_response(student)


async def get_student_ledger(db: AsyncSession, tenant_id: UUID, student_id: UUID) -> StudentLedgerResponse:
    student = await _get_student(db, tenant_id, student_id)
    snapshot = snapshot_from_student(student)
    history = await completed_payments_total(db, student.id)
    return StudentLedgerResponse(
        student_id=student.id,
        total_fee=snapshot.total_fee,
        fee_paid=snapshot.fee_paid,
        fee_due=snapshot.fee_due,
        fee_state=ledger_state(snapshot),
        payments_total=history,
        drift=snapshot.fee_paid - history,
    )


async def reconcile_student_ledger(
    db: AsyncSession,
    tenant_id: UUID,
    student_id: UUID,
    changed_by: Optional[UUID],
) -> LedgerReconciliation:
    """Rebuild fee_paid from completed payment history and fee_due from it."""

    async def work() -> Tuple[FeeSnapshot, FeeSnapshot, bool]:
        student = await get_student_for_update(db, tenant_id, student_id)
        before = snapshot_from_student(student)
        history = await completed_payments_total(db, student.id)
        after = recompute(before.total_fee, history)
        # Compare against the stored columns, the snapshot already hides a negative due
        stored = (Decimal(student.fee_paid), Decimal(student.fee_due))
        changed = stored != (after.fee_paid, after.fee_due)
        if changed:
            logger.warning(
                "Reconciling student %s: stored paid=%s due=%s, history paid=%s",
                student.id, stored[0], stored[1], history,
            )
            write_snapshot(student, after)
            await db.flush()
            await log_fee_audit(
                db, tenant_id, student.id, "students", student.id,
                AuditAction.RECONCILE.value,
                {"total_fee": student.total_fee, "fee_paid": stored[0], "fee_due": stored[1]},
                after.as_dict(),
                changed_by,
            )
        return before, after, changed

    before, after, changed = await run_ledger_transaction(db, work, "reconcile_student_ledger")
    return LedgerReconciliation(
        student_id=student_id,
        before=_snapshot_out(before),
        after=_snapshot_out(after),
        drift=before.fee_paid - after.fee_paid,
        changed=changed,
    )
