"""Database side of the ledger: locking, history sums and writing a snapshot back."""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.core.enums import PaymentStatus
from feeledger.core.exceptions import StudentNotFound
from feeledger.core.models import Payment, Student

from .snapshot import FeeSnapshot

logger = logging.getLogger(__name__)


async def get_student_for_update(db: AsyncSession, tenant_id: UUID, student_id: UUID) -> Student:
    """Load the student row with a write lock (no-op on backends without FOR UPDATE)."""
    student = (
        await db.execute(
            select(Student)
            .where(Student.id == student_id, Student.tenant_id == tenant_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if not student:
        raise StudentNotFound()
    return student


async def completed_payments_total(
    db: AsyncSession,
    student_id: UUID,
    exclude_payment_id: Optional[UUID] = None,
) -> Decimal:
    stmt = select(func.coalesce(func.sum(Payment.amount), 0)).where(
        Payment.student_id == student_id,
        Payment.status == PaymentStatus.completed.value,
    )
    if exclude_payment_id is not None:
        stmt = stmt.where(Payment.id != exclude_payment_id)
    total = (await db.execute(stmt)).scalar()
    return Decimal(str(total or 0)).quantize(Decimal("0.01"))


def write_snapshot(student: Student, snapshot: FeeSnapshot) -> None:
    """Copy snapshot onto the student row. The version column is bumped on flush."""
    student.total_fee = snapshot.total_fee
    student.fee_paid = snapshot.fee_paid
    student.fee_due = snapshot.fee_due
    student.updated_at = datetime.now(timezone.utc)
    logger.info(
        "Ledger for student %s now total=%s paid=%s due=%s",
        student.id, snapshot.total_fee, snapshot.fee_paid, snapshot.fee_due,
    )
