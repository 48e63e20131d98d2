"""Fee reports: tenant summary, per-student ledger report with drift, Excel export, audit trail."""

import io
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from openpyxl import Workbook
from openpyxl.styles import Font
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.core.enums import LedgerState, PaymentStatus
from feeledger.core.models import FeeAuditLog, Payment, Student
from feeledger.core.services import _to_decimal
from feeledger.ledger.snapshot import ZERO, ledger_state, snapshot_from_student

from .schemas import FeeAuditLogResponse, FeeReportItem, FeeSummary

REPORT_HEADERS = [
    "Student",
    "Batch",
    "Total fee",
    "Fee paid",
    "Fee due",
    "State",
    "Completed payments",
    "Drift",
]


async def get_ledger_report(
    db: AsyncSession,
    tenant_id: UUID,
    state: Optional[LedgerState] = None,
    active_only: bool = True,
) -> List[FeeReportItem]:
    paid_subq = (
        select(
            Payment.student_id,
            func.coalesce(func.sum(Payment.amount), 0).label("payments_total"),
        )
        .where(
            Payment.tenant_id == tenant_id,
            Payment.status == PaymentStatus.completed.value,
        )
        .group_by(Payment.student_id)
    ).subquery()

    stmt = (
        select(Student, paid_subq.c.payments_total)
        .outerjoin(paid_subq, paid_subq.c.student_id == Student.id)
        .where(Student.tenant_id == tenant_id)
    )
    if active_only:
        stmt = stmt.where(Student.is_active.is_(True))
    stmt = stmt.order_by(Student.name)

    rows = (await db.execute(stmt)).all()
    items: List[FeeReportItem] = []
    for student, payments_total in rows:
        snapshot = snapshot_from_student(student)
        row_state = ledger_state(snapshot)
        if state is not None and row_state != state:
            continue
        history = _to_decimal(payments_total).quantize(Decimal("0.01"))
        items.append(
            FeeReportItem(
                student_id=student.id,
                student_name=student.name,
                batch_name=student.batch_name,
                total_fee=snapshot.total_fee,
                fee_paid=snapshot.fee_paid,
                fee_due=snapshot.fee_due,
                fee_state=row_state,
                payments_total=history,
                drift=snapshot.fee_paid - history,
            )
        )
    return items


async def get_fee_summary(db: AsyncSession, tenant_id: UUID) -> FeeSummary:
    items = await get_ledger_report(db, tenant_id)
    counts = {s: 0 for s in LedgerState}
    for item in items:
        counts[item.fee_state] += 1
    return FeeSummary(
        total_fees=sum((i.total_fee for i in items), ZERO),
        collected=sum((i.fee_paid for i in items), ZERO),
        pending=sum((i.fee_due for i in items), ZERO),
        payments_total=sum((i.payments_total for i in items), ZERO),
        students=len(items),
        paid_count=counts[LedgerState.paid],
        partial_count=counts[LedgerState.partial],
        unpaid_count=counts[LedgerState.unpaid],
    )


def build_ledger_report_excel(items: List[FeeReportItem]) -> bytes:
    """Build an Excel workbook with one ledger row per student."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Fee ledger"
    ws.append(REPORT_HEADERS)
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for item in items:
        ws.append(
            [
                item.student_name,
                item.batch_name or "",
                float(item.total_fee),
                float(item.fee_paid),
                float(item.fee_due),
                item.fee_state.value,
                float(item.payments_total),
                float(item.drift),
            ]
        )
    for column in ("C", "D", "E", "G", "H"):
        for cell in ws[column][1:]:
            cell.number_format = "#,##0.00"
    bio = io.BytesIO()
    wb.save(bio)
    return bio.getvalue()


async def list_student_audit_log(db: AsyncSession, tenant_id: UUID, student_id: UUID) -> List[FeeAuditLogResponse]:
    stmt = (
        select(FeeAuditLog)
        .where(FeeAuditLog.tenant_id == tenant_id, FeeAuditLog.student_id == student_id)
        .order_by(FeeAuditLog.created_at)
    )
    result = await db.execute(stmt)
    return [FeeAuditLogResponse.model_validate(log) for log in result.scalars().all()]
