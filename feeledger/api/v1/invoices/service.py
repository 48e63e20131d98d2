"""Invoices: PDF invoice for a single payment and a consolidated invoice per student."""

import io
import logging
from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID
from xml.sax.saxutils import escape

from fastapi import status
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.core.enums import PaymentStatus
from feeledger.core.exceptions import PaymentNotFound, ServiceError, StudentNotFound
from feeledger.core.models import Payment, Student, Tenant
from feeledger.core.services import _to_decimal
from feeledger.ledger.snapshot import ZERO, FeeSnapshot, snapshot_from_student

logger = logging.getLogger(__name__)

GRID_STYLE = [
    ("BACKGROUND", (0, 0), (-1, 0), colors.darkblue),
    ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
    ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
    ("FONTSIZE", (0, 0), (-1, -1), 10),
    ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
    ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
]


def _money(value) -> str:
    return f"{_to_decimal(value):,.2f}"


def _day(value: Optional[datetime]) -> str:
    return value.strftime("%d %b %Y") if value else "-"


def _method_label(method: str) -> str:
    return method.replace("_", " ").title()


def _details_table(rows: List[List[str]]) -> Table:
    table = Table(rows, colWidths=[1.8 * inch, 4.2 * inch])
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (0, -1), colors.lightgrey),
                ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 10),
                ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
            ]
        )
    )
    return table


def _bill_to(student: Student) -> Table:
    rows = [["Student", student.name], ["Student ID", str(student.id)], ["Phone", student.phone]]
    if student.email:
        rows.append(["Email", student.email])
    if student.batch_name:
        rows.append(["Batch", student.batch_name])
    return _details_table(rows)


def _ledger_table(snapshot: FeeSnapshot) -> Table:
    table = Table(
        [
            ["Total fee", "Fee paid", "Fee due"],
            [_money(snapshot.total_fee), _money(snapshot.fee_paid), _money(snapshot.fee_due)],
        ],
        colWidths=[2 * inch, 2 * inch, 2 * inch],
    )
    table.setStyle(TableStyle(GRID_STYLE + [("ALIGN", (0, 0), (-1, -1), "CENTER")]))
    return table


def _render(organization_name: str, title: str, body: list) -> bytes:
    bio = io.BytesIO()
    doc = SimpleDocTemplate(bio, pagesize=A4, title=title)
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "InvoiceTitle",
        parent=styles["Heading1"],
        textColor=colors.darkblue,
        alignment=1,
    )
    story = [
        Paragraph(escape(organization_name), title_style),
        Paragraph(escape(title), styles["Heading2"]),
        Spacer(1, 12),
    ]
    story.extend(body)
    story.append(Spacer(1, 24))
    story.append(Paragraph("Thank you for your payment.", styles["Normal"]))
    story.append(Paragraph(f"Generated on {datetime.now().strftime('%d %B %Y at %I:%M %p')}", styles["Normal"]))
    doc.build(story)
    return bio.getvalue()


def build_payment_invoice_pdf(organization_name: str, student: Student, payment: Payment, ledger: FeeSnapshot) -> bytes:
    """Invoice for one payment, with the student's ledger as of now."""
    styles = getSampleStyleSheet()
    body = [
        _details_table(
            [
                ["Invoice #", payment.receipt_number],
                ["Date", _day(payment.payment_date)],
                ["Status", payment.status.title()],
                ["Reference", payment.transaction_reference or "-"],
            ]
        ),
        Spacer(1, 12),
        Paragraph("Bill To", styles["Heading3"]),
        _bill_to(student),
        Spacer(1, 12),
        Paragraph("Payment Details", styles["Heading3"]),
    ]
    amount = _money(payment.amount)
    items = Table(
        [
            ["Description", "Amount"],
            [f"Fee payment ({_method_label(payment.payment_method)})", amount],
            ["Total amount", amount],
        ],
        colWidths=[4 * inch, 2 * inch],
    )
    items.setStyle(
        TableStyle(
            GRID_STYLE
            + [
                ("ALIGN", (1, 0), (1, -1), "RIGHT"),
                ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
                ("BACKGROUND", (0, -1), (-1, -1), colors.lightblue),
            ]
        )
    )
    body.append(items)
    if payment.notes:
        body.append(Spacer(1, 6))
        body.append(Paragraph(f"Notes: {escape(payment.notes)}", styles["Normal"]))
    if payment.next_payment_due_date:
        body.append(Paragraph(f"Next payment due: {_day(payment.next_payment_due_date)}", styles["Normal"]))
    body.extend([Spacer(1, 12), Paragraph("Fee Ledger", styles["Heading3"]), _ledger_table(ledger)])
    return _render(organization_name, "INVOICE", body)


def build_student_invoice_pdf(
    organization_name: str,
    student: Student,
    payments: List[Payment],
    ledger: FeeSnapshot,
) -> bytes:
    """
    Consolidated invoice listing every payment of a student.

    All statuses are listed; only completed payments are added to the total,
    the same rule the ledger uses for fee_paid.
    """
    styles = getSampleStyleSheet()
    completed = [p for p in payments if p.status == PaymentStatus.completed.value]
    total = sum((_to_decimal(p.amount) for p in completed), ZERO)

    rows = [["Date", "Receipt", "Method", "Status", "Amount"]]
    for p in payments:
        rows.append([_day(p.payment_date), p.receipt_number, _method_label(p.payment_method), p.status.title(), _money(p.amount)])
    rows.append(["", "", "", "Total paid", _money(total)])
    items = Table(rows, colWidths=[1.1 * inch, 1.7 * inch, 1.2 * inch, 1 * inch, 1.2 * inch])
    items.setStyle(
        TableStyle(
            GRID_STYLE
            + [
                ("ALIGN", (4, 0), (4, -1), "RIGHT"),
                ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
                ("BACKGROUND", (0, -1), (-1, -1), colors.lightblue),
            ]
        )
    )

    first, last = payments[0].payment_date, payments[-1].payment_date
    body = [
        _details_table(
            [
                ["Invoice", "Consolidated"],
                ["Date", _day(datetime.now())],
                ["Payments", f"{len(payments)} between {_day(first)} and {_day(last)}"],
            ]
        ),
        Spacer(1, 12),
        Paragraph("Bill To", styles["Heading3"]),
        _bill_to(student),
        Spacer(1, 12),
        Paragraph("Payments", styles["Heading3"]),
        items,
        Spacer(1, 12),
        Paragraph("Fee Ledger", styles["Heading3"]),
        _ledger_table(ledger),
    ]
    return _render(organization_name, "CONSOLIDATED INVOICE", body)


async def _organization_name(db: AsyncSession, tenant_id: UUID) -> str:
    name = (await db.execute(select(Tenant.organization_name).where(Tenant.id == tenant_id))).scalar_one_or_none()
    return name or ""


async def _get_student(db: AsyncSession, tenant_id: UUID, student_id: UUID) -> Student:
    student = (
        await db.execute(select(Student).where(Student.id == student_id, Student.tenant_id == tenant_id))
    ).scalar_one_or_none()
    if not student:
        raise StudentNotFound()
    return student


async def payment_invoice(db: AsyncSession, tenant_id: UUID, payment_id: UUID) -> Tuple[str, bytes]:
    """Return (filename, pdf bytes) for one payment."""
    payment = (
        await db.execute(select(Payment).where(Payment.id == payment_id, Payment.tenant_id == tenant_id))
    ).scalar_one_or_none()
    if not payment:
        raise PaymentNotFound()
    student = await _get_student(db, tenant_id, payment.student_id)
    content = build_payment_invoice_pdf(
        await _organization_name(db, tenant_id),
        student,
        payment,
        snapshot_from_student(student),
    )
    logger.info("Rendered invoice %s for payment %s", payment.receipt_number, payment.id)
    return f"invoice-{payment.receipt_number}.pdf", content


async def student_invoice(db: AsyncSession, tenant_id: UUID, student_id: UUID) -> Tuple[str, bytes]:
    """Return (filename, pdf bytes) for a consolidated invoice of all a student's payments."""
    student = await _get_student(db, tenant_id, student_id)
    payments = (
        await db.execute(
            select(Payment)
            .where(Payment.tenant_id == tenant_id, Payment.student_id == student.id)
            .order_by(Payment.payment_date, Payment.created_at)
        )
    ).scalars().all()
    if not payments:
        raise ServiceError("No payments found for this student", status.HTTP_404_NOT_FOUND)
    content = build_student_invoice_pdf(
        await _organization_name(db, tenant_id),
        student,
        list(payments),
        snapshot_from_student(student),
    )
    logger.info("Rendered consolidated invoice for student %s (%d payments)", student.id, len(payments))
    return f"consolidated-invoice-{student.id}.pdf", content
