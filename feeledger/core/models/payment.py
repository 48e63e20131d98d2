"""Payment: one discrete collection event against a student's ledger."""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Numeric, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from feeledger.core.enums import PaymentStatus
from feeledger.db.session import Base


class Payment(Base):
    """Payment against a student. Only completed payments count towards fee_paid."""

    __tablename__ = "payments"
    __table_args__ = (
        CheckConstraint("amount > 0", name="chk_payment_amount_positive"),
        CheckConstraint(
            "payment_method IN ('cash','bank_transfer','upi','check','other')",
            name="chk_payment_method",
        ),
        CheckConstraint(
            "status IN ('completed','pending','failed')",
            name="chk_payment_status",
        ),
        UniqueConstraint("tenant_id", "receipt_number", name="uq_payment_tenant_receipt"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount = Column(Numeric(12, 2), nullable=False)
    payment_date = Column(DateTime(timezone=True), nullable=False)
    payment_method = Column(String(30), nullable=False)  # cash, bank_transfer, upi, check, other
    status = Column(String(20), nullable=False, default=PaymentStatus.completed.value)
    transaction_reference = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    receipt_number = Column(String(30), nullable=False)
    next_payment_due_date = Column(DateTime(timezone=True), nullable=True)
    collected_by = Column(Uuid(as_uuid=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    student = relationship("Student", back_populates="payments")
