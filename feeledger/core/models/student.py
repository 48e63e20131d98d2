"""Student enrollment: the commercial relationship of one learner, holding the fee ledger."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String, Uuid
from sqlalchemy.orm import relationship

from feeledger.db.session import Base


class Student(Base):
    """
    Enrolled learner with the ledger triple total_fee / fee_paid / fee_due.

    fee_paid and fee_due are only moved by payment writes (or an explicit reconcile);
    fee_due == max(0, total_fee - fee_paid) after every committed change.
    version is the optimistic-concurrency counter bumped on every ledger write.
    """

    __tablename__ = "students"
    __table_args__ = (
        CheckConstraint("total_fee >= 0", name="chk_student_total_fee_non_negative"),
        CheckConstraint("fee_paid >= 0", name="chk_student_fee_paid_non_negative"),
        CheckConstraint("fee_due >= 0", name="chk_student_fee_due_non_negative"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=False)
    # Batches are managed elsewhere; only the display name is kept here
    batch_name = Column(String(255), nullable=True)
    enrollment_date = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    total_fee = Column(Numeric(12, 2), nullable=False, default=0)
    fee_paid = Column(Numeric(12, 2), nullable=False, default=0)
    fee_due = Column(Numeric(12, 2), nullable=False, default=0)

    is_active = Column(Boolean, nullable=False, default=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    tenant = relationship("Tenant", back_populates="students")
    payments = relationship("Payment", back_populates="student", cascade="all, delete-orphan")

    __mapper_args__ = {"version_id_col": version}
