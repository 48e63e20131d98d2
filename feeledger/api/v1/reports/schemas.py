"""Fee report schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from feeledger.core.enums import LedgerState


class FeeSummary(BaseModel):
    """Tenant-wide totals over active students."""

    total_fees: Decimal
    collected: Decimal
    pending: Decimal
    payments_total: Decimal
    students: int
    paid_count: int
    partial_count: int
    unpaid_count: int


class FeeReportItem(BaseModel):
    student_id: UUID
    student_name: str
    batch_name: Optional[str] = None
    total_fee: Decimal
    fee_paid: Decimal
    fee_due: Decimal
    fee_state: LedgerState
    payments_total: Decimal
    drift: Decimal


class FeeAuditLogResponse(BaseModel):
    id: UUID
    student_id: UUID
    reference_table: str
    reference_id: UUID
    action_type: str
    old_value: Optional[dict] = None
    new_value: Optional[dict] = None
    changed_by: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True
