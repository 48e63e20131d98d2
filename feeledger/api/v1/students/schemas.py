"""Students (enrollment) schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Union
from uuid import UUID

from pydantic import AliasChoices, BaseModel, EmailStr, Field, model_validator

from feeledger.core.enums import LedgerState, PaymentMethod
from feeledger.ledger.snapshot import ledger_fields

from feeledger.api.v1.payments.schemas import LedgerSnapshot


class StudentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: str = Field(..., min_length=1, max_length=50)
    batch_name: Optional[str] = Field(None, max_length=255, validation_alias=AliasChoices("batch_name", "batchName"))
    enrollment_date: Optional[datetime] = Field(
        None,
        validation_alias=AliasChoices("enrollment_date", "enrollmentDate"),
    )
    total_fee: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    # First payment collected at enrollment; recorded as a completed payment
    initial_payment: Optional[Union[Decimal, str]] = Field(
        None,
        validation_alias=AliasChoices("initial_payment", "initialPayment"),
    )
    payment_method: Optional[PaymentMethod] = Field(
        None,
        validation_alias=AliasChoices("payment_method", "paymentMethod"),
    )
    reference: Optional[str] = Field(None, max_length=100)
    payment_notes: Optional[str] = Field(None, validation_alias=AliasChoices("payment_notes", "paymentNotes"))

    @model_validator(mode="before")
    @classmethod
    def _canonical_fee_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = ledger_fields(data)
        # Enrollment forms send the first payment as fee_paid
        paid = data.pop("fee_paid", None)
        if paid is not None and "initial_payment" not in data and "initialPayment" not in data:
            data["initial_payment"] = paid
        # fee_due is always derived
        data.pop("fee_due", None)
        return data


class StudentUpdate(BaseModel):
    """Profile fields and total fee. The paid / due side of the ledger only moves through payments."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, min_length=1, max_length=50)
    batch_name: Optional[str] = Field(None, max_length=255, validation_alias=AliasChoices("batch_name", "batchName"))
    enrollment_date: Optional[datetime] = Field(
        None,
        validation_alias=AliasChoices("enrollment_date", "enrollmentDate"),
    )
    total_fee: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    is_active: Optional[bool] = Field(None, validation_alias=AliasChoices("is_active", "isActive"))

    @model_validator(mode="before")
    @classmethod
    def _canonical_fee_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = ledger_fields(data)
        if "fee_paid" in data or "fee_due" in data:
            raise ValueError("fee_paid and fee_due change only through payments")
        return data


class StudentResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    name: str
    email: Optional[str] = None
    phone: str
    batch_name: Optional[str] = None
    enrollment_date: datetime
    total_fee: Decimal
    fee_paid: Decimal
    fee_due: Decimal
    fee_state: LedgerState
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class StudentLedgerResponse(BaseModel):
    student_id: UUID
    total_fee: Decimal
    fee_paid: Decimal
    fee_due: Decimal
    fee_state: LedgerState
    payments_total: Decimal = Field(..., description="Sum of completed payments")
    drift: Decimal = Field(..., description="fee_paid minus payments_total; 0 when the ledger matches history")


class LedgerReconciliation(BaseModel):
    student_id: UUID
    before: LedgerSnapshot
    after: LedgerSnapshot
    drift: Decimal
    changed: bool
