"""Payments schemas."""

from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any, List, Optional, Union
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from feeledger.core.enums import PaymentMethod, PaymentStatus


def normalize_payment_datetime(value: Any) -> Any:
    """Date-only input means midnight UTC; naive datetimes are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, str) and len(value.strip()) == 10:
        value = date.fromisoformat(value.strip())
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class LedgerSnapshot(BaseModel):
    """Student ledger after a write."""

    total_fee: Decimal
    fee_paid: Decimal
    fee_due: Decimal


class PaymentCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    student_id: UUID = Field(
        ...,
        validation_alias=AliasChoices("student_id", "studentId", "enrollment_id", "enrollmentId"),
    )
    # Kept loose on purpose: a bad amount is answered with InvalidAmount, not a 422
    amount: Union[Decimal, str]
    payment_date: Optional[datetime] = Field(None, validation_alias=AliasChoices("payment_date", "paymentDate"))
    payment_method: PaymentMethod = Field(
        ...,
        validation_alias=AliasChoices("payment_method", "paymentMethod"),
    )
    status: PaymentStatus = PaymentStatus.completed
    transaction_reference: Optional[str] = Field(
        None,
        max_length=100,
        validation_alias=AliasChoices("transaction_reference", "transactionReference", "reference"),
    )
    notes: Optional[str] = None
    next_payment_due_date: Optional[datetime] = Field(
        None,
        validation_alias=AliasChoices("next_payment_due_date", "nextPaymentDueDate"),
    )

    @field_validator("payment_date", "next_payment_due_date", mode="before")
    @classmethod
    def _dates(cls, v: Any) -> Any:
        return normalize_payment_datetime(v)


class PaymentUpdate(BaseModel):
    """Partial update. Only fields present in the request body are applied."""

    model_config = ConfigDict(populate_by_name=True)

    amount: Optional[Union[Decimal, str]] = None
    payment_date: Optional[datetime] = Field(None, validation_alias=AliasChoices("payment_date", "paymentDate"))
    payment_method: Optional[PaymentMethod] = Field(
        None,
        validation_alias=AliasChoices("payment_method", "paymentMethod"),
    )
    status: Optional[PaymentStatus] = None
    transaction_reference: Optional[str] = Field(
        None,
        max_length=100,
        validation_alias=AliasChoices("transaction_reference", "transactionReference", "reference"),
    )
    notes: Optional[str] = None
    next_payment_due_date: Optional[datetime] = Field(
        None,
        validation_alias=AliasChoices("next_payment_due_date", "nextPaymentDueDate"),
    )

    @field_validator("payment_date", "next_payment_due_date", mode="before")
    @classmethod
    def _dates(cls, v: Any) -> Any:
        return normalize_payment_datetime(v)


class PaymentResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    student_id: UUID
    amount: Decimal
    payment_date: datetime
    payment_method: PaymentMethod
    status: PaymentStatus
    transaction_reference: Optional[str] = None
    notes: Optional[str] = None
    receipt_number: str
    next_payment_due_date: Optional[datetime] = None
    collected_by: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime
    ledger: Optional[LedgerSnapshot] = None

    class Config:
        from_attributes = True
