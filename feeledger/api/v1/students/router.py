"""Students router: enrollment, fee ledger view, reconcile, payment history."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.auth.dependencies import get_current_user, require_fee_manager
from feeledger.auth.schemas import CurrentUser
from feeledger.core.enums import PaymentStatus
from feeledger.core.exceptions import ServiceError
from feeledger.db.session import get_db
from feeledger.api.v1.payments import service as payment_service
from feeledger.api.v1.payments.schemas import PaymentResponse

from .schemas import (
    LedgerReconciliation,
    StudentCreate,
    StudentLedgerResponse,
    StudentResponse,
    StudentUpdate,
)
from . import service

router = APIRouter(prefix="/api/v1/students", tags=["students"])


@router.post(
    "",
    response_model=StudentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_student(
    payload: StudentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_fee_manager),
) -> StudentResponse:
    try:
        return await service.create_student(
            db, current_user.tenant_id, payload, changed_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get("", response_model=List[StudentResponse])
async def list_students(
    is_active: Optional[bool] = Query(None),
    search: Optional[str] = Query(None, description="Case-insensitive match on student name"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[StudentResponse]:
    return await service.list_students(
        db, current_user.tenant_id, is_active=is_active, search=search
    )


@router.get("/{student_id}", response_model=StudentResponse)
async def get_student(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentResponse:
    try:
        return await service.get_student(db, current_user.tenant_id, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.put("/{student_id}", response_model=StudentResponse)
async def update_student(
    student_id: UUID,
    payload: StudentUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_fee_manager),
) -> StudentResponse:
    try:
        return await service.update_student(
            db, current_user.tenant_id, student_id, payload, changed_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get("/{student_id}/ledger", response_model=StudentLedgerResponse)
async def get_student_ledger(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentLedgerResponse:
    try:
        return await service.get_student_ledger(db, current_user.tenant_id, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post("/{student_id}/reconcile", response_model=LedgerReconciliation)
async def reconcile_student_ledger(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_fee_manager),
) -> LedgerReconciliation:
    try:
        return await service.reconcile_student_ledger(
            db, current_user.tenant_id, student_id, changed_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get("/{student_id}/payments", response_model=List[PaymentResponse])
async def list_student_payments(
    student_id: UUID,
    payment_status: Optional[PaymentStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[PaymentResponse]:
    try:
        return await payment_service.list_student_payments(
            db, current_user.tenant_id, student_id, status_filter=payment_status
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
