"""Payments router: record, read, edit and delete payments."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.auth.dependencies import get_current_user, require_fee_manager
from feeledger.auth.schemas import CurrentUser
from feeledger.core.enums import PaymentStatus
from feeledger.core.exceptions import ServiceError
from feeledger.db.session import get_db

from .schemas import PaymentCreate, PaymentResponse, PaymentUpdate
from . import service

router = APIRouter(prefix="/api/v1/payments", tags=["payments"])


@router.post(
    "",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def record_payment(
    payload: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_fee_manager),
) -> PaymentResponse:
    try:
        return await service.record_payment(
            db,
            current_user.tenant_id,
            payload,
            collected_by=current_user.id,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get("", response_model=List[PaymentResponse])
async def list_payments(
    payment_status: Optional[PaymentStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[PaymentResponse]:
    return await service.list_payments(db, current_user.tenant_id, status_filter=payment_status)


@router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment(
    payment_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PaymentResponse:
    try:
        return await service.get_payment(db, current_user.tenant_id, payment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.put("/{payment_id}", response_model=PaymentResponse)
async def update_payment(
    payment_id: UUID,
    payload: PaymentUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_fee_manager),
) -> PaymentResponse:
    try:
        return await service.update_payment(
            db,
            current_user.tenant_id,
            payment_id,
            payload,
            changed_by=current_user.id,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.delete("/{payment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_payment(
    payment_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_fee_manager),
) -> Response:
    try:
        await service.delete_payment(
            db,
            current_user.tenant_id,
            payment_id,
            changed_by=current_user.id,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    return Response(status_code=status.HTTP_204_NO_CONTENT)
