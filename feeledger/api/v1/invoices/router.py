"""Invoices router: PDF downloads for a payment and for a student's whole payment history."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.auth.dependencies import get_current_user
from feeledger.auth.schemas import CurrentUser
from feeledger.core.exceptions import ServiceError
from feeledger.db.session import get_db

from . import service

router = APIRouter(prefix="/api/v1", tags=["invoices"])


def _pdf_response(filename: str, content: bytes) -> Response:
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/payments/{payment_id}/invoice")
async def get_payment_invoice(
    payment_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> Response:
    try:
        filename, content = await service.payment_invoice(db, current_user.tenant_id, payment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    return _pdf_response(filename, content)


@router.get("/students/{student_id}/invoice")
async def get_student_invoice(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> Response:
    try:
        filename, content = await service.student_invoice(db, current_user.tenant_id, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    return _pdf_response(filename, content)
