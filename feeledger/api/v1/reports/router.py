"""Fees router: summary, ledger report, Excel export, audit trail."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.auth.dependencies import get_current_user, require_fee_manager
from feeledger.auth.schemas import CurrentUser
from feeledger.core.enums import LedgerState
from feeledger.db.session import get_db

from .schemas import FeeAuditLogResponse, FeeReportItem, FeeSummary
from . import service

router = APIRouter(prefix="/api/v1/fees", tags=["fees"])


@router.get("/summary", response_model=FeeSummary)
async def get_fee_summary(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeSummary:
    return await service.get_fee_summary(db, current_user.tenant_id)


@router.get("/report", response_model=List[FeeReportItem])
async def get_fee_report(
    fee_state: Optional[LedgerState] = Query(None, alias="state", description="Filter by state: unpaid, partial, paid"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[FeeReportItem]:
    return await service.get_ledger_report(db, current_user.tenant_id, state=fee_state)


@router.get("/report/export")
async def export_fee_report(
    fee_state: Optional[LedgerState] = Query(None, alias="state"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_fee_manager),
) -> Response:
    items = await service.get_ledger_report(db, current_user.tenant_id, state=fee_state)
    content = service.build_ledger_report_excel(items)
    return Response(
        content=content,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": "attachment; filename=fee_ledger_report.xlsx"},
    )


@router.get("/audit/{student_id}", response_model=List[FeeAuditLogResponse])
async def get_student_audit_log(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_fee_manager),
) -> List[FeeAuditLogResponse]:
    return await service.list_student_audit_log(db, current_user.tenant_id, student_id)
