"""Payment and ledger writes commit together, roll back together, and retry on stale versions."""

from decimal import Decimal
from uuid import UUID

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from feeledger.core.config import settings
from feeledger.core.models import FeeAuditLog, Payment, Student
from feeledger.api.v1.payments import service as payment_service

from conftest import enroll, pay


async def _counts(db_session: AsyncSession) -> tuple:
    payments = (await db_session.execute(select(func.count()).select_from(Payment))).scalar_one()
    logs = (await db_session.execute(select(func.count()).select_from(FeeAuditLog))).scalar_one()
    return payments, logs


@pytest.mark.asyncio
async def test_failed_commit_leaves_no_partial_state(
    client: AsyncClient, db_session: AsyncSession, monkeypatch
) -> None:
    student = await enroll(client, total_fee="10000")
    before = await _counts(db_session)

    async def failing_commit() -> None:
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    monkeypatch.setattr(db_session, "commit", failing_commit)
    response = await pay(client, student["id"], "4000")
    monkeypatch.undo()

    assert response.status_code == 500
    assert response.json()["detail"]["code"] == "PersistenceFailure"
    assert await _counts(db_session) == before
    row = (
        await db_session.execute(
            select(Student).where(Student.id == UUID(student["id"])).execution_options(populate_existing=True)
        )
    ).scalar_one()
    assert (row.fee_paid, row.fee_due) == (Decimal("0"), Decimal("10000"))


@pytest.mark.asyncio
async def test_stale_version_is_retried_once_and_applied_once(
    client: AsyncClient, db_session: AsyncSession, monkeypatch
) -> None:
    student = await enroll(client, total_fee="10000")
    real_commit = db_session.commit
    calls = []

    async def flaky_commit() -> None:
        calls.append(1)
        if len(calls) == 1:
            raise StaleDataError("students row changed by another writer")
        await real_commit()

    monkeypatch.setattr(db_session, "commit", flaky_commit)
    response = await pay(client, student["id"], "4000")
    monkeypatch.undo()

    assert response.status_code == 201, response.text
    assert len(calls) == 2
    payments = (await db_session.execute(select(Payment))).scalars().all()
    assert len(payments) == 1
    assert Decimal(response.json()["ledger"]["fee_paid"]) == Decimal("4000")


@pytest.mark.asyncio
async def test_stale_version_gives_up_after_configured_attempts(
    client: AsyncClient, db_session: AsyncSession, monkeypatch
) -> None:
    student = await enroll(client, total_fee="10000")
    calls = []

    async def always_stale() -> None:
        calls.append(1)
        raise StaleDataError("students row changed by another writer")

    monkeypatch.setattr(db_session, "commit", always_stale)
    response = await pay(client, student["id"], "4000")
    monkeypatch.undo()

    assert response.status_code == 500
    assert response.json()["detail"]["code"] == "PersistenceFailure"
    assert len(calls) == settings.ledger_max_retries
    assert (await db_session.execute(select(Payment))).scalars().all() == []


@pytest.mark.asyncio
async def test_resummation_mode_rebuilds_paid_from_history(
    client: AsyncClient, db_session: AsyncSession, monkeypatch
) -> None:
    student = await enroll(client, total_fee="10000", initial_payment="1000", payment_method="cash")
    # Drifted aggregate: history says 1000 was paid
    row = (await db_session.execute(select(Student).where(Student.id == UUID(student["id"])))).scalar_one()
    row.fee_paid = Decimal("3000")
    row.fee_due = Decimal("7000")
    await db_session.commit()

    monkeypatch.setattr(settings, "ledger_resum_on_write", True)
    response = await pay(client, student["id"], "500")

    assert response.status_code == 201
    ledger = response.json()["ledger"]
    assert Decimal(ledger["fee_paid"]) == Decimal("1500")
    assert Decimal(ledger["fee_due"]) == Decimal("8500")


@pytest.mark.asyncio
async def test_unexpected_error_rolls_back_payment_and_ledger(
    client: AsyncClient, db_session: AsyncSession, monkeypatch
) -> None:
    student = await enroll(client, total_fee="10000")
    before = await _counts(db_session)

    async def broken_audit(*args, **kwargs) -> None:
        raise RuntimeError("audit sink unavailable")

    monkeypatch.setattr(payment_service, "log_fee_audit", broken_audit)
    with pytest.raises(RuntimeError):
        await pay(client, student["id"], "4000")
    monkeypatch.undo()

    assert await _counts(db_session) == before
    row = (
        await db_session.execute(
            select(Student).where(Student.id == UUID(student["id"])).execution_options(populate_existing=True)
        )
    ).scalar_one()
    assert (row.fee_paid, row.fee_due) == (Decimal("0"), Decimal("10000"))


@pytest.mark.asyncio
async def test_receipt_number_already_used_is_redrawn(
    client: AsyncClient, db_session: AsyncSession, monkeypatch
) -> None:
    student = await enroll(client, total_fee="10000")
    first = (await pay(client, student["id"], "100")).json()

    numbers = iter([first["receipt_number"], "RCT-250101-FRESH1"])
    monkeypatch.setattr(payment_service, "generate_receipt_number", lambda paid_at=None: next(numbers))
    response = await pay(client, student["id"], "200")

    assert response.status_code == 201, response.text
    assert response.json()["receipt_number"] == "RCT-250101-FRESH1"


@pytest.mark.asyncio
async def test_receipt_number_gives_up_after_repeated_collisions(
    client: AsyncClient, db_session: AsyncSession, monkeypatch
) -> None:
    student = await enroll(client, total_fee="10000")
    first = (await pay(client, student["id"], "100")).json()

    monkeypatch.setattr(payment_service, "generate_receipt_number", lambda paid_at=None: first["receipt_number"])
    response = await pay(client, student["id"], "200")

    assert response.status_code == 500
    assert response.json()["detail"]["code"] == "ServiceError"
    assert len((await db_session.execute(select(Payment))).scalars().all()) == 1
