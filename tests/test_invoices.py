from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.core.models import Tenant
from feeledger.main import app

from conftest import enroll, make_token, pay


def _assert_pdf(response, filename: str) -> None:
    assert response.status_code == 200, response.text
    assert response.headers["content-type"] == "application/pdf"
    assert filename in response.headers["content-disposition"]
    assert response.content.startswith(b"%PDF")


@pytest.mark.asyncio
async def test_payment_invoice_is_a_pdf(client: AsyncClient) -> None:
    student = await enroll(client, total_fee="10000", email="asha@example.com", batch_name="Full Stack - Jan")
    payment = (
        await pay(
            client,
            student["id"],
            "4000",
            notes="Paid <cash> & counter receipt",
            next_payment_due_date="2025-06-01",
        )
    ).json()

    response = await client.get(f"/api/v1/payments/{payment['id']}/invoice")
    _assert_pdf(response, f"invoice-{payment['receipt_number']}.pdf")


@pytest.mark.asyncio
async def test_student_invoice_covers_every_payment(client: AsyncClient) -> None:
    student = await enroll(client, total_fee="10000", initial_payment="1000", payment_method="upi")
    await pay(client, student["id"], "2000")
    await pay(client, student["id"], "500", status="pending")

    response = await client.get(f"/api/v1/students/{student['id']}/invoice")
    _assert_pdf(response, f"consolidated-invoice-{student['id']}.pdf")


@pytest.mark.asyncio
async def test_student_invoice_without_payments_is_not_found(client: AsyncClient) -> None:
    student = await enroll(client, total_fee="10000")
    response = await client.get(f"/api/v1/students/{student['id']}/invoice")
    assert response.status_code == 404
    assert response.json()["detail"]["message"] == "No payments found for this student"


@pytest.mark.asyncio
async def test_invoice_for_missing_records_is_not_found(client: AsyncClient) -> None:
    response = await client.get(f"/api/v1/payments/{uuid4()}/invoice")
    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "PaymentNotFound"

    response = await client.get(f"/api/v1/students/{uuid4()}/invoice")
    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "StudentNotFound"


@pytest.mark.asyncio
async def test_invoices_are_scoped_to_the_tenant(client: AsyncClient, db_session: AsyncSession) -> None:
    student = await enroll(client, total_fee="1000")
    payment = (await pay(client, student["id"], "100")).json()

    other = Tenant(organization_name="Other Institute", status="ACTIVE")
    db_session.add(other)
    await db_session.commit()

    headers = {"Authorization": f"Bearer {make_token(other.id, role='trainer')}"}
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test", headers=headers) as ac:
        assert (await ac.get(f"/api/v1/payments/{payment['id']}/invoice")).status_code == 404
        assert (await ac.get(f"/api/v1/students/{student['id']}/invoice")).status_code == 404
