import io
from decimal import Decimal

import pytest
from httpx import AsyncClient
from openpyxl import load_workbook

from conftest import enroll, pay


@pytest.mark.asyncio
async def test_fee_summary(client: AsyncClient) -> None:
    await enroll(client, total_fee="10000", name="Unpaid Student")
    partial = await enroll(client, total_fee="5000", name="Partial Student")
    await pay(client, partial["id"], "2000")
    await enroll(client, total_fee="3000", name="Paid Student", initial_payment="3000", payment_method="upi")

    summary = (await client.get("/api/v1/fees/summary")).json()
    assert Decimal(summary["total_fees"]) == Decimal("18000")
    assert Decimal(summary["collected"]) == Decimal("5000")
    assert Decimal(summary["pending"]) == Decimal("13000")
    assert Decimal(summary["payments_total"]) == Decimal("5000")
    assert summary["students"] == 3
    assert (summary["paid_count"], summary["partial_count"], summary["unpaid_count"]) == (1, 1, 1)


@pytest.mark.asyncio
async def test_report_filter_and_export(client: AsyncClient) -> None:
    await enroll(client, total_fee="10000", name="Unpaid Student")
    partial = await enroll(client, total_fee="5000", name="Partial Student", batchName="Data Science")
    await pay(client, partial["id"], "2000")

    rows = (await client.get("/api/v1/fees/report", params={"state": "partial"})).json()
    assert [r["student_name"] for r in rows] == ["Partial Student"]
    assert Decimal(rows[0]["drift"]) == Decimal("0")

    response = await client.get("/api/v1/fees/report/export")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )
    ws = load_workbook(io.BytesIO(response.content)).active
    values = list(ws.iter_rows(values_only=True))
    assert values[0][0] == "Student"
    assert [v[0] for v in values[1:]] == ["Partial Student", "Unpaid Student"]
    assert values[1][1] == "Data Science"
    assert values[1][3] == 2000


@pytest.mark.asyncio
async def test_audit_trail_follows_payment_lifecycle(client: AsyncClient) -> None:
    student = await enroll(client, total_fee="1000")
    payment = (await pay(client, student["id"], "400")).json()
    await client.put(f"/api/v1/payments/{payment['id']}", json={"amount": "500"})
    await client.delete(f"/api/v1/payments/{payment['id']}")

    logs = (await client.get(f"/api/v1/fees/audit/{student['id']}")).json()
    payment_actions = [log["action_type"] for log in logs if log["reference_table"] == "payments"]
    assert payment_actions == ["CREATE", "UPDATE", "DELETE"]
    ledger_updates = [log for log in logs if log["reference_table"] == "students" and log["action_type"] == "UPDATE"]
    assert [u["new_value"]["delta"] for u in ledger_updates] == ["400.00", "100.00", "-500.00"]
