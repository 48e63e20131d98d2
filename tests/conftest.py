import os
import uuid
from typing import AsyncGenerator, Optional

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from feeledger.core.config import settings
from feeledger.core.models import Tenant
from feeledger.db.session import Base, get_db
from feeledger.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def make_token(tenant_id, role: str = "manager", user_id: Optional[uuid.UUID] = None) -> str:
    claims = {
        "sub": str(user_id or uuid.uuid4()),
        "tenant_id": str(tenant_id),
        "role": role,
    }
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


@pytest.fixture()
async def engine():
    """One in-memory SQLite database per test, shared by every connection of that test."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, future=True, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
async def db_session(engine) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for a test and override FastAPI dependency."""
    async_session = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.clear()


@pytest.fixture()
async def tenant(db_session: AsyncSession) -> Tenant:
    tenant = Tenant(organization_name="Acme Training Institute", status="ACTIVE")
    db_session.add(tenant)
    await db_session.commit()
    return tenant


@pytest.fixture()
async def client(db_session: AsyncSession, tenant: Tenant) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app, authenticated as a manager of the test tenant."""
    headers = {"Authorization": f"Bearer {make_token(tenant.id)}"}
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test", headers=headers) as ac:
        yield ac


async def enroll(client: AsyncClient, total_fee="10000", **extra) -> dict:
    payload = {"name": "Asha Verma", "phone": "+919800000001", "total_fee": total_fee}
    payload.update(extra)
    response = await client.post("/api/v1/students", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


async def pay(client: AsyncClient, student_id: str, amount, **extra):
    payload = {"student_id": student_id, "amount": amount, "payment_method": "cash"}
    payload.update(extra)
    return await client.post("/api/v1/payments", json=payload)
