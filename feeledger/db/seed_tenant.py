"""
Bootstrap script: create tables and the first tenant for a fresh database.

Run once with env set:
  DATABASE_URL=postgresql+asyncpg://...
  DEFAULT_TENANT_NAME="Acme Training Institute"

Creates:
- all tables of this service (if not present)
- tenants: one row with organization_name = DEFAULT_TENANT_NAME (if not exists)
"""
import asyncio
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.core.config import settings
from feeledger.core.models import Tenant
from feeledger.db.session import AsyncSessionLocal, create_all

DEFAULT_TENANT_NAME = "Default Institute"


async def seed_tenant(db: AsyncSession, name: Optional[str] = None) -> Tenant:
    name = name or settings.default_tenant_name or DEFAULT_TENANT_NAME
    result = await db.execute(select(Tenant).where(Tenant.organization_name == name))
    tenant = result.scalar_one_or_none()
    if tenant:
        print(f"Tenant '{name}' already exists: {tenant.id}")
        return tenant
    tenant = Tenant(organization_name=name, status="ACTIVE")
    db.add(tenant)
    await db.commit()
    print(f"Created tenant '{name}': {tenant.id}")
    return tenant


async def main() -> None:
    await create_all()
    async with AsyncSessionLocal() as db:
        await seed_tenant(db)


if __name__ == "__main__":
    asyncio.run(main())
