from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class CurrentUser(BaseModel):
    id: UUID
    tenant_id: UUID
    role: str
    name: Optional[str] = None
