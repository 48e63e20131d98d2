import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, String, Uuid
from sqlalchemy.orm import relationship

from feeledger.db.session import Base


class Tenant(Base):
    """Institute (organization) in the multi-tenant platform. Every ledger row belongs to one tenant."""

    __tablename__ = "tenants"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_name = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False, default="ACTIVE")
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    students = relationship("Student", back_populates="tenant", cascade="all, delete-orphan")
