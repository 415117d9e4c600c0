import uuid

from sqlalchemy import Column, String, DateTime, JSON, func, Index
from app.database.session import Base


class AuditLog(Base):
    """Append-only record of authorization-relevant mutations."""
    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=True, index=True)
    action = Column(String(100), nullable=False, index=True)  # e.g. 'role:permissions_replace'
    resource = Column(String(50), nullable=True)
    resource_id = Column(String(100), nullable=True)
    details = Column(JSON, nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=func.now(), nullable=False, index=True)

    __table_args__ = (
        Index('idx_audit_resource', 'resource', 'resource_id'),
        {"extend_existing": True}
    )
