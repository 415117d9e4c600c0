import uuid

from sqlalchemy import Column, String, Text, DateTime, func
from sqlalchemy.orm import relationship
from sqlalchemy.schema import UniqueConstraint, Index
from app.database.session import Base

class Permission(Base):
    __tablename__ = "iam_permissions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=False, unique=True)  # resource:action
    resource = Column(String(50), nullable=False, index=True)  # references Resource.name, not a FK
    action = Column(String(50), nullable=False)  # create, read, update, delete, *
    description = Column(Text)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    role_bindings = relationship("RolePermission", back_populates="permission", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint('resource', 'action', name='uq_permission_resource_action'),
        Index('idx_permission_resource_action', 'resource', 'action'),
    )
