import uuid

from sqlalchemy import Column, String, Boolean, DateTime, Text, func
from sqlalchemy.orm import relationship
from app.database.session import Base

class Role(Base):
    __tablename__ = "iam_roles"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(50), nullable=False, unique=True)
    description = Column(Text)
    is_active = Column(Boolean, default=True, nullable=False)
    is_system = Column(Boolean, default=False, nullable=False)  # bindings immutable through admin endpoints

    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    permission_bindings = relationship("RolePermission", back_populates="role", cascade="all, delete-orphan")
    user_bindings = relationship("UserRole", back_populates="role", cascade="all, delete-orphan")
    menu_permissions = relationship("MenuPermission", back_populates="role", cascade="all, delete-orphan")

    @property
    def permissions(self):
        return [binding.permission for binding in self.permission_bindings]
