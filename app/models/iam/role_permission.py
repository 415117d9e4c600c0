from sqlalchemy import Column, String, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from app.database.session import Base

class RolePermission(Base):
    __tablename__ = "iam_role_permissions"

    role_id = Column(String(36), ForeignKey("iam_roles.id", ondelete="CASCADE"), primary_key=True)
    permission_id = Column(String(36), ForeignKey("iam_permissions.id", ondelete="CASCADE"), primary_key=True)
    granted_at = Column(DateTime, default=func.now(), nullable=False)
    granted_by = Column(String(36), nullable=True)

    # Relationships
    role = relationship("Role", back_populates="permission_bindings")
    permission = relationship("Permission", back_populates="role_bindings")
