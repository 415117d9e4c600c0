from sqlalchemy import Column, String, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from app.database.session import Base

class UserRole(Base):
    __tablename__ = "iam_user_roles"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    role_id = Column(String(36), ForeignKey("iam_roles.id", ondelete="CASCADE"), primary_key=True)
    assigned_at = Column(DateTime, default=func.now(), nullable=False)
    assigned_by = Column(String(36), nullable=True)

    # Relationships
    role = relationship("Role", back_populates="user_bindings")
    user = relationship("User", back_populates="role_bindings")
