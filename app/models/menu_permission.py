from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from app.database.session import Base


class MenuPermission(Base):
    __tablename__ = "menu_permissions"

    menu_id = Column(String(10), ForeignKey("menus.id", ondelete="CASCADE"), primary_key=True)
    role_id = Column(String(36), ForeignKey("iam_roles.id", ondelete="CASCADE"), primary_key=True)
    can_view = Column(Boolean, default=False, nullable=False)
    can_edit = Column(Boolean, default=False, nullable=False)
    can_delete = Column(Boolean, default=False, nullable=False)
    can_export = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    menu = relationship("Menu", back_populates="permissions")
    role = relationship("Role", back_populates="menu_permissions")
