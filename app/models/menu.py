from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, CheckConstraint, func
from sqlalchemy.orm import relationship
from app.database.session import Base


class Menu(Base):
    __tablename__ = "menus"

    id = Column(String(10), primary_key=True)  # short alphanumeric code
    parent_id = Column(String(10), ForeignKey("menus.id"), nullable=True, index=True)
    title = Column(String(100), nullable=False)
    href = Column(String(255), nullable=True)
    icon = Column(String(50), nullable=True)
    target = Column(String(20), default="_self", nullable=False)
    order_index = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    permissions = relationship("MenuPermission", back_populates="menu", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint(
            "target IN ('_self', '_blank', '_parent', '_top')",
            name="ck_menu_target"
        ),
    )
