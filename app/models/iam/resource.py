import uuid

from sqlalchemy import Column, String, Text, DateTime, func
from app.database.session import Base

class Resource(Base):
    __tablename__ = "iam_resources"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(50), nullable=False, unique=True)
    description = Column(Text)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)
