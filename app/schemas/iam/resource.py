from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional, List
from datetime import datetime

from common_utils.auth.permission_matcher import SEGMENT_RE


class ResourceBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        if not SEGMENT_RE.match(value):
            raise ValueError("Resource can only contain letters, numbers, underscores, and hyphens")
        return value


class ResourceCreate(ResourceBase):
    pass


class ResourceUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not SEGMENT_RE.match(value):
            raise ValueError("Resource can only contain letters, numbers, underscores, and hyphens")
        return value


class ResourceResponse(ResourceBase):
    id: str
    permission_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ResourcePaginationResponse(BaseModel):
    total: int
    items: List[ResourceResponse]
