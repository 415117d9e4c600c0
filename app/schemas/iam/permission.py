from pydantic import BaseModel, Field, ConfigDict, model_validator
from typing import Optional, List
from datetime import datetime

from common_utils.auth.permission_matcher import (
    format_permission_name, parse_permission_name,
)


class PermissionBase(BaseModel):
    description: Optional[str] = None


class PermissionCreate(PermissionBase):
    """Either ``name`` or both ``resource`` and ``action`` must be given."""
    name: Optional[str] = Field(None, max_length=100)
    resource: Optional[str] = Field(None, max_length=50)
    action: Optional[str] = Field(None, max_length=50)

    @model_validator(mode="after")
    def derive_name(self):
        if self.name:
            resource, action = parse_permission_name(self.name)
            if self.resource and self.resource != resource:
                raise ValueError("resource does not match permission name")
            if self.action and self.action != action:
                raise ValueError("action does not match permission name")
            self.resource, self.action = resource, action
        elif self.resource and self.action:
            self.name = format_permission_name(self.resource, self.action)
            parse_permission_name(self.name)
        else:
            raise ValueError("Provide a permission name or both resource and action")
        return self


class PermissionUpdate(BaseModel):
    description: Optional[str] = None


class PermissionResponse(PermissionBase):
    id: str
    name: str
    resource: str
    action: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PermissionRoleSummary(BaseModel):
    id: str
    name: str
    user_count: int = 0


class PermissionWithRolesResponse(PermissionResponse):
    roles: List[PermissionRoleSummary] = []


class PermissionPaginationResponse(BaseModel):
    total: int
    items: List[PermissionResponse]

    model_config = ConfigDict(from_attributes=True)


class PermissionCheckResult(BaseModel):
    has_permission: bool
    source: Optional[str] = None


class PermissionCheckRequest(BaseModel):
    user_id: str
    permission: str = Field(..., min_length=3, max_length=100)


class RolePermissionReplace(BaseModel):
    permission_ids: List[str] = []


class RolePermissionUpdate(BaseModel):
    add: List[str] = []
    remove: List[str] = []

    @model_validator(mode="after")
    def require_change(self):
        if not self.add and not self.remove:
            raise ValueError("At least one of add/remove must be non-empty")
        return self
