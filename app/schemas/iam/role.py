from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import datetime
from app.schemas.iam.permission import PermissionResponse

class RoleBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = None
    is_system: bool = False
    is_active: bool = True

class RoleCreate(RoleBase):
    permission_ids: List[str] = []

class RoleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = None
    is_active: Optional[bool] = None
    permission_ids: Optional[List[str]] = None

class RoleResponse(RoleBase):
    id: str
    permissions: List[PermissionResponse] = []
    user_count: int = 0
    permission_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class RolePaginationResponse(BaseModel):
    total: int
    items: List[RoleResponse]

    model_config = ConfigDict(from_attributes=True)

class RoleClone(BaseModel):
    new_role_name: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = None
    include_permissions: bool = True
    include_menu_permissions: bool = False

class RoleIds(BaseModel):
    role_ids: List[str] = Field(..., min_length=1)

class UserIds(BaseModel):
    user_ids: List[str] = Field(..., min_length=1)

class RoleStatistics(BaseModel):
    total: int
    system: int
    custom: int
    with_users: int
    without_users: int
    avg_permissions_per_role: float
