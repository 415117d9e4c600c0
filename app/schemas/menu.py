from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

MENU_ID_PATTERN = r"^[A-Za-z0-9]{1,10}$"
MenuTarget = Literal["_self", "_blank", "_parent", "_top"]


class MenuBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    href: Optional[str] = Field(None, max_length=255)
    icon: Optional[str] = Field(None, max_length=50)
    target: MenuTarget = "_self"
    order_index: Optional[int] = Field(None, ge=0)
    is_active: bool = True


class MenuCreate(MenuBase):
    id: str = Field(..., pattern=MENU_ID_PATTERN, description="Short alphanumeric menu code")
    parent_id: Optional[str] = Field(None, pattern=MENU_ID_PATTERN)


class MenuUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=100)
    href: Optional[str] = Field(None, max_length=255)
    icon: Optional[str] = Field(None, max_length=50)
    target: Optional[MenuTarget] = None
    order_index: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None
    parent_id: Optional[str] = Field(None, pattern=MENU_ID_PATTERN)


class MenuMove(BaseModel):
    parent_id: Optional[str] = Field(None, pattern=MENU_ID_PATTERN)
    order_index: Optional[int] = Field(None, ge=0)


class MenuReorderItem(BaseModel):
    id: str
    order_index: int = Field(..., ge=0)


class MenuReorder(BaseModel):
    items: List[MenuReorderItem] = Field(..., min_length=1)


class MenuResponse(MenuBase):
    id: str
    parent_id: Optional[str] = None
    order_index: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class MenuTreeNode(BaseModel):
    """One node of a menu tree as sent to clients (camelCase keys)."""
    id: str
    title: str
    href: Optional[str] = None
    icon: Optional[str] = None
    target: str = "_self"
    order_index: int = 0
    is_active: bool = True
    can_view: bool = False
    can_edit: bool = False
    can_delete: bool = False
    can_export: bool = False
    children: List["MenuTreeNode"] = []

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MenuFlags(BaseModel):
    can_view: Optional[bool] = None
    can_edit: Optional[bool] = None
    can_delete: Optional[bool] = None
    can_export: Optional[bool] = None

    def as_dict(self) -> Dict[str, bool]:
        """Flags that were given; unset flags are left out."""
        return {k: v for k, v in self.model_dump(include=set(MenuFlags.model_fields)).items() if v is not None}


class MenuPermissionEntry(MenuFlags):
    menu_id: str


class MenuPermissionResponse(BaseModel):
    menu_id: str
    role_id: str
    can_view: bool
    can_edit: bool
    can_delete: bool
    can_export: bool

    model_config = ConfigDict(from_attributes=True)


class RoleMenuPermissionsReplace(BaseModel):
    permissions: List[MenuPermissionEntry] = []


class RoleMenuPermissionsUpdate(BaseModel):
    permissions: List[MenuPermissionEntry] = Field(..., min_length=1)


class MenuPermissionBatchUpdate(BaseModel):
    """Unset flags keep their stored value; a binding left with no flag is deleted."""
    role_id: str
    permissions: List[MenuPermissionEntry] = Field(..., min_length=1)
    apply_to_children: bool = False


class MenuAccessResult(BaseModel):
    allowed: bool
    reason: Optional[str] = None
    roles_that_grant_access: List[str] = []


class MenuFlagSet(BaseModel):
    can_view: bool = False
    can_edit: bool = False
    can_delete: bool = False
    can_export: bool = False


class RoleMenuMatrix(BaseModel):
    role_id: str
    role_name: str
    permissions: Dict[str, MenuFlagSet] = {}


class MenuStatistics(BaseModel):
    total: int
    active: int
    inactive: int
    top_level: int
    max_depth: int
    avg_children_per_parent: float
