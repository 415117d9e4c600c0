from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List
from datetime import datetime


class AuditLogBase(BaseModel):
    user_id: Optional[str] = None
    action: str  # 'role:permissions_replace', 'menu_permission:update', etc.
    resource: Optional[str] = None
    resource_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class AuditLogCreate(AuditLogBase):
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class AuditLogResponse(AuditLogBase):
    id: str
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class AuditLogFilter(BaseModel):
    user_id: Optional[str] = None
    action: Optional[str] = None
    resource: Optional[str] = None
    resource_id: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=50, ge=1, le=200)


class AuditLogListResponse(BaseModel):
    total: int
    page: int
    page_size: int
    items: List[AuditLogResponse]


class AuditUserActivity(BaseModel):
    user_id: str
    username: Optional[str] = None
    email: Optional[str] = None
    count: int


class AuditDayCount(BaseModel):
    date: str
    count: int


class AuditStatistics(BaseModel):
    total_logs: int
    by_action: Dict[str, int] = {}
    by_resource: Dict[str, int] = {}
    by_user: List[AuditUserActivity] = []
    by_day: List[AuditDayCount] = []
