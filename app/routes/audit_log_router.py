from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import Optional
from datetime import datetime
from app.database.session import get_db
from app.schemas.audit_log import AuditLogResponse, AuditLogFilter, AuditLogListResponse
from app.services.audit_service import audit_service
from app.utils.response_utils import ResponseWrapper
from common_utils.auth.permission_checker import PermissionChecker
from app.core.logging_config import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/audit-logs", tags=["audit-logs"])


@router.get("/", response_model=dict, status_code=status.HTTP_200_OK)
def get_audit_logs(
    user_id: Optional[str] = Query(None, description="Actor user ID"),
    action: Optional[str] = Query(None, description="Exact action, e.g. role:permissions_replace"),
    resource: Optional[str] = Query(None, description="Resource kind, e.g. role"),
    resource_id: Optional[str] = Query(None, description="Affected row ID"),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=200, description="Items per page"),
    db: Session = Depends(get_db),
    _=Depends(PermissionChecker(["audit_log:read"])),
):
    """
    Audit entries, newest first.

    Example: GET /api/v1/audit-logs?resource=role&resource_id=<role id>
    """
    filters = AuditLogFilter(
        user_id=user_id,
        action=action,
        resource=resource,
        resource_id=resource_id,
        start_date=start_date,
        end_date=end_date,
        page=page,
        page_size=page_size,
    )
    records, total = audit_service.list_logs(db, filters)
    logger.info(f"Fetched {len(records)} audit logs (total: {total})")

    return ResponseWrapper.success(
        data=AuditLogListResponse(
            total=total,
            page=page,
            page_size=page_size,
            items=[AuditLogResponse.model_validate(r) for r in records],
        ),
        message="Audit logs retrieved successfully",
    )


@router.get("/statistics", response_model=dict, status_code=status.HTTP_200_OK)
def get_audit_statistics(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    _=Depends(PermissionChecker(["audit_log:read"])),
):
    """Entry counts by action, resource, user and day"""
    return ResponseWrapper.success(
        data=audit_service.get_statistics(db, start_date=start_date, end_date=end_date),
        message="Audit statistics retrieved successfully",
    )


@router.get("/{audit_id}", response_model=dict, status_code=status.HTTP_200_OK)
def get_audit_log(
    audit_id: str,
    db: Session = Depends(get_db),
    _=Depends(PermissionChecker(["audit_log:read"])),
):
    entry = audit_service.get_log(db, audit_id)
    return ResponseWrapper.success(data=AuditLogResponse.model_validate(entry))
