from fastapi import APIRouter, Depends, Request, status, Query
from sqlalchemy.orm import Session
from typing import Optional
from app.database.session import get_db
from app.schemas.iam import (
    PermissionCreate, PermissionUpdate, PermissionResponse, PermissionPaginationResponse,
    PermissionWithRolesResponse, PermissionCheckRequest,
)
from app.services.permission_catalog import permission_catalog
from app.services.permission_resolver import permission_resolver
from app.utils.audit_helper import request_audit_meta
from common_utils.auth.context import AuthContext
from common_utils.auth.permission_checker import PermissionChecker
from app.utils.response_utils import ResponseWrapper
from app.core.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(
    prefix="/permissions",
    tags=["IAM Permissions"]
)


@router.post("/", response_model=dict, status_code=status.HTTP_201_CREATED)
async def create_permission(
    permission: PermissionCreate,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(PermissionChecker(["permission:create"]))
):
    """Create a new permission"""
    new_permission = permission_catalog.create_permission(
        db, permission, actor_id=auth.subject_id, audit_meta=request_audit_meta(request)
    )
    return ResponseWrapper.created(
        data=PermissionResponse.model_validate(new_permission),
        message="Permission created successfully"
    )


@router.get("/", response_model=dict, status_code=status.HTTP_200_OK)
async def get_permissions(
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(100, ge=1, le=100, description="Max number of records to fetch"),
    resource: Optional[str] = Query(None, description="Filter by resource"),
    action: Optional[str] = Query(None, description="Filter by action"),
    search: Optional[str] = Query(None, description="Search name and description"),
    db: Session = Depends(get_db),
    _=Depends(PermissionChecker(["permission:read"]))
):
    """Get a list of permissions with optional filters"""
    filters = {"resource": resource, "action": action, "search": search}
    total, items = permission_catalog.list_permissions(db, filters=filters, skip=skip, limit=limit)

    return ResponseWrapper.success(
        data=PermissionPaginationResponse(
            total=total,
            items=[PermissionResponse.model_validate(p) for p in items]
        ),
        message="Permissions fetched successfully"
    )


@router.post("/check", response_model=dict, status_code=status.HTTP_200_OK)
async def check_user_permission(
    payload: PermissionCheckRequest,
    db: Session = Depends(get_db),
    _=Depends(PermissionChecker(["permission:read"]))
):
    """Evaluate a permission for any user against their current bindings"""
    result = permission_resolver.check_live(db, payload.user_id, payload.permission)
    return ResponseWrapper.success(data=result, message="Permission check completed")


@router.get("/{permission_id}", response_model=dict, status_code=status.HTTP_200_OK)
async def get_permission(
    permission_id: str,
    db: Session = Depends(get_db),
    _=Depends(PermissionChecker(["permission:read"]))
):
    """Get a permission and the roles holding it"""
    permission = permission_catalog.get_permission_with_roles(db, permission_id)
    return ResponseWrapper.success(
        data=PermissionWithRolesResponse(**permission),
        message="Permission fetched successfully"
    )


@router.put("/{permission_id}", response_model=dict, status_code=status.HTTP_200_OK)
async def update_permission(
    permission_id: str,
    permission_update: PermissionUpdate,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(PermissionChecker(["permission:update"]))
):
    """Update a permission's description"""
    permission = permission_catalog.update_permission(
        db, permission_id, permission_update,
        actor_id=auth.subject_id, audit_meta=request_audit_meta(request)
    )
    return ResponseWrapper.updated(
        data=PermissionResponse.model_validate(permission),
        message="Permission updated successfully"
    )


@router.delete("/{permission_id}", response_model=dict, status_code=status.HTTP_200_OK)
async def delete_permission(
    permission_id: str,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(PermissionChecker(["permission:delete"]))
):
    """Delete a permission that no role holds"""
    permission_catalog.delete_permission(
        db, permission_id, actor_id=auth.subject_id, audit_meta=request_audit_meta(request)
    )
    return ResponseWrapper.deleted(message="Permission deleted successfully")
