from fastapi import APIRouter, Depends, Request, status, Query
from sqlalchemy.orm import Session
from typing import Optional
from app.database.session import get_db
from app.schemas.auth import UserSummary
from app.schemas.iam import (
    RoleCreate, RoleUpdate, RoleResponse, RolePaginationResponse, RoleClone, RoleIds, UserIds,
    RoleStatistics, RolePermissionReplace, RolePermissionUpdate, PermissionResponse,
)
from app.services.role_service import role_service
from app.utils.audit_helper import request_audit_meta
from common_utils.auth.context import AuthContext
from common_utils.auth.permission_checker import PermissionChecker, require_permission
from app.utils.response_utils import ResponseWrapper
from app.core.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(
    prefix="/roles",
    tags=["IAM Roles"]
)

# Binding changes are checked against live bindings, not the token snapshot
binding_gate = require_permission("role:update", live=True)


def role_response(db: Session, role_id: str) -> RoleResponse:
    return RoleResponse(**role_service.get_role_details(db, role_id))


@router.post("/", response_model=dict, status_code=status.HTTP_201_CREATED)
async def create_role(
    role: RoleCreate,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(PermissionChecker(["role:create"]))
):
    """Create a new role with optional initial permissions"""
    new_role = role_service.create_role(db, role, actor_id=auth.subject_id, audit_meta=request_audit_meta(request))
    return ResponseWrapper.created(
        data=role_response(db, new_role.id),
        message="Role created successfully"
    )


@router.get("/", response_model=dict, status_code=status.HTTP_200_OK)
async def get_roles(
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(100, ge=1, le=100, description="Max number of records to fetch"),
    search: Optional[str] = Query(None, description="Search name and description"),
    is_system: Optional[bool] = Query(None, description="Filter by system flag"),
    is_active: Optional[bool] = Query(None, description="Filter by active flag"),
    db: Session = Depends(get_db),
    _=Depends(PermissionChecker(["role:read"]))
):
    """Get a list of roles with optional filters"""
    filters = {"search": search, "is_system": is_system, "is_active": is_active}
    total, items = role_service.list_roles(db, filters=filters, skip=skip, limit=limit)
    return ResponseWrapper.success(
        data=RolePaginationResponse(total=total, items=[RoleResponse(**item) for item in items]),
        message="Roles fetched successfully"
    )


@router.get("/statistics", response_model=dict, status_code=status.HTTP_200_OK)
async def get_role_statistics(
    db: Session = Depends(get_db),
    _=Depends(PermissionChecker(["role:read"]))
):
    return ResponseWrapper.success(
        data=RoleStatistics(**role_service.get_statistics(db)),
        message="Role statistics fetched successfully"
    )


@router.post("/bulk-delete", response_model=dict, status_code=status.HTTP_200_OK)
async def bulk_delete_roles(
    payload: RoleIds,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(PermissionChecker(["role:delete"]))
):
    """Delete several roles; failures are reported per role"""
    result = role_service.bulk_delete_roles(
        db, payload.role_ids, actor_id=auth.subject_id, audit_meta=request_audit_meta(request)
    )
    return ResponseWrapper.success(data=result, message="Bulk delete completed")


@router.get("/{role_id}", response_model=dict, status_code=status.HTTP_200_OK)
async def get_role(
    role_id: str,
    db: Session = Depends(get_db),
    _=Depends(PermissionChecker(["role:read"]))
):
    return ResponseWrapper.success(
        data=role_response(db, role_id),
        message="Role fetched successfully"
    )


@router.put("/{role_id}", response_model=dict, status_code=status.HTTP_200_OK)
async def update_role(
    role_id: str,
    role_update: RoleUpdate,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(PermissionChecker(["role:update"]))
):
    role = role_service.update_role(
        db, role_id, role_update, actor_id=auth.subject_id, audit_meta=request_audit_meta(request)
    )
    return ResponseWrapper.updated(
        data=role_response(db, role.id),
        message="Role updated successfully"
    )


@router.delete("/{role_id}", response_model=dict, status_code=status.HTTP_200_OK)
async def delete_role(
    role_id: str,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(PermissionChecker(["role:delete"]))
):
    role_service.delete_role(db, role_id, actor_id=auth.subject_id, audit_meta=request_audit_meta(request))
    return ResponseWrapper.deleted(message="Role deleted successfully")


@router.get("/{role_id}/permissions", response_model=dict, status_code=status.HTTP_200_OK)
async def get_role_permissions(
    role_id: str,
    db: Session = Depends(get_db),
    _=Depends(PermissionChecker(["role:read", "permission:read"], require_all=True))
):
    permissions = role_service.get_role_permissions(db, role_id)
    return ResponseWrapper.success(
        data=[PermissionResponse.model_validate(p) for p in permissions],
        message="Role permissions fetched successfully"
    )


@router.put("/{role_id}/permissions", response_model=dict, status_code=status.HTTP_200_OK)
async def replace_role_permissions(
    role_id: str,
    payload: RolePermissionReplace,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(binding_gate)
):
    """Replace the role's whole permission set atomically"""
    role = role_service.replace_permissions(
        db, role_id, payload.permission_ids, actor_id=auth.subject_id, audit_meta=request_audit_meta(request)
    )
    return ResponseWrapper.updated(
        data=role_response(db, role.id),
        message="Role permissions replaced successfully"
    )


@router.patch("/{role_id}/permissions", response_model=dict, status_code=status.HTTP_200_OK)
async def update_role_permissions(
    role_id: str,
    payload: RolePermissionUpdate,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(binding_gate)
):
    """Add and/or remove individual permissions"""
    role = role_service.update_permissions(
        db, role_id, payload.add, payload.remove,
        actor_id=auth.subject_id, audit_meta=request_audit_meta(request)
    )
    return ResponseWrapper.updated(
        data=role_response(db, role.id),
        message="Role permissions updated successfully"
    )


@router.get("/{role_id}/has-permission", response_model=dict, status_code=status.HTTP_200_OK)
async def role_has_permission(
    role_id: str,
    permission: str = Query(..., min_length=1, description="Permission name, e.g. user:read"),
    db: Session = Depends(get_db),
    _=Depends(PermissionChecker(["role:read"]))
):
    has_permission = role_service.role_has_permission(db, role_id, permission)
    return ResponseWrapper.success(
        data={"role_id": role_id, "permission": permission, "has_permission": has_permission}
    )


@router.post("/{role_id}/clone", response_model=dict, status_code=status.HTTP_201_CREATED)
async def clone_role(
    role_id: str,
    payload: RoleClone,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(PermissionChecker(["role:create"]))
):
    clone = role_service.clone_role(
        db, role_id, payload, actor_id=auth.subject_id, audit_meta=request_audit_meta(request)
    )
    return ResponseWrapper.created(
        data=role_response(db, clone.id),
        message="Role cloned successfully"
    )


@router.get("/{role_id}/users", response_model=dict, status_code=status.HTTP_200_OK)
async def get_role_users(
    role_id: str,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=100),
    db: Session = Depends(get_db),
    _=Depends(PermissionChecker(["role:read", "user:read"], require_all=True))
):
    total, users = role_service.get_role_users(db, role_id, skip=skip, limit=limit)
    return ResponseWrapper.success(
        data={"total": total, "items": [UserSummary.model_validate(u) for u in users]},
        message="Role users fetched successfully"
    )


@router.post("/{role_id}/users", response_model=dict, status_code=status.HTTP_200_OK)
async def assign_users_to_role(
    role_id: str,
    payload: UserIds,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(binding_gate)
):
    """Assign users to a role; failures are reported per user"""
    result = role_service.assign_users(
        db, role_id, payload.user_ids, actor_id=auth.subject_id, audit_meta=request_audit_meta(request)
    )
    return ResponseWrapper.success(data=result, message="Users assigned to role")


@router.post("/{role_id}/users/remove", response_model=dict, status_code=status.HTTP_200_OK)
async def remove_users_from_role(
    role_id: str,
    payload: UserIds,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(binding_gate)
):
    """Remove users from a role; failures are reported per user"""
    result = role_service.remove_users(
        db, role_id, payload.user_ids, actor_id=auth.subject_id, audit_meta=request_audit_meta(request)
    )
    return ResponseWrapper.success(data=result, message="Users removed from role")
