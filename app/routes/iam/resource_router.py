from fastapi import APIRouter, Depends, Request, status, Query
from sqlalchemy.orm import Session
from typing import Optional
from app.database.session import get_db
from app.schemas.iam import (
    ResourceCreate, ResourceUpdate, ResourceResponse, ResourcePaginationResponse, PermissionResponse,
)
from app.services.permission_catalog import permission_catalog
from app.utils.audit_helper import request_audit_meta
from common_utils.auth.context import AuthContext
from common_utils.auth.permission_checker import require_resource_permission
from app.utils.response_utils import ResponseWrapper

router = APIRouter(
    prefix="/resources",
    tags=["IAM Resources"]
)

# resource:read / resource:create / resource:update / resource:delete by HTTP method
resource_gate = require_resource_permission("resource")


@router.post("/", response_model=dict, status_code=status.HTTP_201_CREATED)
async def create_resource(
    resource: ResourceCreate,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(resource_gate)
):
    new_resource = permission_catalog.create_resource(
        db, resource, actor_id=auth.subject_id, audit_meta=request_audit_meta(request)
    )
    return ResponseWrapper.created(
        data=ResourceResponse(**permission_catalog.resource_to_dict(db, new_resource)),
        message="Resource created successfully"
    )


@router.get("/", response_model=dict, status_code=status.HTTP_200_OK)
async def get_resources(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=100),
    search: Optional[str] = Query(None, description="Search name and description"),
    db: Session = Depends(get_db),
    _=Depends(resource_gate)
):
    total, items = permission_catalog.list_resources(db, filters={"search": search}, skip=skip, limit=limit)
    return ResponseWrapper.success(
        data=ResourcePaginationResponse(
            total=total,
            items=[ResourceResponse(**permission_catalog.resource_to_dict(db, r)) for r in items]
        ),
        message="Resources fetched successfully"
    )


@router.get("/{resource_id}", response_model=dict, status_code=status.HTTP_200_OK)
async def get_resource(
    resource_id: str,
    db: Session = Depends(get_db),
    _=Depends(resource_gate)
):
    resource = permission_catalog.get_resource(db, resource_id)
    return ResponseWrapper.success(
        data=ResourceResponse(**permission_catalog.resource_to_dict(db, resource)),
        message="Resource fetched successfully"
    )


@router.get("/{resource_id}/permissions", response_model=dict, status_code=status.HTTP_200_OK)
async def get_resource_permissions(
    resource_id: str,
    db: Session = Depends(get_db),
    _=Depends(resource_gate)
):
    """Permissions defined on a resource, plus the wildcard names it supports"""
    resource = permission_catalog.get_resource(db, resource_id)
    return ResponseWrapper.success(
        data={
            "permissions": [
                PermissionResponse.model_validate(p)
                for p in permission_catalog.list_by_resource(db, resource.name)
            ],
            "wildcards": permission_catalog.wildcard_forms(resource.name),
        },
        message="Resource permissions fetched successfully"
    )


@router.put("/{resource_id}", response_model=dict, status_code=status.HTTP_200_OK)
async def update_resource(
    resource_id: str,
    resource_update: ResourceUpdate,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(resource_gate)
):
    resource = permission_catalog.update_resource(
        db, resource_id, resource_update, actor_id=auth.subject_id, audit_meta=request_audit_meta(request)
    )
    return ResponseWrapper.updated(
        data=ResourceResponse(**permission_catalog.resource_to_dict(db, resource)),
        message="Resource updated successfully"
    )


@router.delete("/{resource_id}", response_model=dict, status_code=status.HTTP_200_OK)
async def delete_resource(
    resource_id: str,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(resource_gate)
):
    permission_catalog.delete_resource(
        db, resource_id, actor_id=auth.subject_id, audit_meta=request_audit_meta(request)
    )
    return ResponseWrapper.deleted(message="Resource deleted successfully")
