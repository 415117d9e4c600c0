from fastapi import APIRouter, Depends, Request, status, Query
from sqlalchemy.orm import Session
from typing import List, Literal, Optional

from app.core.logging_config import get_logger
from app.database.session import get_db
from app.schemas.menu import (
    MenuAccessResult, MenuCreate, MenuMove, MenuPermissionBatchUpdate, MenuPermissionResponse, MenuReorder,
    MenuResponse, MenuStatistics, MenuTreeNode, MenuUpdate, RoleMenuMatrix, RoleMenuPermissionsReplace,
    RoleMenuPermissionsUpdate,
)
from app.services.menu_service import menu_service
from app.utils.audit_helper import request_audit_meta
from app.utils.response_utils import ResponseWrapper
from common_utils.auth.context import AuthContext
from common_utils.auth.permission_checker import (
    PermissionChecker, require_any, require_authenticated, require_ownership_or_permission,
    require_permission, require_role,
)

logger = get_logger(__name__)

router = APIRouter(
    prefix="/menus",
    tags=["Menus"]
)

# Menu flags may be managed by holders of menu:update or by the admin role
menu_permission_gate = require_any(require_permission("menu:update", live=True), require_role("admin"))


def tree_payload(nodes: List[MenuTreeNode]) -> list:
    return [node.model_dump(by_alias=True) for node in nodes]


@router.post("/", response_model=dict, status_code=status.HTTP_201_CREATED)
async def create_menu(
    menu: MenuCreate,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(PermissionChecker(["menu:create"]))
):
    new_menu = menu_service.create_menu(db, menu, actor_id=auth.subject_id, audit_meta=request_audit_meta(request))
    return ResponseWrapper.created(
        data=MenuResponse.model_validate(new_menu),
        message="Menu created successfully"
    )


@router.get("/tree", response_model=dict, status_code=status.HTTP_200_OK)
async def get_complete_menu_tree(
    is_active: Optional[bool] = Query(None, description="Only active or only inactive menus"),
    db: Session = Depends(get_db),
    _=Depends(PermissionChecker(["menu:read"]))
):
    """Every menu as a tree, without per-user filtering"""
    return ResponseWrapper.success(
        data=tree_payload(menu_service.get_complete_tree(db, is_active=is_active)),
        message="Menu tree fetched successfully"
    )


@router.get("/my-tree", response_model=dict, status_code=status.HTTP_200_OK)
async def get_my_menu_tree(
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_authenticated())
):
    """Menus visible to the caller, annotated with aggregated flags"""
    tree = menu_service.get_user_menu_tree(db, auth.subject_id)
    return ResponseWrapper.success(
        data={"menus": tree_payload(tree["menus"]), "totalCount": tree["total_count"]},
        message="User menu tree fetched successfully"
    )


@router.get("/users/{user_id}/tree", response_model=dict, status_code=status.HTTP_200_OK)
async def get_user_menu_tree(
    user_id: str,
    db: Session = Depends(get_db),
    _=Depends(require_ownership_or_permission("menu:read", owner_id_param="user_id"))
):
    """A user's filtered tree; users may always read their own"""
    tree = menu_service.get_user_menu_tree(db, user_id)
    return ResponseWrapper.success(
        data={"menus": tree_payload(tree["menus"]), "totalCount": tree["total_count"]},
        message="User menu tree fetched successfully"
    )


@router.get("/statistics", response_model=dict, status_code=status.HTTP_200_OK)
async def get_menu_statistics(
    db: Session = Depends(get_db),
    _=Depends(PermissionChecker(["menu:read"]))
):
    return ResponseWrapper.success(
        data=MenuStatistics(**menu_service.get_statistics(db)),
        message="Menu statistics fetched successfully"
    )


@router.get("/permission-matrix", response_model=dict, status_code=status.HTTP_200_OK)
async def get_menu_permission_matrix(
    db: Session = Depends(get_db),
    _=Depends(PermissionChecker(["menu:read", "role:read"], require_all=True))
):
    """Stored flags for every role and menu"""
    return ResponseWrapper.success(
        data=[RoleMenuMatrix(**row) for row in menu_service.get_permission_matrix(db)],
        message="Menu permission matrix fetched successfully"
    )


@router.post("/reorder", response_model=dict, status_code=status.HTTP_200_OK)
async def reorder_menus(
    payload: MenuReorder,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(PermissionChecker(["menu:update"]))
):
    menu_service.reorder_menus(db, payload.items, actor_id=auth.subject_id, audit_meta=request_audit_meta(request))
    return ResponseWrapper.updated(message="Menus reordered successfully")


@router.post("/permissions/batch", response_model=dict, status_code=status.HTTP_200_OK)
async def batch_update_menu_permissions(
    payload: MenuPermissionBatchUpdate,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(menu_permission_gate)
):
    result = menu_service.batch_update_menu_permissions(
        db, payload, actor_id=auth.subject_id, audit_meta=request_audit_meta(request)
    )
    return ResponseWrapper.success(data=result, message="Menu permissions batch update completed")


@router.get("/roles/{role_id}/permissions", response_model=dict, status_code=status.HTTP_200_OK)
async def get_role_menu_permissions(
    role_id: str,
    db: Session = Depends(get_db),
    _=Depends(PermissionChecker(["menu:read"]))
):
    bindings = menu_service.get_role_menu_permissions(db, role_id)
    return ResponseWrapper.success(
        data=[MenuPermissionResponse.model_validate(b) for b in bindings],
        message="Role menu permissions fetched successfully"
    )


@router.put("/roles/{role_id}/permissions", response_model=dict, status_code=status.HTTP_200_OK)
async def replace_role_menu_permissions(
    role_id: str,
    payload: RoleMenuPermissionsReplace,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(menu_permission_gate)
):
    bindings = menu_service.replace_role_menu_permissions(
        db, role_id, payload.permissions, actor_id=auth.subject_id, audit_meta=request_audit_meta(request)
    )
    return ResponseWrapper.updated(
        data=[MenuPermissionResponse.model_validate(b) for b in bindings],
        message="Role menu permissions replaced successfully"
    )


@router.patch("/roles/{role_id}/permissions", response_model=dict, status_code=status.HTTP_200_OK)
async def update_role_menu_permissions(
    role_id: str,
    payload: RoleMenuPermissionsUpdate,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(menu_permission_gate)
):
    result = menu_service.update_role_menu_permissions(
        db, role_id, payload.permissions, actor_id=auth.subject_id, audit_meta=request_audit_meta(request)
    )
    return ResponseWrapper.success(data=result, message="Role menu permissions updated")


@router.delete("/roles/{role_id}/permissions", response_model=dict, status_code=status.HTTP_200_OK)
async def remove_all_role_menu_permissions(
    role_id: str,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(menu_permission_gate)
):
    removed = menu_service.remove_all_role_menu_permissions(
        db, role_id, actor_id=auth.subject_id, audit_meta=request_audit_meta(request)
    )
    return ResponseWrapper.success(data={"deleted_count": removed}, message="Role menu permissions removed")


@router.get("/{menu_id}", response_model=dict, status_code=status.HTTP_200_OK)
async def get_menu(
    menu_id: str,
    db: Session = Depends(get_db),
    _=Depends(PermissionChecker(["menu:read"]))
):
    return ResponseWrapper.success(
        data=MenuResponse.model_validate(menu_service.get_menu(db, menu_id)),
        message="Menu fetched successfully"
    )


@router.put("/{menu_id}", response_model=dict, status_code=status.HTTP_200_OK)
async def update_menu(
    menu_id: str,
    menu_update: MenuUpdate,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(PermissionChecker(["menu:update"]))
):
    menu = menu_service.update_menu(
        db, menu_id, menu_update, actor_id=auth.subject_id, audit_meta=request_audit_meta(request)
    )
    return ResponseWrapper.updated(data=MenuResponse.model_validate(menu), message="Menu updated successfully")


@router.post("/{menu_id}/move", response_model=dict, status_code=status.HTTP_200_OK)
async def move_menu(
    menu_id: str,
    payload: MenuMove,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(PermissionChecker(["menu:update"]))
):
    menu = menu_service.move_menu(
        db, menu_id, payload.parent_id, payload.order_index,
        actor_id=auth.subject_id, audit_meta=request_audit_meta(request)
    )
    return ResponseWrapper.updated(data=MenuResponse.model_validate(menu), message="Menu moved successfully")


@router.delete("/{menu_id}", response_model=dict, status_code=status.HTTP_200_OK)
async def delete_menu(
    menu_id: str,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(PermissionChecker(["menu:delete"]))
):
    menu_service.delete_menu(db, menu_id, actor_id=auth.subject_id, audit_meta=request_audit_meta(request))
    return ResponseWrapper.deleted(message="Menu deleted successfully")


@router.get("/{menu_id}/permissions", response_model=dict, status_code=status.HTTP_200_OK)
async def get_menu_permissions(
    menu_id: str,
    db: Session = Depends(get_db),
    _=Depends(PermissionChecker(["menu:read"]))
):
    bindings = menu_service.get_menu_permissions(db, menu_id)
    return ResponseWrapper.success(
        data=[MenuPermissionResponse.model_validate(b) for b in bindings],
        message="Menu permissions fetched successfully"
    )


@router.get("/{menu_id}/access", response_model=dict, status_code=status.HTTP_200_OK)
async def check_menu_access(
    menu_id: str,
    user_id: str = Query(..., description="User to check"),
    flag: Literal["can_view", "can_edit", "can_delete", "can_export"] = Query("can_view"),
    db: Session = Depends(get_db),
    _=Depends(PermissionChecker(["menu:read"]))
):
    result = menu_service.check_menu_access(db, menu_id, user_id, flag)
    return ResponseWrapper.success(data=MenuAccessResult(**result), message="Menu access checked")
