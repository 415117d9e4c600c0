from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.exceptions import Conflict, NotFound, ValidationError
from app.core.logging_config import get_logger
from app.crud.iam import permission_crud, resource_crud, role_crud
from app.models.iam import Permission, Resource
from app.schemas.iam import (
    PermissionCreate, PermissionUpdate, ResourceCreate, ResourceUpdate,
)
from app.services.audit_service import audit_service
from common_utils.auth.permission_matcher import (
    WILDCARD, format_permission_name, parse_permission_name,
)

logger = get_logger(__name__)


class PermissionCatalog:
    """Registry of permission names and the resources they refer to."""

    # -- permissions -------------------------------------------------------

    def validate_name(self, name: str) -> Tuple[str, str]:
        try:
            return parse_permission_name(name)
        except ValueError as e:
            raise ValidationError(str(e), error_code="INVALID_PERMISSION_NAME")

    def wildcard_forms(self, resource: str) -> List[str]:
        return [format_permission_name(resource, WILDCARD)]

    def create_permission(
        self,
        db: Session,
        data: PermissionCreate,
        actor_id: Optional[str] = None,
        audit_meta: Optional[Dict[str, Any]] = None,
    ) -> Permission:
        resource, action = self.validate_name(data.name)

        if permission_crud.get_by_name(db, name=data.name):
            raise Conflict(f"Permission '{data.name}' already exists", error_code="DUPLICATE_PERMISSION")
        if permission_crud.get_by_resource_action(db, resource=resource, action=action):
            raise Conflict(
                f"Permission for resource '{resource}' and action '{action}' already exists",
                error_code="DUPLICATE_PERMISSION",
            )

        permission = permission_crud.create(
            db,
            obj_in={"name": data.name, "resource": resource, "action": action, "description": data.description},
        )
        logger.info(f"Permission created: {permission.name}")
        audit_service.log_action(
            actor_id, "permission:create", "permission", permission.id,
            {"name": permission.name}, **(audit_meta or {}),
        )
        return permission

    def get_permission(self, db: Session, permission_id: str) -> Permission:
        permission = permission_crud.get(db, id=permission_id)
        if not permission:
            raise NotFound(f"Permission with ID {permission_id} not found")
        return permission

    def get_permission_with_roles(self, db: Session, permission_id: str) -> Dict[str, Any]:
        permission = self.get_permission(db, permission_id)
        roles = role_crud.get_roles_for_permission(db, permission_id=permission.id)
        return {
            **self.permission_to_dict(permission),
            "roles": [
                {"id": role.id, "name": role.name, "user_count": role_crud.count_users(db, role_id=role.id)}
                for role in roles
            ],
        }

    def get_by_name(self, db: Session, name: str) -> Optional[Permission]:
        return permission_crud.get_by_name(db, name=name)

    def list_by_resource(self, db: Session, resource: str) -> List[Permission]:
        return permission_crud.get_by_resource(db, resource=resource)

    def list_permissions(
        self, db: Session, filters: Optional[Dict[str, Any]] = None, skip: int = 0, limit: int = 100
    ) -> Tuple[int, List[Permission]]:
        total = permission_crud.count(db, filters=filters)
        items = permission_crud.get_multi_by_filter(db, filters=filters, skip=skip, limit=limit)
        return total, items

    def update_permission(
        self,
        db: Session,
        permission_id: str,
        data: PermissionUpdate,
        actor_id: Optional[str] = None,
        audit_meta: Optional[Dict[str, Any]] = None,
    ) -> Permission:
        permission = self.get_permission(db, permission_id)
        changes = data.model_dump(exclude_unset=True)
        permission = permission_crud.update(db, db_obj=permission, obj_in=changes)
        audit_service.log_action(
            actor_id, "permission:update", "permission", permission.id, changes, **(audit_meta or {}),
        )
        return permission

    def delete_permission(
        self,
        db: Session,
        permission_id: str,
        actor_id: Optional[str] = None,
        audit_meta: Optional[Dict[str, Any]] = None,
    ) -> None:
        permission = self.get_permission(db, permission_id)
        role_count = permission_crud.count_roles_by_permission(db, permission_id=permission.id)
        if role_count > 0:
            raise Conflict(
                f"Cannot delete permission assigned to {role_count} roles",
                error_code="PERMISSION_IN_USE",
                details={"role_count": role_count},
            )
        name = permission.name
        permission_crud.remove(db, id=permission.id)
        logger.info(f"Permission deleted: {name}")
        audit_service.log_action(
            actor_id, "permission:delete", "permission", permission_id, {"name": name}, **(audit_meta or {}),
        )

    @staticmethod
    def permission_to_dict(permission: Permission) -> Dict[str, Any]:
        return {
            "id": permission.id,
            "name": permission.name,
            "resource": permission.resource,
            "action": permission.action,
            "description": permission.description,
            "created_at": permission.created_at,
            "updated_at": permission.updated_at,
        }

    # -- resources ---------------------------------------------------------

    def create_resource(
        self,
        db: Session,
        data: ResourceCreate,
        actor_id: Optional[str] = None,
        audit_meta: Optional[Dict[str, Any]] = None,
    ) -> Resource:
        if resource_crud.get_by_name(db, name=data.name):
            raise Conflict(f"Resource '{data.name}' already exists", error_code="DUPLICATE_RESOURCE")
        resource = resource_crud.create(db, obj_in=data)
        logger.info(f"Resource created: {resource.name}")
        audit_service.log_action(
            actor_id, "resource:create", "resource", resource.id, {"name": resource.name}, **(audit_meta or {}),
        )
        return resource

    def get_resource(self, db: Session, resource_id: str) -> Resource:
        resource = resource_crud.get(db, id=resource_id)
        if not resource:
            raise NotFound(f"Resource with ID {resource_id} not found")
        return resource

    def list_resources(
        self, db: Session, filters: Optional[Dict[str, Any]] = None, skip: int = 0, limit: int = 100
    ) -> Tuple[int, List[Resource]]:
        total = resource_crud.count(db, filters=filters)
        items = resource_crud.get_multi_by_filter(db, filters=filters, skip=skip, limit=limit)
        return total, items

    def update_resource(
        self,
        db: Session,
        resource_id: str,
        data: ResourceUpdate,
        actor_id: Optional[str] = None,
        audit_meta: Optional[Dict[str, Any]] = None,
    ) -> Resource:
        resource = self.get_resource(db, resource_id)
        changes = data.model_dump(exclude_unset=True)

        new_name = changes.get("name")
        if new_name and new_name != resource.name:
            if resource_crud.get_by_name(db, name=new_name):
                raise Conflict(f"Resource name '{new_name}' already exists", error_code="DUPLICATE_RESOURCE")
            # Permission.resource holds the name, so a rename would orphan them
            permission_count = permission_crud.count_by_resource(db, resource=resource.name)
            if permission_count > 0:
                raise Conflict(
                    f"Cannot rename resource with {permission_count} associated permissions",
                    error_code="RESOURCE_IN_USE",
                    details={"permission_count": permission_count},
                )

        resource = resource_crud.update(db, db_obj=resource, obj_in=changes)
        audit_service.log_action(
            actor_id, "resource:update", "resource", resource.id, changes, **(audit_meta or {}),
        )
        return resource

    def delete_resource(
        self,
        db: Session,
        resource_id: str,
        actor_id: Optional[str] = None,
        audit_meta: Optional[Dict[str, Any]] = None,
    ) -> None:
        resource = self.get_resource(db, resource_id)
        permission_count = permission_crud.count_by_resource(db, resource=resource.name)
        if permission_count > 0:
            raise Conflict(
                f"Cannot delete resource with {permission_count} associated permissions",
                error_code="RESOURCE_IN_USE",
                details={"permission_count": permission_count},
            )
        name = resource.name
        resource_crud.remove(db, id=resource.id)
        logger.info(f"Resource deleted: {name}")
        audit_service.log_action(
            actor_id, "resource:delete", "resource", resource_id, {"name": name}, **(audit_meta or {}),
        )

    def resource_to_dict(self, db: Session, resource: Resource) -> Dict[str, Any]:
        return {
            "id": resource.id,
            "name": resource.name,
            "description": resource.description,
            "permission_count": permission_crud.count_by_resource(db, resource=resource.name),
            "created_at": resource.created_at,
            "updated_at": resource.updated_at,
        }


permission_catalog = PermissionCatalog()
