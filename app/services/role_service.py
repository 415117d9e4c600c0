from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import Conflict, NotFound, RBACError, ValidationError
from app.core.logging_config import get_logger
from app.crud.iam import permission_crud, role_crud, user_role_crud
from app.crud.menu_permission import FLAG_FIELDS, menu_permission_crud
from app.crud.user import user_crud
from app.models.iam import Role
from app.schemas.base import BulkOperationResult
from app.schemas.iam import RoleClone, RoleCreate, RoleUpdate
from app.services.audit_service import audit_service
from app.services.permission_catalog import permission_catalog
from common_utils.auth.permission_matcher import match_permission

logger = get_logger(__name__)


class RoleService:
    """
    Role administration.

    Permission bindings of a system role cannot be changed here by anyone,
    superusers included. Multi-item operations never stop at the first
    failing item and report a BulkOperationResult instead.
    """

    def get_role(self, db: Session, role_id: str) -> Role:
        role = role_crud.get(db, id=role_id)
        if not role:
            raise NotFound(f"Role with ID {role_id} not found")
        return role

    def get_role_details(self, db: Session, role_id: str) -> Dict[str, Any]:
        return self.role_to_dict(db, self.get_role(db, role_id), include_permissions=True)

    def list_roles(
        self, db: Session, filters: Optional[Dict[str, Any]] = None, skip: int = 0, limit: int = 100
    ) -> Tuple[int, List[Dict[str, Any]]]:
        total = role_crud.count(db, filters=filters)
        roles = role_crud.get_multi_by_filter(db, filters=filters, skip=skip, limit=limit)
        return total, [self.role_to_dict(db, role) for role in roles]

    def role_to_dict(self, db: Session, role: Role, include_permissions: bool = False) -> Dict[str, Any]:
        data = {
            "id": role.id,
            "name": role.name,
            "description": role.description,
            "is_system": role.is_system,
            "is_active": role.is_active,
            "user_count": role_crud.count_users(db, role_id=role.id),
            "permission_count": role_crud.count_permissions(db, role_id=role.id),
            "created_at": role.created_at,
            "updated_at": role.updated_at,
            "permissions": [],
        }
        if include_permissions:
            data["permissions"] = [
                permission_catalog.permission_to_dict(p)
                for p in role_crud.find_permissions_by_role_id(db, role_id=role.id)
            ]
        return data

    def _validate_permission_ids(self, db: Session, permission_ids: List[str]) -> List[str]:
        unique_ids = list(dict.fromkeys(permission_ids))
        found = {p.id for p in permission_crud.get_by_ids(db, unique_ids)}
        missing = [pid for pid in unique_ids if pid not in found]
        if missing:
            raise ValidationError(
                "One or more permission IDs are invalid",
                error_code="INVALID_PERMISSION_IDS",
                details={"invalid_ids": missing},
            )
        return unique_ids

    @staticmethod
    def _ensure_mutable_bindings(role: Role) -> None:
        if role.is_system:
            raise Conflict(
                f"Cannot modify permissions of system role '{role.name}'",
                error_code="SYSTEM_ROLE_IMMUTABLE",
            )

    def create_role(
        self,
        db: Session,
        data: RoleCreate,
        actor_id: Optional[str] = None,
        audit_meta: Optional[Dict[str, Any]] = None,
    ) -> Role:
        if role_crud.get_by_name(db, name=data.name):
            raise Conflict(f"Role with name '{data.name}' already exists", error_code="DUPLICATE_ROLE")
        permission_ids = self._validate_permission_ids(db, data.permission_ids)

        try:
            role = role_crud.create(
                db,
                obj_in={
                    "name": data.name,
                    "description": data.description,
                    "is_system": data.is_system,
                    "is_active": data.is_active,
                },
                commit=False,
            )
            role_crud.add_permission_bindings(db, role_id=role.id, permission_ids=permission_ids, granted_by=actor_id)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        db.refresh(role)

        logger.info(f"Role created: {role.name}")
        audit_service.log_action(
            actor_id, "role:create", "role", role.id,
            {"name": role.name, "permission_ids": permission_ids}, **(audit_meta or {}),
        )
        return role

    def update_role(
        self,
        db: Session,
        role_id: str,
        data: RoleUpdate,
        actor_id: Optional[str] = None,
        audit_meta: Optional[Dict[str, Any]] = None,
    ) -> Role:
        role = self.get_role(db, role_id)
        changes = data.model_dump(exclude_unset=True)
        permission_ids = changes.pop("permission_ids", None)

        new_name = changes.get("name")
        if new_name and new_name != role.name:
            existing = role_crud.get_by_name(db, name=new_name)
            if existing and existing.id != role.id:
                raise Conflict(f"Role name '{new_name}' is already in use", error_code="DUPLICATE_ROLE")

        if permission_ids is not None:
            self._ensure_mutable_bindings(role)
            permission_ids = self._validate_permission_ids(db, permission_ids)

        if changes:
            role = role_crud.update(db, db_obj=role, obj_in=changes)
        if permission_ids is not None:
            role_crud.replace_role_permissions(db, role_id=role.id, permission_ids=permission_ids, granted_by=actor_id)
            db.refresh(role)

        logger.info(f"Role updated: {role.name}")
        audit_service.log_action(
            actor_id, "role:update", "role", role.id,
            {"changes": changes, "permission_ids": permission_ids}, **(audit_meta or {}),
        )
        return role

    def delete_role(
        self,
        db: Session,
        role_id: str,
        actor_id: Optional[str] = None,
        audit_meta: Optional[Dict[str, Any]] = None,
    ) -> None:
        role = self.get_role(db, role_id)
        if role.is_system:
            raise Conflict(f"System role '{role.name}' cannot be deleted", error_code="SYSTEM_ROLE_IMMUTABLE")

        user_count = role_crud.count_users(db, role_id=role.id)
        if user_count > 0:
            raise Conflict(
                f"Cannot delete role with {user_count} assigned users",
                error_code="ROLE_IN_USE",
                details={"user_count": user_count},
            )

        name = role.name
        role_crud.remove(db, id=role.id)
        logger.info(f"Role deleted: {name}")
        audit_service.log_action(actor_id, "role:delete", "role", role_id, {"name": name}, **(audit_meta or {}))

    # -- permission bindings -------------------------------------------------

    def get_role_permissions(self, db: Session, role_id: str):
        role = self.get_role(db, role_id)
        return role_crud.find_permissions_by_role_id(db, role_id=role.id)

    def replace_permissions(
        self,
        db: Session,
        role_id: str,
        permission_ids: List[str],
        actor_id: Optional[str] = None,
        audit_meta: Optional[Dict[str, Any]] = None,
    ) -> Role:
        role = self.get_role(db, role_id)
        self._ensure_mutable_bindings(role)
        permission_ids = self._validate_permission_ids(db, permission_ids)

        role_crud.replace_role_permissions(db, role_id=role.id, permission_ids=permission_ids, granted_by=actor_id)
        db.refresh(role)

        logger.info(f"Permissions replaced for role {role.name}: {len(permission_ids)} bindings")
        audit_service.log_action(
            actor_id, "role:permissions_replace", "role", role.id,
            {"role_name": role.name, "permission_ids": permission_ids}, **(audit_meta or {}),
        )
        return role

    def update_permissions(
        self,
        db: Session,
        role_id: str,
        add: List[str],
        remove: List[str],
        actor_id: Optional[str] = None,
        audit_meta: Optional[Dict[str, Any]] = None,
    ) -> Role:
        """Add and remove individual bindings in a single transaction."""
        role = self.get_role(db, role_id)
        self._ensure_mutable_bindings(role)
        add = self._validate_permission_ids(db, add) if add else []

        try:
            removed = role_crud.remove_permission_bindings(db, role_id=role.id, permission_ids=remove)
            added = role_crud.add_permission_bindings(db, role_id=role.id, permission_ids=add, granted_by=actor_id)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        db.refresh(role)

        logger.info(f"Permissions updated for role {role.name}: +{len(added)} -{len(removed)}")
        if added:
            audit_service.log_action(
                actor_id, "permission:grant", "role", role.id, {"permission_ids": added}, **(audit_meta or {}),
            )
        if removed:
            audit_service.log_action(
                actor_id, "permission:revoke", "role", role.id, {"permission_ids": removed}, **(audit_meta or {}),
            )
        return role

    def role_has_permission(self, db: Session, role_id: str, permission_name: str) -> bool:
        """Whether the role's own bindings satisfy ``permission_name``, wildcards included."""
        role = self.get_role(db, role_id)
        granted = {p.name for p in role_crud.find_permissions_by_role_id(db, role_id=role.id)}
        return match_permission(granted, permission_name) is not None

    # -- cloning -------------------------------------------------------------

    def clone_role(
        self,
        db: Session,
        source_role_id: str,
        data: RoleClone,
        actor_id: Optional[str] = None,
        audit_meta: Optional[Dict[str, Any]] = None,
    ) -> Role:
        source = self.get_role(db, source_role_id)
        if role_crud.get_by_name(db, name=data.new_role_name):
            raise Conflict(f"Role with name '{data.new_role_name}' already exists", error_code="DUPLICATE_ROLE")

        try:
            clone = role_crud.create(
                db,
                obj_in={
                    "name": data.new_role_name,
                    "description": data.description or f"Cloned from {source.name}",
                    "is_system": False,
                    "is_active": True,
                },
                commit=False,
            )
            if data.include_permissions:
                permission_ids = [p.id for p in role_crud.find_permissions_by_role_id(db, role_id=source.id)]
                role_crud.add_permission_bindings(
                    db, role_id=clone.id, permission_ids=permission_ids, granted_by=actor_id
                )
            if data.include_menu_permissions:
                for binding in menu_permission_crud.find_for_role(db, role_id=source.id):
                    menu_permission_crud.upsert(
                        db,
                        menu_id=binding.menu_id,
                        role_id=clone.id,
                        flags={field: getattr(binding, field) for field in FLAG_FIELDS},
                    )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        db.refresh(clone)

        logger.info(f"Role cloned: {source.name} -> {clone.name}")
        audit_service.log_action(
            actor_id, "role:clone", "role", clone.id,
            {
                "source_role_id": source.id,
                "source_role_name": source.name,
                "include_permissions": data.include_permissions,
                "include_menu_permissions": data.include_menu_permissions,
            },
            **(audit_meta or {}),
        )
        return clone

    # -- bulk operations -------------------------------------------------------

    def bulk_delete_roles(
        self,
        db: Session,
        role_ids: List[str],
        actor_id: Optional[str] = None,
        audit_meta: Optional[Dict[str, Any]] = None,
    ) -> BulkOperationResult:
        result = BulkOperationResult()
        for role_id in role_ids:
            try:
                self.delete_role(db, role_id, actor_id=actor_id, audit_meta=audit_meta)
                result.success.append(role_id)
            except RBACError as e:
                result.add_failure(role_id, e.message)
            except SQLAlchemyError as e:
                db.rollback()
                result.add_failure(role_id, str(e))

        logger.info(f"Bulk delete completed: {len(result.success)} success, {len(result.failed)} failed")
        return result

    def get_role_users(self, db: Session, role_id: str, skip: int = 0, limit: int = 100):
        role = self.get_role(db, role_id)
        user_ids = user_role_crud.get_user_ids_for_role(db, role_id=role.id)
        return len(user_ids), user_crud.get_by_ids(db, user_ids[skip:skip + limit])

    def assign_users(
        self,
        db: Session,
        role_id: str,
        user_ids: List[str],
        actor_id: Optional[str] = None,
        audit_meta: Optional[Dict[str, Any]] = None,
    ) -> BulkOperationResult:
        role = self.get_role(db, role_id)
        result = BulkOperationResult()

        for user_id in user_ids:
            if not user_crud.get(db, id=user_id):
                result.add_failure(user_id, "User not found")
                continue
            if user_role_crud.get_binding(db, user_id=user_id, role_id=role.id):
                result.add_failure(user_id, "User already has this role")
                continue
            try:
                user_role_crud.assign(db, user_id=user_id, role_id=role.id, assigned_by=actor_id)
                db.commit()
                result.success.append(user_id)
            except SQLAlchemyError as e:
                db.rollback()
                result.add_failure(user_id, str(e))

        logger.info(f"Users assigned to role {role.name}: {len(result.success)} success, {len(result.failed)} failed")
        if result.success:
            audit_service.log_action(
                actor_id, "role:assign", "role", role.id,
                {"role_name": role.name, "user_ids": result.success, "failed": len(result.failed)},
                **(audit_meta or {}),
            )
        return result

    def remove_users(
        self,
        db: Session,
        role_id: str,
        user_ids: List[str],
        actor_id: Optional[str] = None,
        audit_meta: Optional[Dict[str, Any]] = None,
    ) -> BulkOperationResult:
        role = self.get_role(db, role_id)
        result = BulkOperationResult()

        for user_id in user_ids:
            if not user_crud.get(db, id=user_id):
                result.add_failure(user_id, "User not found")
                continue
            if not user_role_crud.get_binding(db, user_id=user_id, role_id=role.id):
                result.add_failure(user_id, "User does not have this role")
                continue
            try:
                user_role_crud.unassign(db, user_id=user_id, role_id=role.id)
                db.commit()
                result.success.append(user_id)
            except SQLAlchemyError as e:
                db.rollback()
                result.add_failure(user_id, str(e))

        logger.info(f"Users removed from role {role.name}: {len(result.success)} success, {len(result.failed)} failed")
        if result.success:
            audit_service.log_action(
                actor_id, "role:revoke", "role", role.id,
                {"role_name": role.name, "user_ids": result.success, "failed": len(result.failed)},
                **(audit_meta or {}),
            )
        return result

    # -- statistics ------------------------------------------------------------

    def get_statistics(self, db: Session) -> Dict[str, Any]:
        roles = role_crud.get_multi_by_filter(db, limit=None)
        total = len(roles)
        system = sum(1 for role in roles if role.is_system)
        user_counts = {role.id: role_crud.count_users(db, role_id=role.id) for role in roles}
        total_permissions = sum(role_crud.count_permissions(db, role_id=role.id) for role in roles)
        with_users = sum(1 for count in user_counts.values() if count > 0)

        return {
            "total": total,
            "system": system,
            "custom": total - system,
            "with_users": with_users,
            "without_users": total - with_users,
            "avg_permissions_per_role": round(total_permissions / total, 1) if total else 0.0,
        }


role_service = RoleService()
