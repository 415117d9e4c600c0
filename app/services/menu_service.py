from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import Conflict, NotFound, ValidationError
from app.core.logging_config import get_logger
from app.crud.iam import role_crud, user_role_crud
from app.crud.menu import menu_crud
from app.crud.menu_permission import FLAG_FIELDS, menu_permission_crud
from app.crud.user import user_crud
from app.models.menu import Menu
from app.models.iam import Role
from app.schemas.base import BulkOperationResult
from app.schemas.menu import (
    MenuCreate, MenuPermissionBatchUpdate, MenuPermissionEntry, MenuReorderItem, MenuTreeNode, MenuUpdate,
)
from app.services.audit_service import audit_service
from app.services.menu_visibility import (
    aggregate_flags, build_menu_index, count_nodes, full_tree, tree_statistics, visible_tree, would_create_cycle,
)

logger = get_logger(__name__)


class MenuService:
    """Menu administration, per-role menu flags and the per-user menu tree."""

    # -- menus ---------------------------------------------------------------

    def get_menu(self, db: Session, menu_id: str) -> Menu:
        menu = menu_crud.get(db, id=menu_id)
        if not menu:
            raise NotFound(f"Menu with ID {menu_id} not found")
        return menu

    def _ensure_parent(self, db: Session, menu_id: str, parent_id: Optional[str]) -> None:
        if parent_id is None:
            return
        if not menu_crud.get(db, id=parent_id):
            raise NotFound(f"Parent menu with ID {parent_id} not found")
        if would_create_cycle(menu_crud.parent_map(db), menu_id, parent_id):
            raise ValidationError(
                "A menu cannot be moved under itself or one of its descendants",
                error_code="MENU_CYCLE",
            )

    def create_menu(
        self,
        db: Session,
        data: MenuCreate,
        actor_id: Optional[str] = None,
        audit_meta: Optional[Dict[str, Any]] = None,
    ) -> Menu:
        if menu_crud.get(db, id=data.id):
            raise Conflict(f"Menu with ID {data.id} already exists", error_code="DUPLICATE_MENU")
        self._ensure_parent(db, data.id, data.parent_id)

        values = data.model_dump()
        if values.get("order_index") is None:
            values["order_index"] = menu_crud.next_order_index(db, parent_id=data.parent_id)
        menu = menu_crud.create(db, obj_in=values)

        logger.info(f"Menu created: {menu.id} ({menu.title})")
        audit_service.log_action(
            actor_id, "menu:create", "menu", menu.id,
            {"title": menu.title, "parent_id": menu.parent_id}, **(audit_meta or {}),
        )
        return menu

    def update_menu(
        self,
        db: Session,
        menu_id: str,
        data: MenuUpdate,
        actor_id: Optional[str] = None,
        audit_meta: Optional[Dict[str, Any]] = None,
    ) -> Menu:
        menu = self.get_menu(db, menu_id)
        changes = data.model_dump(exclude_unset=True)
        if "parent_id" in changes and changes["parent_id"] != menu.parent_id:
            self._ensure_parent(db, menu.id, changes["parent_id"])

        menu = menu_crud.update(db, db_obj=menu, obj_in=changes)
        audit_service.log_action(actor_id, "menu:update", "menu", menu.id, changes, **(audit_meta or {}))
        return menu

    def move_menu(
        self,
        db: Session,
        menu_id: str,
        parent_id: Optional[str],
        order_index: Optional[int] = None,
        actor_id: Optional[str] = None,
        audit_meta: Optional[Dict[str, Any]] = None,
    ) -> Menu:
        menu = self.get_menu(db, menu_id)
        old_parent_id = menu.parent_id
        self._ensure_parent(db, menu.id, parent_id)

        if order_index is None:
            order_index = menu_crud.next_order_index(db, parent_id=parent_id)
        menu = menu_crud.update(db, db_obj=menu, obj_in={"parent_id": parent_id, "order_index": order_index})

        logger.info(f"Menu {menu.id} moved from {old_parent_id} to {parent_id}")
        audit_service.log_action(
            actor_id, "menu:move", "menu", menu.id,
            {"old_parent_id": old_parent_id, "new_parent_id": parent_id, "order_index": order_index},
            **(audit_meta or {}),
        )
        return menu

    def reorder_menus(
        self,
        db: Session,
        items: List[MenuReorderItem],
        actor_id: Optional[str] = None,
        audit_meta: Optional[Dict[str, Any]] = None,
    ) -> None:
        menus = {menu.id: menu for menu in menu_crud.get_by_ids(db, [item.id for item in items])}
        missing = [item.id for item in items if item.id not in menus]
        if missing:
            raise NotFound("One or more menus not found", details={"missing_ids": missing})

        try:
            for item in items:
                menus[item.id].order_index = item.order_index
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise

        audit_service.log_action(
            actor_id, "menu:reorder", "menu", None,
            {"items": [item.model_dump() for item in items]}, **(audit_meta or {}),
        )

    def delete_menu(
        self,
        db: Session,
        menu_id: str,
        actor_id: Optional[str] = None,
        audit_meta: Optional[Dict[str, Any]] = None,
    ) -> None:
        menu = self.get_menu(db, menu_id)
        child_count = menu_crud.count_children(db, menu_id=menu.id)
        if child_count > 0:
            raise Conflict(
                f"Cannot delete menu with {child_count} child menus",
                error_code="MENU_HAS_CHILDREN",
                details={"child_count": child_count},
            )

        try:
            removed = menu_permission_crud.delete_for_menu(db, menu_id=menu.id)
            db.delete(menu)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise

        logger.info(f"Menu deleted: {menu_id} ({removed} menu permissions removed)")
        audit_service.log_action(
            actor_id, "menu:delete", "menu", menu_id, {"removed_permissions": removed}, **(audit_meta or {}),
        )

    # -- trees ---------------------------------------------------------------

    def get_complete_tree(self, db: Session, is_active: Optional[bool] = None) -> List[MenuTreeNode]:
        index = build_menu_index(menu_crud.get_all_ordered(db, is_active=is_active))
        return full_tree(index)

    def get_user_menu_tree(self, db: Session, user_id: str) -> Dict[str, Any]:
        """
        Menus the user may see, with their flags OR-ed across the user's
        active roles. Inactive menus are never shown.
        """
        if not user_crud.get(db, id=user_id):
            raise NotFound(f"User with ID {user_id} not found")

        role_ids = [role.id for role in user_role_crud.get_active_roles_for_user(db, user_id=user_id)]
        if not role_ids:
            return {"menus": [], "total_count": 0}

        flags = aggregate_flags(menu_permission_crud.find_for_roles(db, role_ids=role_ids))
        index = build_menu_index(menu_crud.get_all_ordered(db, is_active=True))
        tree = visible_tree(index, flags)
        return {"menus": tree, "total_count": count_nodes(tree)}

    def get_statistics(self, db: Session) -> Dict[str, Any]:
        return tree_statistics(build_menu_index(menu_crud.get_all_ordered(db)))

    # -- menu permissions --------------------------------------------------

    def _get_role(self, db: Session, role_id: str) -> Role:
        role = role_crud.get(db, id=role_id)
        if not role:
            raise NotFound(f"Role with ID {role_id} not found")
        return role

    def get_menu_permissions(self, db: Session, menu_id: str):
        menu = self.get_menu(db, menu_id)
        return menu_permission_crud.find_for_menu(db, menu_id=menu.id)

    def get_role_menu_permissions(self, db: Session, role_id: str):
        role = self._get_role(db, role_id)
        return menu_permission_crud.find_for_role(db, role_id=role.id)

    def replace_role_menu_permissions(
        self,
        db: Session,
        role_id: str,
        entries: List[MenuPermissionEntry],
        actor_id: Optional[str] = None,
        audit_meta: Optional[Dict[str, Any]] = None,
    ):
        """Swap a role's whole menu-flag set in one transaction."""
        role = self._get_role(db, role_id)
        menu_ids = list(dict.fromkeys(entry.menu_id for entry in entries))
        found = {menu.id for menu in menu_crud.get_by_ids(db, menu_ids)}
        missing = [menu_id for menu_id in menu_ids if menu_id not in found]
        if missing:
            raise ValidationError("One or more menus not found", details={"missing_ids": missing})

        try:
            menu_permission_crud.delete_for_role(db, role_id=role.id)
            for entry in entries:
                flags = {flag: bool(value) for flag, value in entry.as_dict().items()}
                menu_permission_crud.upsert(db, menu_id=entry.menu_id, role_id=role.id, flags=flags)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise

        logger.info(f"Menu permissions replaced for role {role.name}: {len(menu_ids)} menus")
        audit_service.log_action(
            actor_id, "menu_permission:replace", "role", role.id,
            {"role_name": role.name, "menu_count": len(menu_ids)}, **(audit_meta or {}),
        )
        return menu_permission_crud.find_for_role(db, role_id=role.id)

    def update_role_menu_permissions(
        self,
        db: Session,
        role_id: str,
        entries: List[MenuPermissionEntry],
        actor_id: Optional[str] = None,
        audit_meta: Optional[Dict[str, Any]] = None,
    ) -> BulkOperationResult:
        """Upsert individual (menu, role) bindings; each entry succeeds or fails on its own."""
        role = self._get_role(db, role_id)
        result = BulkOperationResult()

        for entry in entries:
            flags = entry.as_dict()
            if not menu_crud.get(db, id=entry.menu_id):
                result.add_failure(entry.menu_id, "Menu not found")
                continue
            if not any(flags.values()):
                result.add_failure(entry.menu_id, "At least one permission must be granted")
                continue
            try:
                menu_permission_crud.upsert(
                    db, menu_id=entry.menu_id, role_id=role.id,
                    flags={flag: flags.get(flag, False) for flag in FLAG_FIELDS},
                )
                db.commit()
                result.success.append(entry.menu_id)
            except SQLAlchemyError as e:
                db.rollback()
                result.add_failure(entry.menu_id, str(e))

        if result.success:
            audit_service.log_action(
                actor_id, "menu_permission:update", "role", role.id,
                {"menu_ids": result.success, "failed": len(result.failed)}, **(audit_meta or {}),
            )
        return result

    def batch_update_menu_permissions(
        self,
        db: Session,
        data: MenuPermissionBatchUpdate,
        actor_id: Optional[str] = None,
        audit_meta: Optional[Dict[str, Any]] = None,
    ) -> BulkOperationResult:
        """
        Apply flag changes to menus (and optionally all their descendants).

        Flags left unset keep their stored value. A binding that ends up with
        every flag false is deleted.
        """
        role = self._get_role(db, data.role_id)
        index = build_menu_index(menu_crud.get_all_ordered(db))
        result = BulkOperationResult()
        processed = set()

        for entry in data.permissions:
            if entry.menu_id not in index.nodes:
                result.add_failure(entry.menu_id, "Menu not found")
                continue

            targets = [entry.menu_id]
            if data.apply_to_children:
                targets.extend(index.descendants(entry.menu_id))

            applied = []
            try:
                changes = entry.as_dict()
                for menu_id in targets:
                    if menu_id in processed or menu_id in applied:
                        continue
                    existing = menu_permission_crud.get_binding(db, menu_id=menu_id, role_id=role.id)
                    merged = {
                        flag: changes[flag] if flag in changes else bool(existing and getattr(existing, flag))
                        for flag in FLAG_FIELDS
                    }
                    if any(merged.values()):
                        menu_permission_crud.upsert(db, menu_id=menu_id, role_id=role.id, flags=merged)
                    elif existing:
                        menu_permission_crud.delete_binding(db, menu_id=menu_id, role_id=role.id)
                    applied.append(menu_id)
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                result.add_failure(entry.menu_id, str(e))
                continue
            # Only committed targets count as done
            processed.update(applied)
            result.success.extend(applied)

        if result.success:
            audit_service.log_action(
                actor_id, "menu_permission:batch_update", "role", role.id,
                {
                    "updated_menus": len(result.success),
                    "failed_menus": len(result.failed),
                    "apply_to_children": data.apply_to_children,
                },
                **(audit_meta or {}),
            )
        return result

    def remove_all_role_menu_permissions(
        self,
        db: Session,
        role_id: str,
        actor_id: Optional[str] = None,
        audit_meta: Optional[Dict[str, Any]] = None,
    ) -> int:
        role = self._get_role(db, role_id)
        try:
            removed = menu_permission_crud.delete_for_role(db, role_id=role.id)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise

        if removed:
            audit_service.log_action(
                actor_id, "menu_permission:remove_all", "role", role.id,
                {"deleted_count": removed}, **(audit_meta or {}),
            )
        return removed

    def check_menu_access(self, db: Session, menu_id: str, user_id: str, flag: str = "can_view") -> Dict[str, Any]:
        if flag not in FLAG_FIELDS:
            raise ValidationError(f"Unknown menu permission flag '{flag}'")

        if not user_crud.get(db, id=user_id):
            return {"allowed": False, "reason": "User not found"}

        roles = user_role_crud.get_active_roles_for_user(db, user_id=user_id)
        if not roles:
            return {"allowed": False, "reason": "User has no roles assigned"}

        menu = menu_crud.get(db, id=menu_id)
        if not menu:
            return {"allowed": False, "reason": "Menu not found"}
        if not menu.is_active:
            return {"allowed": False, "reason": "Menu is not active"}

        roles_by_id = {role.id: role for role in roles}
        granting = sorted(
            roles_by_id[binding.role_id].name
            for binding in menu_permission_crud.find_for_roles(db, role_ids=list(roles_by_id))
            if binding.menu_id == menu.id and getattr(binding, flag)
        )
        if granting:
            return {"allowed": True, "roles_that_grant_access": granting}
        return {"allowed": False, "reason": f"User does not have {flag} permission for this menu"}

    def get_permission_matrix(self, db: Session) -> List[Dict[str, Any]]:
        """Every role's stored flags per menu, regardless of any user."""
        bindings_by_role: Dict[str, Dict[str, Dict[str, bool]]] = {}
        for binding in menu_permission_crud.find_all(db):
            bindings_by_role.setdefault(binding.role_id, {})[binding.menu_id] = {
                flag: bool(getattr(binding, flag)) for flag in FLAG_FIELDS
            }

        return [
            {"role_id": role.id, "role_name": role.name, "permissions": bindings_by_role.get(role.id, {})}
            for role in role_crud.get_multi_by_filter(db, limit=None)
        ]


menu_service = MenuService()
