from typing import List, Optional
from sqlalchemy.orm import Session
from app.models.iam import Permission, Role, RolePermission, UserRole
from app.crud.base import CRUDBase


class CRUDUserRole(CRUDBase[UserRole, dict, dict]):
    def get_binding(self, db: Session, *, user_id: str, role_id: str) -> Optional[UserRole]:
        return db.query(UserRole).filter(
            UserRole.user_id == user_id,
            UserRole.role_id == role_id
        ).first()

    def assign(self, db: Session, *, user_id: str, role_id: str, assigned_by: Optional[str] = None) -> UserRole:
        binding = UserRole(user_id=user_id, role_id=role_id, assigned_by=assigned_by)
        db.add(binding)
        db.flush()
        return binding

    def unassign(self, db: Session, *, user_id: str, role_id: str) -> int:
        removed = db.query(UserRole).filter(
            UserRole.user_id == user_id,
            UserRole.role_id == role_id
        ).delete(synchronize_session="fetch")
        db.flush()
        return removed

    def get_user_ids_for_role(self, db: Session, *, role_id: str) -> List[str]:
        return [uid for (uid,) in db.query(UserRole.user_id).filter(UserRole.role_id == role_id)]

    def get_active_roles_for_user(self, db: Session, *, user_id: str) -> List[Role]:
        return (
            db.query(Role)
            .join(UserRole, UserRole.role_id == Role.id)
            .filter(UserRole.user_id == user_id, Role.is_active.is_(True))
            .all()
        )

    def get_permission_names_for_user(self, db: Session, *, user_id: str) -> List[str]:
        """Distinct permission names reachable through the user's active roles."""
        rows = (
            db.query(Permission.name)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .join(Role, Role.id == RolePermission.role_id)
            .join(UserRole, UserRole.role_id == Role.id)
            .filter(UserRole.user_id == user_id, Role.is_active.is_(True))
            .distinct()
            .all()
        )
        return [name for (name,) in rows]


user_role_crud = CRUDUserRole(UserRole)
