from typing import List, Dict, Optional
from sqlalchemy.orm import Session
from sqlalchemy import or_, func
from app.models.iam import Role, Permission, RolePermission, UserRole
from app.schemas.iam import RoleCreate, RoleUpdate
from app.crud.base import CRUDBase

class CRUDRole(CRUDBase[Role, RoleCreate, RoleUpdate]):

    def get_by_name(self, db: Session, *, name: str) -> Optional[Role]:
        return db.query(Role).filter(Role.name == name).first()

    def find_permissions_by_role_id(self, db: Session, *, role_id: str) -> List[Permission]:
        return (
            db.query(Permission)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .filter(RolePermission.role_id == role_id)
            .order_by(Permission.resource, Permission.action)
            .all()
        )

    def add_permission_bindings(
        self, db: Session, *, role_id: str, permission_ids: List[str], granted_by: Optional[str] = None
    ) -> List[str]:
        """Flush bindings for ids not yet bound; returns the ids actually added."""
        existing = {
            pid for (pid,) in db.query(RolePermission.permission_id).filter(RolePermission.role_id == role_id)
        }
        added = []
        for permission_id in dict.fromkeys(permission_ids):
            if permission_id in existing:
                continue
            db.add(RolePermission(role_id=role_id, permission_id=permission_id, granted_by=granted_by))
            added.append(permission_id)
        db.flush()
        return added

    def remove_permission_bindings(self, db: Session, *, role_id: str, permission_ids: List[str]) -> List[str]:
        """Delete the given bindings; returns the ids that were actually bound."""
        if not permission_ids:
            return []
        query = db.query(RolePermission).filter(
            RolePermission.role_id == role_id,
            RolePermission.permission_id.in_(permission_ids)
        )
        removed = [pid for (pid,) in query.with_entities(RolePermission.permission_id)]
        if removed:
            query.delete(synchronize_session="fetch")
            db.flush()
        return removed

    def replace_role_permissions(
        self, db: Session, *, role_id: str, permission_ids: List[str], granted_by: Optional[str] = None
    ) -> None:
        """
        Replace every permission binding of a role in one transaction.

        Delete and insert share the transaction, so readers at READ COMMITTED or
        stricter never see the empty intermediate set. Under READ UNCOMMITTED
        (or a store without transactions) that window is observable.
        """
        try:
            db.query(RolePermission).filter(RolePermission.role_id == role_id).delete(synchronize_session="fetch")
            for permission_id in dict.fromkeys(permission_ids):
                db.add(RolePermission(role_id=role_id, permission_id=permission_id, granted_by=granted_by))
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.expire_all()

    def _filtered(self, db: Session, filters: Optional[Dict]):
        query = db.query(self.model)

        if filters:
            if filters.get("search"):
                pattern = f"%{filters['search']}%"
                query = query.filter(or_(Role.name.ilike(pattern), Role.description.ilike(pattern)))
            if filters.get("is_system") is not None:
                query = query.filter(Role.is_system == filters["is_system"])
            if filters.get("is_active") is not None:
                query = query.filter(Role.is_active == filters["is_active"])

        return query

    def get_multi_by_filter(self, db: Session, *, filters: Dict = None, skip: int = 0, limit: int = 100) -> List[Role]:
        return self._filtered(db, filters).order_by(Role.name).offset(skip).limit(limit).all()

    def count(self, db: Session, *, filters: Dict = None) -> int:
        return self._filtered(db, filters).count()

    def count_users(self, db: Session, *, role_id: str) -> int:
        return db.query(func.count(UserRole.user_id)).filter(UserRole.role_id == role_id).scalar() or 0

    def count_permissions(self, db: Session, *, role_id: str) -> int:
        return db.query(func.count(RolePermission.permission_id)).filter(
            RolePermission.role_id == role_id
        ).scalar() or 0

    def get_roles_for_permission(self, db: Session, *, permission_id: str) -> List[Role]:
        return (
            db.query(Role)
            .join(RolePermission, RolePermission.role_id == Role.id)
            .filter(RolePermission.permission_id == permission_id)
            .order_by(Role.name)
            .all()
        )

role_crud = CRUDRole(Role)
