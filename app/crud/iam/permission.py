from typing import List, Dict, Optional
from sqlalchemy.orm import Session
from sqlalchemy import or_, func
from app.models.iam import Permission, RolePermission
from app.schemas.iam import PermissionCreate, PermissionUpdate
from app.crud.base import CRUDBase

class CRUDPermission(CRUDBase[Permission, PermissionCreate, PermissionUpdate]):
    def get_by_name(self, db: Session, *, name: str) -> Optional[Permission]:
        return db.query(Permission).filter(Permission.name == name).first()

    def get_by_resource_action(self, db: Session, *, resource: str, action: str) -> Optional[Permission]:
        return db.query(Permission).filter(
            Permission.resource == resource,
            Permission.action == action
        ).first()

    def get_by_resource(self, db: Session, *, resource: str) -> List[Permission]:
        return db.query(Permission).filter(Permission.resource == resource).order_by(Permission.action).all()

    def _filtered(self, db: Session, filters: Optional[Dict]):
        query = db.query(self.model)

        if filters:
            if filters.get("resource"):
                query = query.filter(Permission.resource == filters["resource"])
            if filters.get("action"):
                query = query.filter(Permission.action == filters["action"])
            if filters.get("search"):
                pattern = f"%{filters['search']}%"
                query = query.filter(or_(Permission.name.ilike(pattern), Permission.description.ilike(pattern)))

        return query

    def get_multi_by_filter(self, db: Session, *, filters: Dict = None, skip: int = 0, limit: int = 100) -> List[Permission]:
        return self._filtered(db, filters).order_by(Permission.resource, Permission.action).offset(skip).limit(limit).all()

    def count(self, db: Session, *, filters: Dict = None) -> int:
        return self._filtered(db, filters).count()

    def count_by_resource(self, db: Session, *, resource: str) -> int:
        return db.query(func.count(Permission.id)).filter(Permission.resource == resource).scalar() or 0

    def count_roles_by_permission(self, db: Session, *, permission_id: str) -> int:
        return db.query(func.count(RolePermission.role_id)).filter(
            RolePermission.permission_id == permission_id
        ).scalar() or 0

permission_crud = CRUDPermission(Permission)
