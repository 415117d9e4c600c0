from typing import Dict, List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import or_
from app.models.iam import Resource
from app.schemas.iam import ResourceCreate, ResourceUpdate
from app.crud.base import CRUDBase


class CRUDResource(CRUDBase[Resource, ResourceCreate, ResourceUpdate]):
    def get_by_name(self, db: Session, *, name: str) -> Optional[Resource]:
        return db.query(Resource).filter(Resource.name == name).first()

    def _filtered(self, db: Session, filters: Optional[Dict]):
        query = db.query(self.model)
        if filters and filters.get("search"):
            pattern = f"%{filters['search']}%"
            query = query.filter(or_(Resource.name.ilike(pattern), Resource.description.ilike(pattern)))
        return query

    def get_multi_by_filter(self, db: Session, *, filters: Dict = None, skip: int = 0, limit: int = 100) -> List[Resource]:
        return self._filtered(db, filters).order_by(Resource.name).offset(skip).limit(limit).all()

    def count(self, db: Session, *, filters: Dict = None) -> int:
        return self._filtered(db, filters).count()


resource_crud = CRUDResource(Resource)
