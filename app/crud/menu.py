from typing import Dict, List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.crud.base import CRUDBase
from app.models.menu import Menu


class CRUDMenu(CRUDBase[Menu, dict, dict]):
    def get_all_ordered(self, db: Session, *, is_active: Optional[bool] = None) -> List[Menu]:
        query = db.query(Menu)
        if is_active is not None:
            query = query.filter(Menu.is_active == is_active)
        return query.order_by(Menu.order_index, Menu.id).all()

    def count_children(self, db: Session, *, menu_id: str) -> int:
        return db.query(func.count(Menu.id)).filter(Menu.parent_id == menu_id).scalar() or 0

    def parent_map(self, db: Session) -> Dict[str, Optional[str]]:
        return {menu_id: parent_id for menu_id, parent_id in db.query(Menu.id, Menu.parent_id)}

    def next_order_index(self, db: Session, *, parent_id: Optional[str]) -> int:
        query = db.query(func.max(Menu.order_index))
        if parent_id is None:
            query = query.filter(Menu.parent_id.is_(None))
        else:
            query = query.filter(Menu.parent_id == parent_id)
        current = query.scalar()
        return 0 if current is None else current + 1


menu_crud = CRUDMenu(Menu)
