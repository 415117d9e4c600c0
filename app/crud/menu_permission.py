from typing import Dict, Iterable, List, Optional
from sqlalchemy.orm import Session

from app.crud.base import CRUDBase
from app.models.menu_permission import MenuPermission

FLAG_FIELDS = ("can_view", "can_edit", "can_delete", "can_export")


class CRUDMenuPermission(CRUDBase[MenuPermission, dict, dict]):
    def get_binding(self, db: Session, *, menu_id: str, role_id: str) -> Optional[MenuPermission]:
        return db.query(MenuPermission).filter(
            MenuPermission.menu_id == menu_id,
            MenuPermission.role_id == role_id
        ).first()

    def find_for_roles(self, db: Session, *, role_ids: Iterable[str]) -> List[MenuPermission]:
        role_ids = list(role_ids)
        if not role_ids:
            return []
        return db.query(MenuPermission).filter(MenuPermission.role_id.in_(role_ids)).all()

    def find_for_menu(self, db: Session, *, menu_id: str) -> List[MenuPermission]:
        return db.query(MenuPermission).filter(MenuPermission.menu_id == menu_id).all()

    def find_for_role(self, db: Session, *, role_id: str) -> List[MenuPermission]:
        return (
            db.query(MenuPermission)
            .filter(MenuPermission.role_id == role_id)
            .order_by(MenuPermission.menu_id)
            .all()
        )

    def find_all(self, db: Session) -> List[MenuPermission]:
        return db.query(MenuPermission).all()

    def upsert(self, db: Session, *, menu_id: str, role_id: str, flags: Dict[str, bool]) -> MenuPermission:
        """Create or update one binding; only the flags present in ``flags`` change."""
        binding = self.get_binding(db, menu_id=menu_id, role_id=role_id)
        if binding is None:
            binding = MenuPermission(menu_id=menu_id, role_id=role_id)
            for field in FLAG_FIELDS:
                setattr(binding, field, False)
            db.add(binding)
        for field in FLAG_FIELDS:
            if field in flags and flags[field] is not None:
                setattr(binding, field, bool(flags[field]))
        db.flush()
        return binding

    def delete_binding(self, db: Session, *, menu_id: str, role_id: str) -> int:
        removed = db.query(MenuPermission).filter(
            MenuPermission.menu_id == menu_id,
            MenuPermission.role_id == role_id
        ).delete(synchronize_session="fetch")
        db.flush()
        return removed

    def delete_for_role(self, db: Session, *, role_id: str) -> int:
        removed = db.query(MenuPermission).filter(
            MenuPermission.role_id == role_id
        ).delete(synchronize_session="fetch")
        db.flush()
        return removed

    def delete_for_menu(self, db: Session, *, menu_id: str) -> int:
        removed = db.query(MenuPermission).filter(
            MenuPermission.menu_id == menu_id
        ).delete(synchronize_session="fetch")
        db.flush()
        return removed


menu_permission_crud = CRUDMenuPermission(MenuPermission)
