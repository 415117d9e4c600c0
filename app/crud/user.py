from typing import Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.crud.base import CRUDBase
from app.models.user import User


class CRUDUser(CRUDBase[User, dict, dict]):
    def get_by_login(self, db: Session, *, login: str) -> Optional[User]:
        """Look a user up by username or email."""
        return db.query(User).filter(
            or_(User.username == login, User.email == login)
        ).first()


user_crud = CRUDUser(User)
