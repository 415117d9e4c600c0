from typing import Any, Dict, Generic, List, Optional, Type, TypeVar, Union
from pydantic import BaseModel
from sqlalchemy.orm import Session
from sqlalchemy import inspect

from app.database.session import Base

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)


class CRUDBase(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    """
    Base class for CRUD operations.
    """
    def __init__(self, model: Type[ModelType]):
        """
        Initialize with the model class
        """
        self.model = model

    def _primary_key(self):
        return getattr(self.model, inspect(self.model).primary_key[0].name)

    def get(self, db: Session, id: Any) -> Optional[ModelType]:
        """
        Get an object by ID
        """
        return db.query(self.model).filter(self._primary_key() == id).first()

    def get_by_ids(self, db: Session, ids: List[Any]) -> List[ModelType]:
        if not ids:
            return []
        return db.query(self.model).filter(self._primary_key().in_(ids)).all()

    def _apply_filters(self, query, filters: Optional[Dict]):
        if filters:
            for attr, value in filters.items():
                if hasattr(self.model, attr):
                    if isinstance(value, list):
                        query = query.filter(getattr(self.model, attr).in_(value))
                    else:
                        query = query.filter(getattr(self.model, attr) == value)
        return query

    def create(self, db: Session, *, obj_in: Union[CreateSchemaType, Dict[str, Any]], commit: bool = True) -> ModelType:
        """
        Create a new object. With ``commit=False`` the row is only flushed so
        the caller can finish its own transaction.
        """
        obj_in_data = obj_in if isinstance(obj_in, dict) else obj_in.model_dump()
        columns = {c.key for c in inspect(self.model).column_attrs}
        db_obj = self.model(**{k: v for k, v in obj_in_data.items() if k in columns})
        db.add(db_obj)
        if commit:
            db.commit()
            db.refresh(db_obj)
        else:
            db.flush()
        return db_obj

    def update(
        self,
        db: Session,
        *,
        db_obj: ModelType,
        obj_in: Union[UpdateSchemaType, Dict[str, Any]],
        commit: bool = True,
    ) -> ModelType:
        """
        Update an object
        """
        # If obj_in is a dict, use it directly; otherwise convert to dict
        if isinstance(obj_in, dict):
            update_data = obj_in
        else:
            update_data = obj_in.model_dump(exclude_unset=True)

        columns = {c.key for c in inspect(self.model).column_attrs}
        for field, value in update_data.items():
            if field in columns:
                setattr(db_obj, field, value)

        db.add(db_obj)
        if commit:
            db.commit()
            db.refresh(db_obj)
        else:
            db.flush()
        return db_obj

    def remove(self, db: Session, *, id: Any, commit: bool = True) -> Optional[ModelType]:
        """
        Remove an object
        """
        obj = self.get(db, id)
        if obj is None:
            return None
        db.delete(obj)
        if commit:
            db.commit()
        else:
            db.flush()
        return obj

    def count(self, db: Session, *, filters: Dict = None) -> int:
        """
        Count objects with optional filters
        """
        return self._apply_filters(db.query(self.model), filters).count()
