from sqlalchemy.orm import Session
from sqlalchemy import and_, func
from typing import Any, Dict, Optional, List, Tuple
from datetime import datetime
from app.models.audit_log import AuditLog
from app.models.user import User
from app.schemas.audit_log import AuditLogCreate, AuditLogFilter
from app.core.logging_config import get_logger

logger = get_logger(__name__)


class CRUDAuditLog:
    def create(self, db: Session, *, audit_log_data: AuditLogCreate) -> AuditLog:
        """
        Create a new audit log entry
        """
        db_audit_log = AuditLog(**audit_log_data.model_dump())
        db.add(db_audit_log)
        db.commit()
        db.refresh(db_audit_log)
        return db_audit_log

    def get_by_id(self, db: Session, *, audit_id: str) -> Optional[AuditLog]:
        """
        Get a specific audit log by ID
        """
        return db.query(AuditLog).filter(AuditLog.id == audit_id).first()

    def get_filtered(
        self,
        db: Session,
        *,
        filters: AuditLogFilter
    ) -> Tuple[List[AuditLog], int]:
        """
        Get audit logs with filters and pagination
        Returns tuple of (records, total_count)
        """
        query = db.query(AuditLog)

        # Apply filters
        conditions = []

        if filters.user_id:
            conditions.append(AuditLog.user_id == filters.user_id)

        if filters.action:
            conditions.append(AuditLog.action == filters.action)

        if filters.resource:
            conditions.append(AuditLog.resource == filters.resource)

        if filters.resource_id:
            conditions.append(AuditLog.resource_id == filters.resource_id)

        if filters.start_date:
            conditions.append(AuditLog.created_at >= filters.start_date)

        if filters.end_date:
            conditions.append(AuditLog.created_at <= filters.end_date)

        if conditions:
            query = query.filter(and_(*conditions))

        # Get total count
        total_count = query.count()

        # Apply pagination
        skip = (filters.page - 1) * filters.page_size
        records = (
            query
            .order_by(AuditLog.created_at.desc())
            .offset(skip)
            .limit(filters.page_size)
            .all()
        )

        return records, total_count

    def get_statistics(
        self,
        db: Session,
        *,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        top_users: int = 10,
    ) -> Dict[str, Any]:
        """
        Entry counts grouped by action, resource, actor and day
        """
        conditions = []
        if start_date:
            conditions.append(AuditLog.created_at >= start_date)
        if end_date:
            conditions.append(AuditLog.created_at <= end_date)

        def grouped(*columns):
            return db.query(*columns, func.count(AuditLog.id)).filter(*conditions)

        total = db.query(func.count(AuditLog.id)).filter(*conditions).scalar() or 0

        by_action = dict(grouped(AuditLog.action).group_by(AuditLog.action).all())
        by_resource = dict(
            grouped(AuditLog.resource)
            .filter(AuditLog.resource.isnot(None))
            .group_by(AuditLog.resource)
            .all()
        )

        count_col = func.count(AuditLog.id)
        by_user = (
            db.query(AuditLog.user_id, User.username, User.email, count_col)
            .outerjoin(User, User.id == AuditLog.user_id)
            .filter(AuditLog.user_id.isnot(None), *conditions)
            .group_by(AuditLog.user_id, User.username, User.email)
            .order_by(count_col.desc(), AuditLog.user_id)
            .limit(top_users)
            .all()
        )

        day = func.date(AuditLog.created_at)
        by_day = grouped(day).group_by(day).order_by(day.desc()).all()

        return {
            "total_logs": total,
            "by_action": by_action,
            "by_resource": by_resource,
            "by_user": [
                {"user_id": user_id, "username": username, "email": email, "count": count}
                for user_id, username, email, count in by_user
            ],
            # SQLite returns DATE() as text, PostgreSQL as a date
            "by_day": [{"date": str(date), "count": count} for date, count in by_day],
        }


# Create instance
audit_log = CRUDAuditLog()
