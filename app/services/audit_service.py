from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from app.config import settings
from app.core.exceptions import NotFound, ValidationError
from app.core.logging_config import get_logger
from app.crud.audit_log import audit_log
from app.database.session import SessionLocal
from app.models.audit_log import AuditLog
from app.schemas.audit_log import AuditLogCreate, AuditLogFilter, AuditStatistics

logger = get_logger(__name__)


class AuditService:
    """
    Best-effort audit trail for authorization-relevant mutations.

    Entries are written through a session of their own, after the business
    transaction has committed. A failed write is logged and dropped; it never
    reaches the caller and never rolls back the mutation it describes.
    """

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        self.session_factory = session_factory or SessionLocal

    def log_action(
        self,
        user_id: Optional[str],
        action: str,
        resource: Optional[str] = None,
        resource_id: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Optional[AuditLog]:
        """
        Append one audit entry.

        Returns the detached AuditLog row, or None when auditing is disabled or
        the write failed.
        """
        if not settings.AUDIT_ENABLED:
            return None

        db = None
        try:
            db = self.session_factory()
            entry = audit_log.create(
                db=db,
                audit_log_data=AuditLogCreate(
                    user_id=user_id,
                    action=action,
                    resource=resource,
                    resource_id=str(resource_id) if resource_id is not None else None,
                    details=jsonable_encoder(details) if details is not None else None,
                    ip_address=ip_address,
                    user_agent=user_agent[:255] if user_agent else None,
                ),
            )
            db.expunge(entry)
            logger.debug(f"Audit log created: {action} {resource}:{resource_id}")
            return entry
        except Exception as audit_error:
            logger.error(f"Failed to create audit log for {action}: {str(audit_error)}", exc_info=True)
            if db is not None:
                db.rollback()
            return None
        finally:
            if db is not None:
                db.close()

    def list_logs(self, db: Session, filters: AuditLogFilter) -> Tuple[List[AuditLog], int]:
        return audit_log.get_filtered(db, filters=filters)

    def get_statistics(
        self, db: Session, start_date: Optional[datetime] = None, end_date: Optional[datetime] = None
    ) -> AuditStatistics:
        """Counts by action, resource, most active users and day, optionally within a date range."""
        if start_date and end_date and start_date > end_date:
            raise ValidationError("start_date must not be after end_date")
        return AuditStatistics(**audit_log.get_statistics(db, start_date=start_date, end_date=end_date))

    def get_log(self, db: Session, audit_id: str) -> AuditLog:
        entry = audit_log.get_by_id(db, audit_id=audit_id)
        if not entry:
            raise NotFound(f"Audit log with ID {audit_id} not found")
        return entry


audit_service = AuditService()
