import re
from typing import Any, Dict, Optional
from fastapi.encoders import jsonable_encoder
from app.schemas.base import (
    create_success_response,
    create_error_response
)
from app.core.exceptions import Conflict
from app.core.logging_config import get_logger

logger = get_logger(__name__)


class ResponseWrapper:
    """Utility class for wrapping responses in standard format"""

    @staticmethod
    def success(data: Any = None, message: str = "Success") -> Dict[str, Any]:
        return create_success_response(data, message)

    @staticmethod
    def error(
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Wrap error response and make it JSON-safe"""
        raw = create_error_response(message, error_code, details)
        return jsonable_encoder(raw)  # ✅ ensures all dates, decimals, UUIDs are serializable

    @staticmethod
    def created(data: Any = None, message: str = "Resource created successfully") -> Dict[str, Any]:
        return create_success_response(data, message)

    @staticmethod
    def updated(data: Any = None, message: str = "Resource updated successfully") -> Dict[str, Any]:
        return create_success_response(data, message)

    @staticmethod
    def deleted(message: str = "Resource deleted successfully") -> Dict[str, Any]:
        return create_success_response(None, message)


def conflict_from_integrity_error(error: Exception) -> Conflict:
    """Translate a unique-constraint violation into a Conflict with the offending fields"""
    error_msg = str(getattr(error, "orig", error)).strip().replace("\n", " ")

    field_info = {}
    match = re.search(r"Key \((.*?)\)=\((.*?)\)", error_msg)
    if match:
        columns = match.group(1).split(", ")
        values = match.group(2).split(", ")
        field_info = {col: val for col, val in zip(columns, values)}
    else:
        # SQLite: "UNIQUE constraint failed: roles.name"
        match = re.search(r"UNIQUE constraint failed: (.*)", error_msg)
        if match:
            field_info = {col.strip(): None for col in match.group(1).split(",")}

    return Conflict(
        "Resource already exists with the same values",
        error_code="DUPLICATE_RESOURCE",
        details={"db_error": error_msg, "conflicting_fields": field_info},
    )
