from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
from datetime import datetime, timezone


def _now() -> datetime:
    return datetime.now(timezone.utc)


class BulkFailure(BaseModel):
    id: str
    error: str


class BulkOperationResult(BaseModel):
    """Outcome of a partial-failure bulk operation: every item is attempted."""
    success: List[str] = Field(default_factory=list)
    failed: List[BulkFailure] = Field(default_factory=list)

    def add_failure(self, item_id: str, error: str) -> None:
        self.failed.append(BulkFailure(id=item_id, error=error))


# Utility functions for creating consistent responses
def create_success_response(data: Any = None, message: str = "Success") -> Dict[str, Any]:
    return {
        "success": True,
        "message": message,
        "data": data,
        "timestamp": _now().strftime("%Y-%m-%d %H:%M:%S")
    }

def create_error_response(message: str, error_code: Optional[str] = None, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {
        "success": False,
        "message": message,
        "error_code": error_code,
        "details": details,
        "timestamp": _now().strftime("%Y-%m-%d %H:%M:%S")
    }

