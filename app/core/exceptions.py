"""
Error taxonomy shared by the services and the authorization gates.

Every error carries the HTTP status it maps to, so transport code only has to
render it (see the handler registered in ``main.py``).
"""
from typing import Any, Dict, Optional

from fastapi import status


class RBACError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details


class Unauthenticated(RBACError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "AUTHENTICATION_REQUIRED"


class Forbidden(RBACError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "FORBIDDEN"


class NotFound(RBACError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND"


class Conflict(RBACError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "CONFLICT"


class ValidationError(RBACError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "VALIDATION_ERROR"


class MethodNotAllowed(RBACError):
    status_code = status.HTTP_405_METHOD_NOT_ALLOWED
    error_code = "METHOD_NOT_ALLOWED"
