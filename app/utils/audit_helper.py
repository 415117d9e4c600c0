"""
Simplified audit helper utility
"""
from fastapi import Request
from typing import Dict, Optional


def request_audit_meta(request: Optional[Request]) -> Dict[str, Optional[str]]:
    """
    Client details recorded next to every audit entry of a request.

    Returns ``{"ip_address": ..., "user_agent": ...}``, suitable for passing to
    ``audit_service.log_action(**meta)`` through the services' ``audit_meta``.
    """
    if request is None:
        return {}
    return {
        "ip_address": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
    }
