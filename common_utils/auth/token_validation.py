import time
from typing import Optional

from cachetools import TTLCache
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.config import settings
from app.core.logging_config import get_logger
from .context import AuthContext
from .utils import decode_access_token

logger = get_logger(__name__)

# Decoded contexts keyed by the raw token; entries never outlive the TTL
token_cache: TTLCache = TTLCache(
    maxsize=settings.TOKEN_CACHE_MAX_SIZE,
    ttl=settings.TOKEN_CACHE_TTL_SECONDS,
)

# auto_error=False: a missing header yields None and the gate decides
security = HTTPBearer(auto_error=False)


def resolve_auth_context(token: str, use_cache: bool = True) -> AuthContext:
    """Verify a bearer token and build the request's AuthContext."""
    if use_cache:
        cached = token_cache.get(token)
        if cached is not None:
            context, expires_at = cached
            if expires_at > time.time():
                return context
            token_cache.pop(token, None)

    payload = decode_access_token(token)
    context = AuthContext.from_claims(payload)

    if use_cache:
        token_cache[token] = (context, float(payload.get("exp", 0)))
    return context


def validate_bearer_token(use_cache: bool = True):
    async def _get_auth_context(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    ) -> Optional[AuthContext]:
        if credentials is None or not credentials.credentials:
            return None
        if credentials.scheme.lower() != "bearer":
            return None
        return resolve_auth_context(credentials.credentials, use_cache=use_cache)

    return _get_auth_context


get_auth_context = validate_bearer_token(use_cache=True)
