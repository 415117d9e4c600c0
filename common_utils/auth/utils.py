from datetime import datetime, timedelta, timezone
import hashlib
import hmac
from typing import Optional, Dict, Iterable
import jwt
from app.config import settings
from app.core.exceptions import Unauthenticated

# Configuration - use centralized settings
SECRET_KEY = settings.SECRET_KEY
ALGORITHM = settings.ALGORITHM
ACCESS_TOKEN_EXPIRE_MINUTES = settings.ACCESS_TOKEN_EXPIRE_MINUTES

def create_access_token(
    subject_id: str,
    username: str,
    email: str,
    roles: Iterable[str] = (),
    permissions: Iterable[str] = (),
    is_superuser: bool = False,
    expires_delta: Optional[timedelta] = None
) -> str:
    now = datetime.now(timezone.utc)
    to_encode = {
        "sub": str(subject_id),
        "username": username,
        "email": email,
        "roles": sorted(set(roles)),
        "permissions": sorted(set(permissions)),
        "is_superuser": is_superuser,
        "token_type": "access",
    }

    expire = now + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire, "iat": now})

    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Dict:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("Token expired", error_code="TOKEN_EXPIRED")
    except jwt.InvalidTokenError:
        raise Unauthenticated("Invalid token", error_code="INVALID_TOKEN")

    if payload.get("token_type") != "access" or not payload.get("sub"):
        raise Unauthenticated("Invalid token", error_code="INVALID_TOKEN")
    return payload

def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode('utf-8')).hexdigest()

def verify_password(plain_password: str, hashed_password: str) -> bool:
    return hmac.compare_digest(hash_password(plain_password), hashed_password or "")
