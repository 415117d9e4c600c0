from typing import Any, Dict, FrozenSet, Tuple

from pydantic import BaseModel, ConfigDict, Field


class AuthContext(BaseModel):
    """
    The authenticated principal of one request.

    Built once from the verified token claims and handed explicitly to every
    gate and resolver call. ``permissions`` is the login-time snapshot of the
    effective permission set.
    """
    subject_id: str
    username: str = ""
    email: str = ""
    roles: Tuple[str, ...] = ()
    permissions: FrozenSet[str] = Field(default_factory=frozenset)
    is_superuser: bool = False

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_claims(cls, claims: Dict[str, Any]) -> "AuthContext":
        return cls(
            subject_id=str(claims["sub"]),
            username=claims.get("username") or "",
            email=claims.get("email") or "",
            roles=tuple(claims.get("roles") or ()),
            permissions=frozenset(claims.get("permissions") or ()),
            is_superuser=bool(claims.get("is_superuser", False)),
        )
