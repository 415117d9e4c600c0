"""
Effective permission resolution.

Snapshot mode evaluates against the permission names embedded in the token at
login; live mode re-reads the user's role bindings. Both run the same matcher,
so a decision only differs when the bindings changed after the token was
issued.
"""
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from sqlalchemy.orm import Session

from app.core.exceptions import NotFound
from app.core.logging_config import get_logger
from app.crud.iam import user_role_crud
from app.crud.user import user_crud
from app.models.user import User
from app.schemas.iam.permission import PermissionCheckResult
from common_utils.auth.context import AuthContext
from common_utils.auth.permission_matcher import match_permission

logger = get_logger(__name__)

SUPERUSER_SOURCE = "superuser"


def evaluate_permissions(
    granted: Iterable[str],
    required: Sequence[str],
    require_all: bool = False,
    is_superuser: bool = False,
) -> Tuple[bool, List[str]]:
    """
    Decide a multi-permission requirement.

    Returns ``(allowed, missing)`` where ``missing`` lists the required names
    that no grant satisfies.
    """
    if is_superuser:
        return True, []

    granted_set = set(granted)
    missing = [name for name in required if match_permission(granted_set, name) is None]
    if require_all:
        return not missing, missing
    return len(missing) < len(required), missing


class EffectivePermissionResolver:
    """Computes and checks a user's effective permission set."""

    def check_snapshot(self, auth: AuthContext, required: str) -> PermissionCheckResult:
        if auth.is_superuser:
            return PermissionCheckResult(has_permission=True, source=SUPERUSER_SOURCE)
        grant = match_permission(auth.permissions, required)
        return PermissionCheckResult(has_permission=grant is not None, source=grant)

    def check_live(self, db: Session, user_id: str, required: str) -> PermissionCheckResult:
        """Check ``required`` against the user's current bindings.

        Raises NotFound for an unknown user. An inactive user holds nothing.
        """
        is_superuser, granted = self.live_grants(db, user_id)
        if is_superuser:
            return PermissionCheckResult(has_permission=True, source=SUPERUSER_SOURCE)
        grant = match_permission(granted, required)
        return PermissionCheckResult(has_permission=grant is not None, source=grant)

    def live_grants(self, db: Session, user_id: str) -> Tuple[bool, Set[str]]:
        user = self.get_user(db, user_id)
        if not user.is_active:
            logger.info(f"Live check for inactive user {user_id}: no grants")
            return False, set()
        return bool(user.is_superuser), self.effective_permissions(db, user_id)

    def get_user(self, db: Session, user_id: str) -> User:
        user = user_crud.get(db, id=user_id)
        if not user:
            raise NotFound(f"User with ID {user_id} not found")
        return user

    def effective_permissions(self, db: Session, user_id: str) -> Set[str]:
        """Union of the permission names bound to the user's active roles."""
        return set(user_role_crud.get_permission_names_for_user(db, user_id=user_id))

    def active_role_names(self, db: Session, user_id: str) -> List[str]:
        return sorted(role.name for role in user_role_crud.get_active_roles_for_user(db, user_id=user_id))

    def build_token_claims(self, db: Session, user: User) -> Dict:
        """Login-time snapshot embedded in the access token."""
        return {
            "subject_id": user.id,
            "username": user.username,
            "email": user.email,
            "roles": self.active_role_names(db, user.id),
            "permissions": sorted(self.effective_permissions(db, user.id)),
            "is_superuser": bool(user.is_superuser),
        }

    def check_many(
        self,
        db: Optional[Session],
        auth: AuthContext,
        required: Sequence[str],
        require_all: bool = False,
        live: bool = False,
    ) -> Tuple[bool, List[str]]:
        if auth.is_superuser:
            return True, []
        if live:
            is_superuser, granted = self.live_grants(db, auth.subject_id)
        else:
            is_superuser, granted = False, set(auth.permissions)
        return evaluate_permissions(granted, required, require_all, is_superuser)


permission_resolver = EffectivePermissionResolver()
