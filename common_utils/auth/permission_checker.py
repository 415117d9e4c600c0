import inspect
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.core.exceptions import (
    Forbidden, MethodNotAllowed, NotFound, RBACError, Unauthenticated, ValidationError,
)
from app.core.logging_config import get_logger
from app.database.session import get_db
from app.services.permission_resolver import permission_resolver
from common_utils.auth.permission_matcher import format_permission_name

from .context import AuthContext
from .token_validation import get_auth_context

logger = get_logger(__name__)

PermissionSpec = Union[str, Sequence[str]]

METHOD_ACTIONS: Dict[str, str] = {
    "GET": "read",
    "POST": "create",
    "PUT": "update",
    "PATCH": "update",
    "DELETE": "delete",
}


def _as_list(value: PermissionSpec) -> List[str]:
    if isinstance(value, str):
        return [value]
    return list(value)


async def _maybe_await(value):
    if inspect.isawaitable(value):
        return await value
    return value


async def read_json_body(request: Request) -> Dict[str, Any]:
    """Request body as a dict; empty or non-JSON bodies read as ``{}``."""
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


class AuthorizationGate:
    """
    Base class of every route guard.

    Instances are FastAPI dependencies: ``Depends(gate)`` returns the request's
    AuthContext once the gate allows. A missing principal is rejected before
    anything else and a superuser is allowed before any subclass logic runs.
    """

    async def __call__(
        self,
        request: Request,
        auth: Optional[AuthContext] = Depends(get_auth_context),
        db: Session = Depends(get_db),
    ) -> AuthContext:
        await self.check(request, auth, db)
        return auth

    async def check(self, request: Request, auth: Optional[AuthContext], db: Session) -> None:
        if auth is None:
            raise Unauthenticated("Authentication required")
        if auth.is_superuser:
            return
        await self.authorize(request, auth, db)

    async def authorize(self, request: Request, auth: AuthContext, db: Session) -> None:
        raise NotImplementedError


class PermissionChecker(AuthorizationGate):
    def __init__(self, required_permissions: PermissionSpec, require_all: bool = False, live: bool = False):
        self.required_permissions = _as_list(required_permissions)
        if not self.required_permissions:
            raise ValidationError("At least one permission is required")
        self.require_all = require_all
        self.live = live

    async def authorize(self, request: Request, auth: AuthContext, db: Session) -> None:
        await enforce_permissions(auth, db, self.required_permissions, self.require_all, self.live)


async def enforce_permissions(
    auth: AuthContext,
    db: Optional[Session],
    required: List[str],
    require_all: bool = False,
    live: bool = False,
) -> None:
    try:
        allowed, missing = permission_resolver.check_many(db, auth, required, require_all, live)
    except NotFound:
        # Token subject no longer exists
        raise Unauthenticated("Authenticated user no longer exists")

    if not allowed:
        logger.warning(
            f"Permission denied for {auth.username or auth.subject_id}. "
            f"Required ({'all' if require_all else 'any'}): {required}, missing: {missing}"
        )
        raise Forbidden(
            "Insufficient permissions",
            error_code="INSUFFICIENT_PERMISSIONS",
            details={"required": required, "missing": missing},
        )


class RoleChecker(AuthorizationGate):
    def __init__(self, required_roles: PermissionSpec):
        self.required_roles = _as_list(required_roles)
        if not self.required_roles:
            raise ValidationError("At least one role is required")

    async def authorize(self, request: Request, auth: AuthContext, db: Session) -> None:
        if set(auth.roles) & set(self.required_roles):
            return
        logger.warning(f"Role check failed for {auth.username or auth.subject_id}. Required one of: {self.required_roles}")
        raise Forbidden(
            "Insufficient role",
            error_code="INSUFFICIENT_ROLE",
            details={"required_roles": self.required_roles},
        )


OwnerResolver = Callable[[Request, Session], Union[Optional[str], Awaitable[Optional[str]]]]


class OwnershipOrPermissionChecker(AuthorizationGate):
    """
    Allow the owner of a resource, otherwise require ``fallback_permission``.

    The owner id comes from exactly one source: a path parameter
    (``owner_id_param``), a JSON body field (``owner_id_field``) or a callable
    ``owner_id_resolver(request, db)`` that may be a coroutine function.
    """

    def __init__(
        self,
        fallback_permission: PermissionSpec,
        owner_id_param: Optional[str] = None,
        owner_id_field: Optional[str] = None,
        owner_id_resolver: Optional[OwnerResolver] = None,
        live: bool = False,
    ):
        sources = [s for s in (owner_id_param, owner_id_field, owner_id_resolver) if s is not None]
        if len(sources) != 1:
            raise ValueError("Exactly one owner id source must be given")
        self.fallback = PermissionChecker(fallback_permission, live=live)
        self.owner_id_param = owner_id_param
        self.owner_id_field = owner_id_field
        self.owner_id_resolver = owner_id_resolver

    async def resolve_owner_id(self, request: Request, db: Session) -> Optional[str]:
        if self.owner_id_param:
            return request.path_params.get(self.owner_id_param)
        if self.owner_id_field:
            body = await read_json_body(request)
            return body.get(self.owner_id_field)
        return await _maybe_await(self.owner_id_resolver(request, db))

    async def authorize(self, request: Request, auth: AuthContext, db: Session) -> None:
        owner_id = await self.resolve_owner_id(request, db)
        if owner_id is not None and str(owner_id) == auth.subject_id:
            return
        await self.fallback.authorize(request, auth, db)


class ResourcePermissionChecker(AuthorizationGate):
    """Requires ``resource:<action>`` where the action follows the HTTP method."""

    def __init__(self, resource: str, live: bool = False):
        self.resource = resource
        self.live = live

    async def authorize(self, request: Request, auth: AuthContext, db: Session) -> None:
        action = METHOD_ACTIONS.get(request.method.upper())
        if action is None:
            raise MethodNotAllowed(f"Method {request.method} is not mapped to a permission action")
        required = format_permission_name(self.resource, action)
        await enforce_permissions(auth, db, [required], live=self.live)


class AnyOf(AuthorizationGate):
    """Passes on the first gate that allows; otherwise re-raises the last rejection."""

    def __init__(self, *gates: AuthorizationGate):
        if not gates:
            raise ValidationError("At least one gate is required")
        self.gates = gates

    async def authorize(self, request: Request, auth: AuthContext, db: Session) -> None:
        last_error: Optional[RBACError] = None
        for gate in self.gates:
            try:
                await gate.check(request, auth, db)
                return
            except RBACError as e:
                last_error = e
        raise last_error


PermissionDeriver = Callable[[Request], Union[PermissionSpec, Awaitable[PermissionSpec]]]


class DynamicPermissionChecker(AuthorizationGate):
    """Permissions derived from the request itself by ``derive(request)``."""

    def __init__(self, derive: PermissionDeriver, require_all: bool = False, live: bool = False):
        self.derive = derive
        self.require_all = require_all
        self.live = live

    async def authorize(self, request: Request, auth: AuthContext, db: Session) -> None:
        try:
            required = _as_list(await _maybe_await(self.derive(request)))
        except Exception:
            logger.warning(f"Permission derivation failed for {request.method} {request.url.path}", exc_info=True)
            raise Forbidden("Insufficient permissions", error_code="INSUFFICIENT_PERMISSIONS")
        if not required:
            raise Forbidden("Insufficient permissions", error_code="INSUFFICIENT_PERMISSIONS")
        await enforce_permissions(auth, db, required, self.require_all, self.live)


class AuthenticatedChecker(AuthorizationGate):
    """Any authenticated principal."""

    async def authorize(self, request: Request, auth: AuthContext, db: Session) -> None:
        return None


class SuperuserChecker(AuthorizationGate):
    async def authorize(self, request: Request, auth: AuthContext, db: Session) -> None:
        logger.warning(f"Superuser access denied for {auth.username or auth.subject_id}")
        raise Forbidden("Superuser access required", error_code="SUPERUSER_REQUIRED")


def require_permission(required: PermissionSpec, require_all: bool = False, live: bool = False) -> PermissionChecker:
    return PermissionChecker(required, require_all=require_all, live=live)


def require_role(required: PermissionSpec) -> RoleChecker:
    return RoleChecker(required)


def require_ownership_or_permission(fallback_permission: PermissionSpec, **owner_source) -> OwnershipOrPermissionChecker:
    return OwnershipOrPermissionChecker(fallback_permission, **owner_source)


def require_resource_permission(resource: str, live: bool = False) -> ResourcePermissionChecker:
    return ResourcePermissionChecker(resource, live=live)


def require_any(*gates: AuthorizationGate) -> AnyOf:
    return AnyOf(*gates)


def require_dynamic_permission(derive: PermissionDeriver, require_all: bool = False, live: bool = False) -> DynamicPermissionChecker:
    return DynamicPermissionChecker(derive, require_all=require_all, live=live)


def require_superuser() -> SuperuserChecker:
    return SuperuserChecker()


def require_authenticated() -> AuthenticatedChecker:
    return AuthenticatedChecker()
