from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from app.config import settings
from app.core.exceptions import Unauthenticated
from app.core.logging_config import get_logger
from app.crud.user import user_crud
from app.database.session import get_db
from app.schemas.auth import LoginRequest, LoginResponse, MeResponse, UserSummary
from app.services.audit_service import audit_service
from app.services.permission_resolver import permission_resolver
from app.utils.audit_helper import request_audit_meta
from app.utils.response_utils import ResponseWrapper
from common_utils.auth.context import AuthContext
from common_utils.auth.permission_checker import require_authenticated
from common_utils.auth.utils import create_access_token, verify_password

logger = get_logger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"]
)


@router.post("/login", response_model=dict, status_code=status.HTTP_200_OK)
async def login(
    form_data: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Authenticate with username (or email) and password.

    The issued token carries the user's active role names and effective
    permission set as of now; later binding changes only show up after a new
    login.
    """
    user = user_crud.get_by_login(db, login=form_data.username)
    if not user or not verify_password(form_data.password, user.password_hash):
        logger.warning(f"Failed login attempt for {form_data.username}")
        raise Unauthenticated("Invalid username or password", error_code="INVALID_CREDENTIALS")
    if not user.is_active:
        logger.warning(f"Login attempt for inactive user {user.username}")
        raise Unauthenticated("User account is inactive", error_code="ACCOUNT_INACTIVE")

    claims = permission_resolver.build_token_claims(db, user)
    access_token = create_access_token(**claims)

    user.last_login = datetime.now(timezone.utc).replace(tzinfo=None)
    db.commit()
    db.refresh(user)

    logger.info(f"User {user.username} logged in with {len(claims['permissions'])} permissions")
    audit_service.log_action(user.id, "auth:login", "user", user.id, None, **request_audit_meta(request))

    return ResponseWrapper.success(
        data=LoginResponse(
            access_token=access_token,
            expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            user=UserSummary.model_validate(user),
            roles=claims["roles"],
            permissions=claims["permissions"],
        ),
        message="Login successful"
    )


@router.get("/me", response_model=dict, status_code=status.HTTP_200_OK)
async def me(auth: AuthContext = Depends(require_authenticated())):
    """Principal of the current token (snapshot values, not re-read)"""
    return ResponseWrapper.success(
        data=MeResponse(
            subject_id=auth.subject_id,
            username=auth.username,
            email=auth.email,
            roles=list(auth.roles),
            permissions=sorted(auth.permissions),
            is_superuser=auth.is_superuser,
        )
    )
