from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from hrpay.audit import audit_request
from hrpay.db import get_db
from hrpay.errors import ApiError
from hrpay.models import AuditActorType
from hrpay.routers.http_utils import client_ip
from hrpay.schemas import (
    LoginRequest,
    MeResponse,
    OkResponse,
    ResetPasswordRequest,
    ResetRequest,
    TokenResponse,
    UserRead,
)
from hrpay.security import (
    CurrentUser,
    create_access_token,
    ensure_login_attempt_allowed,
    register_login_failure,
    register_login_success,
    require_user,
)
from hrpay.services.password_reset import complete_password_reset, request_password_reset
from hrpay.services.role_cache import ROLE_CACHE
from hrpay.services.users import authenticate_user

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
def login(
    payload: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> TokenResponse:
    ip = client_ip(request)
    email = payload.email.strip().lower()
    if ip:
        try:
            ensure_login_attempt_allowed(ip)
        except ApiError:
            audit_request(
                db,
                request,
                actor_type=AuditActorType.SYSTEM,
                actor_id=email,
                action="USER_LOGIN_FAIL",
                success=False,
                details={"reason": "TOO_MANY_ATTEMPTS"},
            )
            raise

    user = authenticate_user(db, email=email, password=payload.password)
    if user is None:
        if ip:
            register_login_failure(ip)
        audit_request(
            db,
            request,
            actor_type=AuditActorType.SYSTEM,
            actor_id=email,
            action="USER_LOGIN_FAIL",
            success=False,
            details={"reason": "INVALID_CREDENTIALS"},
        )
        raise ApiError(status_code=401, code="INVALID_CREDENTIALS", message="Invalid credentials.")

    if ip:
        register_login_success(ip)
    # Fresh login always re-reads the role.
    ROLE_CACHE.invalidate(user.id)

    role = user.role.value if hasattr(user.role, "value") else str(user.role)
    token, expires_in = create_access_token(
        user_id=user.id,
        email=user.email,
        role=role,
        full_name=user.full_name,
    )
    request.state.actor = "user"
    request.state.actor_id = user.id
    audit_request(
        db,
        request,
        actor_type=AuditActorType.USER,
        actor_id=user.id,
        action="USER_LOGIN_SUCCESS",
        success=True,
    )
    return TokenResponse(access_token=token, expires_in=expires_in, user=UserRead.model_validate(user))


@router.post("/logout", response_model=OkResponse)
def logout(current: CurrentUser = Depends(require_user)) -> OkResponse:
    ROLE_CACHE.invalidate(current.id)
    return OkResponse()


@router.get("/me", response_model=MeResponse)
def me(current: CurrentUser = Depends(require_user)) -> MeResponse:
    return MeResponse(id=current.id, role=current.role, email=current.email, full_name=current.full_name)


@router.post("/reset-request", response_model=OkResponse)
def reset_request(
    payload: ResetRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> OkResponse:
    request_password_reset(db, email=payload.email, ip=client_ip(request))
    return OkResponse()


@router.post("/reset-password", response_model=OkResponse)
def reset_password(
    payload: ResetPasswordRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> OkResponse:
    user = complete_password_reset(db, token=payload.token, new_password=payload.new_password)
    audit_request(
        db,
        request,
        actor_type=AuditActorType.USER,
        actor_id=user.id,
        action="USER_PASSWORD_RESET",
        success=True,
    )
    return OkResponse()
