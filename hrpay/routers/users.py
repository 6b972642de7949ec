from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from hrpay.audit import audit_request
from hrpay.db import get_db
from hrpay.models import AuditActorType, UserRole
from hrpay.schemas import (
    UserCreateRequest,
    UserCreateResponse,
    UserDeleteRequest,
    UserMutationResponse,
    UserRead,
    UserStatusUpdateRequest,
)
from hrpay.security import CurrentUser, require_roles
from hrpay.services.users import create_user, delete_user, update_user_status

router = APIRouter(prefix="/api/users", tags=["users"])
require_admin = require_roles(UserRole.ADMIN)


@router.post("/create", response_model=UserCreateResponse, status_code=status.HTTP_201_CREATED)
def create_user_endpoint(
    payload: UserCreateRequest,
    request: Request,
    current: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
) -> UserCreateResponse:
    user = create_user(
        db,
        email=payload.email,
        full_name=payload.full_name,
        password=payload.password,
        role=payload.role,
        ot_groups=payload.ot_groups,
    )
    audit_request(
        db,
        request,
        actor_type=AuditActorType.USER,
        actor_id=current.id,
        action="USER_CREATED",
        success=True,
        entity_type="user",
        entity_id=user.id,
        details={"role": user.role.value, "ot_groups": list(payload.ot_groups)},
    )
    return UserCreateResponse(user=UserRead.model_validate(user))


@router.delete("/delete", response_model=UserMutationResponse)
def delete_user_endpoint(
    payload: UserDeleteRequest,
    request: Request,
    current: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
) -> UserMutationResponse:
    delete_user(db, user_id=payload.user_id, actor_id=current.id)
    audit_request(
        db,
        request,
        actor_type=AuditActorType.USER,
        actor_id=current.id,
        action="USER_DELETED",
        success=True,
        entity_type="user",
        entity_id=payload.user_id,
    )
    return UserMutationResponse(message="User deleted successfully")


@router.patch("/update-status", response_model=UserMutationResponse)
def update_status_endpoint(
    payload: UserStatusUpdateRequest,
    request: Request,
    current: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
) -> UserMutationResponse:
    user = update_user_status(db, user_id=payload.user_id, is_active=payload.is_active, actor_id=current.id)
    audit_request(
        db,
        request,
        actor_type=AuditActorType.USER,
        actor_id=current.id,
        action="USER_STATUS_UPDATED",
        success=True,
        entity_type="user",
        entity_id=user.id,
        details={"is_active": user.is_active},
    )
    state = "activated" if user.is_active else "deactivated"
    return UserMutationResponse(message=f"User {state} successfully", user=UserRead.model_validate(user))
