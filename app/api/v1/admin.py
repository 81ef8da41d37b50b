"""Admin user management. Every route requires Admin or higher.

Role values in bodies are normalized through the role hierarchy and may never
exceed the caller's own rank. Accounts ranked above the caller cannot be
modified by it either.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.api.v1.auth import (
    authorization_failed,
    get_credential_updater,
    hashing_failed,
    require_admin,
)
from app.core.database import get_db
from app.models import Account
from app.schemas.admin import (
    AdminCreateUserRequest,
    AdminUpdateUserRequest,
    DashboardStats,
    DashboardStatsResponse,
    PasswordSetRequest,
    RoleChangeRequest,
    UserResponse,
    UsersListResponse,
)
from app.schemas.auth import AccountOut, CurrentUser
from app.schemas.verification import MessageResponse
from app.services import accounts
from app.services.authorization import (
    AuthorizationGate,
    InsufficientPrivilegeError,
    InvalidRoleError,
    UnauthenticatedError,
    get_authorization_gate,
)
from app.services.credentials import CredentialUpdater, HashingError
from app.services.roles import RoleLike

logger = logging.getLogger(__name__)
router = APIRouter()

MAX_PAGE_LIMIT = 100


def _require_can_act_on(
    gate: AuthorizationGate,
    actor: CurrentUser,
    target_role: RoleLike,
    message: str,
) -> int:
    try:
        return gate.require_can_act_on(actor.role, target_role, message)
    except (UnauthenticatedError, InvalidRoleError, InsufficientPrivilegeError) as e:
        raise authorization_failed(e) from e


def _load_manageable(
    db: Session, gate: AuthorizationGate, actor: CurrentUser, user_id: int
) -> Account:
    """Load the target account and require the caller to outrank or equal it."""
    try:
        target = accounts.get_account(db, user_id)
    except accounts.AccountNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message) from e
    _require_can_act_on(
        gate, actor, target.role, "You cannot manage a user with a higher role than yours"
    )
    return target


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    body: AdminCreateUserRequest,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    gate: Annotated[AuthorizationGate, Depends(get_authorization_gate)],
    db: Annotated[Session, Depends(get_db)],
    credentials: Annotated[CredentialUpdater, Depends(get_credential_updater)],
) -> UserResponse:
    """Create an active account with a role equal to or lower than the caller's."""
    target_rank = _require_can_act_on(
        gate, admin, body.role, "You cannot create a user with a higher role than yours"
    )
    try:
        account = accounts.create_account(
            db,
            credentials,
            body.password,
            first_name=body.firstname,
            last_name=body.lastname,
            username=body.username,
            email=body.email,
            phone=body.phone,
            role=target_rank,
            status="active",
        )
    except accounts.DuplicateAccountError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message) from e
    except HashingError as e:
        raise hashing_failed(e) from e
    logger.info(
        "Admin created user",
        extra={"admin_id": admin.id, "account_id": account.id, "role": target_rank},
    )
    return UserResponse(message="User created successfully", user=AccountOut.model_validate(account))


@router.get("/users", response_model=UsersListResponse)
def list_users(
    _admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=MAX_PAGE_LIMIT)] = 10,
) -> UsersListResponse:
    """List accounts ordered by id (admin only)."""
    rows = accounts.list_accounts(db, page, limit)
    return UsersListResponse(
        page=page,
        limit=limit,
        count=len(rows),
        users=[AccountOut.model_validate(a) for a in rows],
    )


@router.get("/users/search", response_model=UsersListResponse)
def search_users(
    _admin: Annotated[CurrentUser, Depends(require_admin)],
    gate: Annotated[AuthorizationGate, Depends(get_authorization_gate)],
    db: Annotated[Session, Depends(get_db)],
    q: str | None = None,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    role: str | None = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=MAX_PAGE_LIMIT)] = 10,
) -> UsersListResponse:
    """Search by name, email or username, optionally filtered by status and role."""
    role_rank = None
    if role:
        role_rank = gate.hierarchy.rank(role)
        if role_rank is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid role specified")
    rows = accounts.search_accounts(
        db, page, limit, term=q, status=status_filter, role_rank=role_rank
    )
    return UsersListResponse(
        page=page,
        limit=limit,
        count=len(rows),
        users=[AccountOut.model_validate(a) for a in rows],
        search_term=q or "",
    )


@router.get("/users/stats", response_model=DashboardStatsResponse)
def get_dashboard_stats(
    _admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> DashboardStatsResponse:
    """Account totals by status."""
    return DashboardStatsResponse(
        message="Dashboard statistics fetched",
        stats=DashboardStats(**accounts.account_stats(db)),
    )


@router.get("/users/{user_id}", response_model=AccountOut)
def get_user(
    user_id: int,
    _admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> AccountOut:
    try:
        return AccountOut.model_validate(accounts.get_account(db, user_id))
    except accounts.AccountNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message) from e


@router.put("/users/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    body: AdminUpdateUserRequest,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    gate: Annotated[AuthorizationGate, Depends(get_authorization_gate)],
    db: Annotated[Session, Depends(get_db)],
) -> UserResponse:
    """Update profile fields and optionally the role (same rank rule as role changes)."""
    target = _load_manageable(db, gate, admin, user_id)
    new_rank = None
    if body.role is not None:
        new_rank = _require_can_act_on(
            gate, admin, body.role, "You cannot assign a role higher than your own"
        )
    try:
        accounts.ensure_unique(
            db,
            body.username or target.username,
            body.email or target.email,
            body.phone or target.phone,
            exclude_id=target.id,
        )
    except accounts.DuplicateAccountError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message) from e

    if body.firstname is not None:
        target.first_name = body.firstname
    if body.lastname is not None:
        target.last_name = body.lastname
    if body.username is not None:
        target.username = body.username
    if body.email is not None and body.email.lower() != target.email.lower():
        target.email = body.email
        target.email_verified = False
    if body.phone is not None and body.phone != target.phone:
        target.phone = body.phone
        target.phone_verified = False
    if new_rank is not None:
        target.role = new_rank
    db.commit()
    db.refresh(target)
    return UserResponse(message="User updated successfully", user=AccountOut.model_validate(target))


@router.delete("/users/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: int,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    gate: Annotated[AuthorizationGate, Depends(get_authorization_gate)],
    db: Annotated[Session, Depends(get_db)],
) -> MessageResponse:
    """Soft delete: the account is set to inactive and can no longer sign in."""
    target = _load_manageable(db, gate, admin, user_id)
    target.status = "inactive"
    db.commit()
    logger.info("Admin deactivated user", extra={"admin_id": admin.id, "account_id": user_id})
    return MessageResponse(message="User deleted successfully")


@router.put("/users/{user_id}/password", response_model=MessageResponse)
def reset_user_password(
    user_id: int,
    body: PasswordSetRequest,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    gate: Annotated[AuthorizationGate, Depends(get_authorization_gate)],
    db: Annotated[Session, Depends(get_db)],
    credentials: Annotated[CredentialUpdater, Depends(get_credential_updater)],
) -> MessageResponse:
    """Admin override: set a new password without the old one."""
    _load_manageable(db, gate, admin, user_id)
    try:
        credentials.replace(user_id, body.password)
    except HashingError as e:
        raise hashing_failed(e) from e
    logger.info("Admin reset user password", extra={"admin_id": admin.id, "account_id": user_id})
    return MessageResponse(message="Password reset successfully")


@router.put("/users/{user_id}/role", response_model=UserResponse)
def change_user_role(
    user_id: int,
    body: RoleChangeRequest,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    gate: Annotated[AuthorizationGate, Depends(get_authorization_gate)],
    db: Annotated[Session, Depends(get_db)],
) -> UserResponse:
    """Assign a role equal to or lower than the caller's own."""
    new_rank = _require_can_act_on(
        gate, admin, body.role, "You cannot assign a role higher than your own"
    )
    target = _load_manageable(db, gate, admin, user_id)
    target.role = new_rank
    db.commit()
    db.refresh(target)
    logger.info(
        "Admin changed user role",
        extra={"admin_id": admin.id, "account_id": user_id, "role": new_rank},
    )
    return UserResponse(message="User role updated successfully", user=AccountOut.model_validate(target))
