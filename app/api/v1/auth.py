"""JWT login, registration, password change and auth dependencies (get_current_user, require_role)."""

import logging
from collections.abc import Callable
from typing import Annotated

import jwt
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import create_access_token, decode_access_token
from app.models import Account
from app.models.account import BLOCKED_STATUSES
from app.schemas.auth import (
    AccountOut,
    CurrentUser,
    LoginRequest,
    PasswordChangeRequest,
    RegisterRequest,
    RegisterResponse,
    TokenResponse,
)
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
from app.services.roles import Role, RoleLike

logger = logging.getLogger(__name__)
router = APIRouter()
security = HTTPBearer(auto_error=False)

_UNAUTHENTICATED_HEADERS = {"WWW-Authenticate": "Bearer"}


def get_credential_updater(
    db: Annotated[Session, Depends(get_db)],
) -> CredentialUpdater:
    """Dependency: credential updater bound to the request's session."""
    return CredentialUpdater(db)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers=_UNAUTHENTICATED_HEADERS,
    )


def hashing_failed(e: HashingError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=e.message,
    )


@router.post("/login", response_model=TokenResponse)
def login(
    body: LoginRequest,
    db: Annotated[Session, Depends(get_db)],
    credentials: Annotated[CredentialUpdater, Depends(get_credential_updater)],
) -> TokenResponse:
    """
    Authenticate with email and password; returns a JWT access token.
    Include the token in the Authorization header as: Bearer <access_token>
    """
    account = accounts.find_by_email(db, body.email)
    if account is None or not credentials.verify(account.id, body.password):
        raise _unauthorized("Invalid email or password.")
    if account.status in BLOCKED_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Account is {account.status}.",
        )
    token = create_access_token(sub=account.id, role=account.role)
    return TokenResponse(access_token=token, token_type="bearer")


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(
    body: RegisterRequest,
    db: Annotated[Session, Depends(get_db)],
    credentials: Annotated[CredentialUpdater, Depends(get_credential_updater)],
) -> RegisterResponse:
    """Register a new account. Always creates a pending User; the role is never taken from the body."""
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
            role=int(Role.User),
            status="pending",
        )
    except accounts.DuplicateAccountError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message) from e
    except HashingError as e:
        raise hashing_failed(e) from e
    return RegisterResponse(
        message="User registered successfully",
        user=AccountOut.model_validate(account),
    )


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
) -> CurrentUser:
    """Dependency: require valid Bearer JWT and return the current user. Raises 401 if missing or invalid."""
    if credentials is None:
        raise _unauthorized("Not authenticated")
    token = credentials.credentials
    try:
        payload = decode_access_token(token)
    except jwt.PyJWTError:
        raise _unauthorized("Invalid or expired token")
    sub = payload.get("sub")
    if not sub:
        raise _unauthorized("Invalid token payload")
    try:
        account_id = int(sub)
    except (TypeError, ValueError):
        raise _unauthorized("Invalid token payload")
    account = db.get(Account, account_id)
    if account is None:
        raise _unauthorized("User not found")
    if account.status in BLOCKED_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Account is {account.status}.",
        )
    # The role claim is passed through unnormalized; the gate decides what it is worth.
    role = payload.get("role")
    if isinstance(role, bool) or not isinstance(role, (int, str)):
        role = None
    return CurrentUser(id=account.id, username=account.username, role=role)


def authorization_failed(e: Exception) -> HTTPException:
    """Translate an AuthorizationGate error into its HTTP status (401, 400 or 403)."""
    if isinstance(e, UnauthenticatedError):
        return _unauthorized(e.message)
    if isinstance(e, InvalidRoleError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    if isinstance(e, InsufficientPrivilegeError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=e.message)
    raise TypeError(f"Not an authorization error: {type(e).__name__}")


def require_role(minimum_role: RoleLike) -> Callable[..., CurrentUser]:
    """Build a dependency that admits only users whose rank is at least minimum_role."""

    def dependency(
        current_user: Annotated[CurrentUser, Depends(get_current_user)],
        gate: Annotated[AuthorizationGate, Depends(get_authorization_gate)],
    ) -> CurrentUser:
        try:
            gate.require_minimum(current_user.role, minimum_role)
        except (UnauthenticatedError, InsufficientPrivilegeError) as e:
            raise authorization_failed(e) from e
        return current_user

    return dependency


require_admin = require_role(Role.Admin)


@router.post("/password/change", response_model=MessageResponse)
def change_password(
    body: PasswordChangeRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    credentials: Annotated[CredentialUpdater, Depends(get_credential_updater)],
) -> MessageResponse:
    """Change the authenticated account's password; the old password must match."""
    if not credentials.verify(current_user.id, body.old_password):
        raise _unauthorized("Old password is incorrect.")
    try:
        credentials.replace(current_user.id, body.new_password)
    except HashingError as e:
        raise hashing_failed(e) from e
    logger.info("Password changed", extra={"account_id": current_user.id})
    return MessageResponse(message="Password changed successfully")
