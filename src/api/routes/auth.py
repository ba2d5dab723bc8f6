"""Authentication routes.

This module handles HTTP endpoints for user registration, login and the
current-user lookup, plus the bearer-token dependencies used by other routes.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.dependencies import AuthManagerDep
from core.exceptions import AuthenticationError, AuthorizationError
from schemas.user import (
    AuthResponse,
    CurrentUserResponse,
    LoginRequest,
    RegisterRequest,
    User,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])

# HTTP Bearer token security; missing tokens are reported as 401 by us
security = HTTPBearer(auto_error=False)


def get_current_user(
    auth_manager: AuthManagerDep,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> User:
    """Get current authenticated user.

    Args:
        auth_manager: Injected AuthManager instance.
        credentials: HTTP Bearer token credentials, if any.

    Returns:
        Current User object, freshly loaded from the store.

    Raises:
        AuthenticationError: If the token is missing, invalid or expired,
            or its user no longer exists.
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("No token, authorization denied")
    return auth_manager.verify(credentials.credentials)


def get_current_admin(current_user: User = Depends(get_current_user)) -> User:
    """Get current user, requiring the admin role.

    Raises:
        AuthorizationError: If the user is not an admin.
    """
    if current_user.role != "admin":
        raise AuthorizationError()
    return current_user


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register",
)
def register(req: RegisterRequest, auth_manager: AuthManagerDep) -> AuthResponse:
    """Register a new user.

    Args:
        req: Registration request with name, email and password.
        auth_manager: Injected AuthManager instance.

    Returns:
        AuthResponse with a token and the new user's summary.
    """
    token, user = auth_manager.register(req.name, req.email, req.password)
    return AuthResponse(message="User registered successfully", token=token, user=user)


@router.post("/login", response_model=AuthResponse, summary="Login")
def login(req: LoginRequest, auth_manager: AuthManagerDep) -> AuthResponse:
    """Login with email and password.

    Args:
        req: Login request with email and password.
        auth_manager: Injected AuthManager instance.

    Returns:
        AuthResponse with a fresh token.
    """
    token, user = auth_manager.login(req.email, req.password)
    return AuthResponse(message="Login successful", token=token, user=user)


@router.post("/logout", summary="Logout")
def logout() -> dict:
    """Logout endpoint.

    Note: Since we're using stateless JWT tokens, logout is handled
    client-side by removing the token. This endpoint exists for API
    consistency.
    """
    return {"success": True, "message": "Logged out successfully"}


@router.get("/me", response_model=CurrentUserResponse, summary="Current user")
def get_current_user_info(
    current_user: User = Depends(get_current_user),
) -> CurrentUserResponse:
    """Get current authenticated user information."""
    return CurrentUserResponse(user=current_user.to_summary())
