"""User routes: the caller's profile and issues, and admin role assignment."""

import logging
from typing import List

from fastapi import APIRouter, Depends

from api.routes.auth import get_current_admin, get_current_user
from core.dependencies import IssueManagerDep, UserManagerDep
from core.exceptions import AuthorizationError
from schemas.issue import Issue
from schemas.user import (
    CurrentUserResponse,
    UpdateRoleRequest,
    User,
    UserListResponse,
    UserProfileResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.get("/profile", response_model=UserProfileResponse, summary="Current user profile")
def get_profile(
    issue_manager: IssueManagerDep,
    current_user: User = Depends(get_current_user),
) -> UserProfileResponse:
    return UserProfileResponse(
        user=current_user.to_summary(),
        reported_issues=issue_manager.count_reported_by(current_user.user_id),
        upvoted_issues=issue_manager.count_upvoted_by(current_user.user_id),
    )


@router.get("/my-issues", response_model=List[Issue], summary="Issues I reported")
def get_my_issues(
    issue_manager: IssueManagerDep,
    current_user: User = Depends(get_current_user),
) -> List[Issue]:
    return issue_manager.list_issues(reporter_id=current_user.user_id)


@router.get("", response_model=UserListResponse, summary="List users (admin)")
def list_users(
    user_manager: UserManagerDep,
    current_admin: User = Depends(get_current_admin),
) -> UserListResponse:
    return UserListResponse(users=[u.to_summary() for u in user_manager.list_users()])


@router.patch(
    "/{user_id}/role", response_model=CurrentUserResponse, summary="Assign role (admin)"
)
def update_user_role(
    user_id: str,
    req: UpdateRoleRequest,
    user_manager: UserManagerDep,
    current_admin: User = Depends(get_current_admin),
) -> CurrentUserResponse:
    """Explicitly assign a role to a user.

    Raises:
        AuthorizationError: If an admin tries to demote themselves.
        AccountNotFoundError: If the user does not exist.
    """
    if user_id == current_admin.user_id and req.role != "admin":
        raise AuthorizationError("Admins cannot remove their own admin role")
    user = user_manager.update_role(user_id, req.role, changed_by=current_admin.user_id)
    return CurrentUserResponse(user=user.to_summary())
