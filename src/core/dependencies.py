"""Dependency injection module for FastAPI.

This module provides dependency injection functions for FastAPI routes,
following Google Python Style Guide and FastAPI best practices.
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session

from core.database import get_db
from utils import asset_host
from utils import auth_manager
from utils import issue_manager
from utils import user_manager

# Process-wide singletons
_asset_host_instance: asset_host.AssetHost = None
_issue_locks_instance: issue_manager.IssueLockRegistry = None


def get_asset_host() -> asset_host.AssetHost:
    """Get the configured AssetHost singleton.

    Returns:
        AssetHost instance (singleton).
    """
    global _asset_host_instance
    if _asset_host_instance is None:
        _asset_host_instance = asset_host.build_asset_host()
    return _asset_host_instance


def get_issue_locks() -> issue_manager.IssueLockRegistry:
    """Get the IssueLockRegistry singleton shared by all requests."""
    global _issue_locks_instance
    if _issue_locks_instance is None:
        _issue_locks_instance = issue_manager.IssueLockRegistry()
    return _issue_locks_instance


def get_user_manager(db: Session = Depends(get_db)) -> user_manager.UserManager:
    """Get UserManager instance with request-scoped DB session.

    Args:
        db: Database session.

    Returns:
        UserManager instance.
    """
    return user_manager.UserManager(db)


def get_auth_manager(db: Session = Depends(get_db)) -> auth_manager.AuthManager:
    """Get AuthManager instance with request-scoped DB session."""
    return auth_manager.AuthManager(db)


def get_issue_manager(
    db: Session = Depends(get_db),
    host: asset_host.AssetHost = Depends(get_asset_host),
    locks: issue_manager.IssueLockRegistry = Depends(get_issue_locks),
) -> issue_manager.IssueManager:
    """Get IssueManager instance with request-scoped DB session.

    Args:
        db: Database session.
        host: Asset host for issue images.
        locks: Shared per-issue locks.

    Returns:
        IssueManager instance.
    """
    return issue_manager.IssueManager(db, host, locks)


# Type aliases for dependency injection
UserManagerDep = Annotated[
    user_manager.UserManager, Depends(get_user_manager)
]
AuthManagerDep = Annotated[
    auth_manager.AuthManager, Depends(get_auth_manager)
]
IssueManagerDep = Annotated[
    issue_manager.IssueManager, Depends(get_issue_manager)
]
AssetHostDep = Annotated[
    asset_host.AssetHost, Depends(get_asset_host)
]
