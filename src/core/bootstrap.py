"""Startup tasks: administrator account and optional sample data."""

import logging
from typing import Optional

from sqlalchemy.orm import Session

import config
from core.dependencies import get_asset_host, get_issue_locks
from schemas.user import User
from utils.issue_manager import IssueManager
from utils.user_manager import UserManager

logger = logging.getLogger(__name__)


def bootstrap(db: Session) -> Optional[User]:
    """Ensure the configured admin exists and seed sample issues if enabled.

    Args:
        db: Database session.

    Returns:
        The administrator User, or None when no admin is configured.
    """
    admin = None
    if config.ADMIN_EMAIL and config.ADMIN_PASSWORD:
        admin = UserManager(db).ensure_admin(
            config.ADMIN_NAME, config.ADMIN_EMAIL, config.ADMIN_PASSWORD
        )
    else:
        logger.info("ADMIN_EMAIL/ADMIN_PASSWORD not set, skipping admin bootstrap")

    if config.SEED_SAMPLE_DATA:
        if admin is None:
            logger.warning("SEED_SAMPLE_DATA needs a bootstrap admin as reporter, skipping")
        else:
            IssueManager(db, get_asset_host(), get_issue_locks()).seed_sample_issues(
                admin.user_id
            )
    return admin
