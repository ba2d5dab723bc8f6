"""User management utilities.

This module provides the credential store: user persistence, password hashing
and verification, role assignment and the bootstrap administrator account.
"""

import logging
from datetime import datetime
from typing import List, Optional

import bcrypt
import pytz
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import config
from core.exceptions import AccountNotFoundError, DuplicateEmailError
from models.user import UserModel
from schemas.user import User, UserRole
from utils.converters import model_to_user, user_to_model

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of a password
BCRYPT_MAX_PASSWORD_BYTES = 72


def _password_bytes(password: str) -> bytes:
    password_bytes = password.encode("utf-8")
    if len(password_bytes) > BCRYPT_MAX_PASSWORD_BYTES:
        password_bytes = password_bytes[:BCRYPT_MAX_PASSWORD_BYTES]
    return password_bytes


class UserManager:
    """Manages user data persistence and operations using SQLAlchemy."""

    def __init__(self, db: Session):
        """Initialize UserManager.

        Args:
            db: SQLAlchemy Session.
        """
        self.db = db

    def hash_password(self, password: str) -> str:
        """Hash a password with a fresh random salt.

        Args:
            password: Plain text password.

        Returns:
            Hashed password (bcrypt hash string).
        """
        salt = bcrypt.gensalt(rounds=config.BCRYPT_ROUNDS)
        return bcrypt.hashpw(_password_bytes(password), salt).decode("utf-8")

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        """Verify a password against a bcrypt hash.

        Args:
            plain_password: Plain text password to verify.
            hashed_password: Bcrypt hash string to verify against.

        Returns:
            True if password matches, False otherwise.
        """
        try:
            return bcrypt.checkpw(
                _password_bytes(plain_password), hashed_password.encode("utf-8")
            )
        except ValueError:
            # Stored value is not a bcrypt hash
            logger.error("Password verification failed: malformed hash")
            return False

    def create_user(
        self,
        name: str,
        email: str,
        password: str,
        role: UserRole = "user",
    ) -> User:
        """Create a new user.

        Args:
            name: Display name.
            email: Email address; stored lowercased.
            password: Plain text password, stored only as a hash.
            role: 'user' or 'admin'.

        Returns:
            Created User object.

        Raises:
            DuplicateEmailError: If the email is already registered.
        """
        email = email.strip().lower()
        if self.get_user_by_email(email) is not None:
            raise DuplicateEmailError(email)

        user = User(
            name=name,
            email=email,
            password_hash=self.hash_password(password),
            role=role,
        )

        # Two requests may both pass the check above; the unique
        # constraint on users.email decides the winner.
        try:
            model = user_to_model(user)
            self.db.add(model)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise DuplicateEmailError(email) from e

        logger.info("Created user: %s (role=%s)", user.user_id, role)
        return user

    def get_user_by_email(self, email: str) -> Optional[User]:
        """Get a user by email, case-insensitively.

        Args:
            email: Email to look up.

        Returns:
            User object if found, None otherwise.
        """
        model = (
            self.db.query(UserModel)
            .filter(UserModel.email == email.strip().lower())
            .first()
        )
        if model:
            return model_to_user(model)
        return None

    def get_user_by_id(self, user_id: str) -> Optional[User]:
        """Get a user by user ID.

        Args:
            user_id: User ID to look up.

        Returns:
            User object if found, None otherwise.
        """
        model = self.db.query(UserModel).filter(UserModel.user_id == user_id).first()
        if model:
            return model_to_user(model)
        return None

    def list_users(self) -> List[User]:
        """List all users, oldest first."""
        models = self.db.query(UserModel).order_by(UserModel.created_at.asc()).all()
        return [model_to_user(m) for m in models]

    def update_role(self, user_id: str, role: UserRole, changed_by: str) -> User:
        """Assign a role to a user.

        Args:
            user_id: User whose role changes.
            role: New role.
            changed_by: ID of the admin making the change, recorded in the log.

        Returns:
            Updated User object.

        Raises:
            AccountNotFoundError: If the user does not exist.
        """
        model = self.db.query(UserModel).filter(UserModel.user_id == user_id).first()
        if not model:
            raise AccountNotFoundError(user_id)

        previous = model.role
        model.role = role
        model.updated_at = datetime.now(pytz.utc).isoformat()
        self.db.commit()
        self.db.refresh(model)
        logger.warning(
            "Role change: user %s %s -> %s by %s", user_id, previous, role, changed_by
        )
        return model_to_user(model)

    def ensure_admin(self, name: str, email: str, password: str) -> User:
        """Make sure an administrator account exists for ``email``.

        Idempotent: an existing account is promoted to admin if needed,
        its password is left untouched.

        Returns:
            The administrator User.
        """
        existing = self.get_user_by_email(email)
        if existing is None:
            try:
                user = self.create_user(name, email, password, role="admin")
            except DuplicateEmailError:
                # Another worker created it first
                existing = self.get_user_by_email(email)
            else:
                logger.info("Admin user created: %s", user.email)
                return user
        if existing.role != "admin":
            return self.update_role(existing.user_id, "admin", changed_by="bootstrap")
        logger.info("Admin user already exists: %s", existing.email)
        return existing
