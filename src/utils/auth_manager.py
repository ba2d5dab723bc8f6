"""Authentication service.

Registers and logs in users and issues/validates signed bearer tokens. Tokens
carry only the user ID; everything else is re-read from the store on every
request, so role changes apply without a new login.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional, Tuple

import pytz
from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

import config
from core.exceptions import (
    ExpiredTokenError,
    InvalidCredentialsError,
    InvalidTokenError,
    UserNotFoundError,
    ValidationError,
    format_validation_errors,
)
from schemas.user import LoginRequest, RegisterRequest, User, UserSummary
from utils.user_manager import UserManager

logger = logging.getLogger(__name__)


def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed JWT access token for a user.

    Args:
        user_id: Identifier stored in the 'sub' claim.
        expires_delta: Optional validity window; defaults to
            ACCESS_TOKEN_EXPIRE_DAYS.

    Returns:
        Encoded JWT token string.
    """
    now = datetime.now(pytz.utc)
    if expires_delta is None:
        expires_delta = timedelta(days=config.ACCESS_TOKEN_EXPIRE_DAYS)
    payload = {"sub": user_id, "iat": now, "exp": now + expires_delta}
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> str:
    """Validate a token and return the user ID it carries.

    Raises:
        ExpiredTokenError: If the token has expired.
        InvalidTokenError: If the token is malformed or wrongly signed.
    """
    try:
        payload = jwt.decode(
            token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM]
        )
    except ExpiredSignatureError:
        raise ExpiredTokenError()
    except JWTError:
        raise InvalidTokenError()

    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        raise InvalidTokenError()
    return user_id


class AuthManager:
    """Credential checks and token handling on top of UserManager."""

    def __init__(self, db: Session):
        self.db = db
        self.users = UserManager(db)

    def register(self, name: str, email: str, password: str) -> Tuple[str, UserSummary]:
        """Register a new user and return a token for them.

        Args:
            name: Display name, must not be blank.
            email: Well-formed email address, unique case-insensitively.
            password: At least PASSWORD_MIN_LENGTH characters.

        Returns:
            Tuple of (token, user summary).

        Raises:
            ValidationError: If any field is malformed.
            DuplicateEmailError: If the email is already registered.
        """
        try:
            req = RegisterRequest(name=name, email=email, password=password)
        except PydanticValidationError as exc:
            raise ValidationError(errors=format_validation_errors(exc.errors()))

        role = "user"
        if req.email in config.ADMIN_EMAILS:
            role = "admin"
            logger.warning("Granting admin role at registration to allow-listed %s", req.email)

        user = self.users.create_user(req.name, req.email, req.password, role=role)
        return create_access_token(user.user_id), user.to_summary()

    def login(self, email: str, password: str) -> Tuple[str, UserSummary]:
        """Check credentials and return a fresh token.

        Raises:
            ValidationError: If the email or password is missing/malformed.
            InvalidCredentialsError: If the email is unknown or the password
                does not match.
        """
        try:
            req = LoginRequest(email=email, password=password)
        except PydanticValidationError as exc:
            raise ValidationError(errors=format_validation_errors(exc.errors()))

        user = self.users.get_user_by_email(req.email)
        if user is None or not self.users.verify_password(req.password, user.password_hash):
            logger.info("Failed login attempt")
            raise InvalidCredentialsError()

        logger.info("User logged in: %s", user.user_id)
        return create_access_token(user.user_id), user.to_summary()

    def verify(self, token: str) -> User:
        """Resolve a bearer token to the current user record.

        Raises:
            InvalidTokenError: Malformed or unverifiable token.
            ExpiredTokenError: Token past its expiry.
            UserNotFoundError: The user no longer exists.
        """
        user_id = decode_access_token(token)
        user = self.users.get_user_by_id(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user
