"""
Authentication service layer.

- Email/password users with bcrypt hashes
- Signed access + refresh tokens from TokenService
- Persistence through whichever StorageAdapter was configured at startup
"""

from __future__ import annotations

from typing import Optional

import bcrypt

from ..stores.base import StorageAdapter
from ..utils.exceptions import AuthenticationError, NotFoundError, TokenError
from ..utils.logger import get_logger
from .models import AuthTokens, User
from .tokens import TokenService

logger = get_logger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash a password with bcrypt."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


class AuthService:
    def __init__(self, storage: StorageAdapter, tokens: TokenService, bcrypt_rounds: int = 12):
        self.storage = storage
        self.tokens = tokens
        self.bcrypt_rounds = bcrypt_rounds
        # Compared against on unknown emails so both login failures cost one bcrypt check.
        self._dummy_hash = hash_password("not-a-real-password", rounds=bcrypt_rounds)

    def signup(self, name: str, email: str, password: str) -> AuthTokens:
        """
        Create a new user with the "user" role and return fresh tokens.

        Raises DuplicateEmailError if the email is already registered.
        """
        user = self.storage.create_user(
            name=name,
            email=email,
            password_hash=hash_password(password, rounds=self.bcrypt_rounds),
            role="user",
        )
        logger.info("User signed up", user_id=user.id)
        return self.tokens.issue_tokens(user.id)

    def login(self, email: str, password: str) -> AuthTokens:
        """Unknown email and wrong password fail with the same error."""
        credential = self.storage.get_user_by_email_with_credential(email)
        if credential is None:
            verify_password(password, self._dummy_hash)
            logger.info("Login failed", reason="unknown_email")
            raise AuthenticationError(INVALID_CREDENTIALS)
        if not verify_password(password, credential.password_hash):
            logger.info("Login failed", reason="bad_password", user_id=credential.id)
            raise AuthenticationError(INVALID_CREDENTIALS)
        logger.info("User logged in", user_id=credential.id)
        return self.tokens.issue_tokens(credential.id)

    def refresh(self, refresh_token: Optional[str]) -> str:
        """Exchange a refresh token for a new access token."""
        if not refresh_token:
            raise AuthenticationError("Refresh token not provided")
        try:
            user_id = self.tokens.verify_refresh(refresh_token)
        except TokenError as e:
            logger.info("Refresh rejected", reason=e.reason)
            raise AuthenticationError("Invalid refresh token")
        if self.storage.get_user_by_id(user_id) is None:
            logger.info("Refresh rejected", reason="user_not_found", user_id=user_id)
            raise AuthenticationError("User not found")
        return self.tokens.issue_access_token(user_id)

    def profile(self, user_id: str) -> User:
        user = self.storage.get_user_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def ensure_admin(self, email: str, password: str, name: str = "Administrator") -> Optional[User]:
        """
        Seed an admin account if the email is not registered yet.

        Returns the created user, or None when the email already exists.
        """
        if self.storage.get_user_by_email(email) is not None:
            return None
        user = self.storage.create_user(
            name=name,
            email=email,
            password_hash=hash_password(password, rounds=self.bcrypt_rounds),
            role="admin",
        )
        logger.info("Seeded admin user", user_id=user.id)
        return user
