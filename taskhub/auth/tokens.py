"""
Signed access/refresh tokens.

Tokens are itsdangerous URL-safe timed signatures over {userId, exp, jti}.
Access and refresh tokens use distinct secrets and salts, so an access token
(sent on every request) can never be replayed as a refresh token. Expiry is
checked twice: against the exp stamped into the token and against the
verifier's own TTL. The service holds no state beyond its configuration.
"""

from __future__ import annotations

import secrets
import time
from datetime import timedelta
from typing import Any, Dict

from itsdangerous import BadData, SignatureExpired, URLSafeTimedSerializer

from ..core.config import Settings
from ..utils.exceptions import ConfigError, TokenExpiredError, TokenMalformedError
from .models import AuthTokens

ACCESS_SALT = "taskhub-access-token"
REFRESH_SALT = "taskhub-refresh-token"


class TokenService:
    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        access_ttl: timedelta = timedelta(hours=1),
        refresh_ttl: timedelta = timedelta(days=7),
    ):
        if not access_secret or not refresh_secret:
            raise ConfigError("Token signing secrets are not configured")
        self._access = URLSafeTimedSerializer(secret_key=access_secret, salt=ACCESS_SALT)
        self._refresh = URLSafeTimedSerializer(secret_key=refresh_secret, salt=REFRESH_SALT)
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        return cls(
            access_secret=settings.access_token_secret,
            refresh_secret=settings.refresh_token_secret,
            access_ttl=settings.access_token_ttl,
            refresh_ttl=settings.refresh_token_ttl,
        )

    @staticmethod
    def _sign(serializer: URLSafeTimedSerializer, user_id: str, ttl: timedelta) -> str:
        payload: Dict[str, Any] = {
            "userId": user_id,
            "exp": int(time.time() + ttl.total_seconds()),
            "jti": secrets.token_hex(8),
        }
        return serializer.dumps(payload)

    @staticmethod
    def _verify(serializer: URLSafeTimedSerializer, token: str, ttl: timedelta) -> str:
        try:
            payload = serializer.loads(token, max_age=int(ttl.total_seconds()))
        except SignatureExpired:
            raise TokenExpiredError("Token expired")
        except BadData:
            raise TokenMalformedError("Invalid token")
        if not isinstance(payload, dict):
            raise TokenMalformedError("Invalid token")
        user_id = payload.get("userId")
        if not isinstance(user_id, str) or not user_id:
            raise TokenMalformedError("Invalid token")
        exp = payload.get("exp")
        if not isinstance(exp, int):
            raise TokenMalformedError("Invalid token")
        if exp <= time.time():
            raise TokenExpiredError("Token expired")
        return user_id

    def issue_access_token(self, user_id: str) -> str:
        return self._sign(self._access, user_id, self.access_ttl)

    def issue_tokens(self, user_id: str) -> AuthTokens:
        return AuthTokens(
            access_token=self.issue_access_token(user_id),
            refresh_token=self._sign(self._refresh, user_id, self.refresh_ttl),
        )

    def verify_access(self, token: str) -> str:
        """Return the user id; raises TokenExpiredError or TokenMalformedError."""
        return self._verify(self._access, token, self.access_ttl)

    def verify_refresh(self, token: str) -> str:
        """Return the user id; raises TokenExpiredError or TokenMalformedError."""
        return self._verify(self._refresh, token, self.refresh_ttl)
