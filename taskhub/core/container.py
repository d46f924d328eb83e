"""
Service wiring.

One Services instance is built at startup from Settings and shared by every
request; nothing below it reads global configuration.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..auth.service import AuthService
from ..auth.tokens import TokenService
from ..safety.throttler import RateLimiter
from ..stores import StorageAdapter, create_storage
from ..tasks.service import TaskService
from ..users.service import UserService
from .config import Settings


@dataclass
class Services:
    settings: Settings
    storage: StorageAdapter
    tokens: TokenService
    auth: AuthService
    tasks: TaskService
    users: UserService
    rate_limiter: RateLimiter

    @classmethod
    def build(cls, settings: Settings, storage: Optional[StorageAdapter] = None) -> "Services":
        storage = storage if storage is not None else create_storage(settings)
        tokens = TokenService.from_settings(settings)
        return cls(
            settings=settings,
            storage=storage,
            tokens=tokens,
            auth=AuthService(storage, tokens, bcrypt_rounds=settings.bcrypt_rounds),
            tasks=TaskService(storage),
            users=UserService(storage),
            rate_limiter=RateLimiter(
                max_requests=settings.rate_limit_max,
                window_seconds=settings.rate_limit_window_seconds,
            ),
        )

    def seed_admin(self) -> None:
        if self.settings.admin_email and self.settings.admin_password:
            self.auth.ensure_admin(
                self.settings.admin_email,
                self.settings.admin_password,
                name=self.settings.admin_name,
            )
