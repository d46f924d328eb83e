"""User administration rules (listing with tasks, edits, guarded deletes)."""

from __future__ import annotations

from ..auth.models import User, UserUpdate
from ..core.schema import Page, PageQuery
from ..stores.base import StorageAdapter
from ..tasks.models import UserWithTasks
from ..utils.exceptions import NotFoundError, ValidationError
from ..utils.logger import get_logger

logger = get_logger(__name__)

TASKS_PER_USER = 10


class UserService:
    def __init__(self, storage: StorageAdapter):
        self.storage = storage

    def _with_tasks(self, user: User) -> UserWithTasks:
        tasks = self.storage.list_tasks_by_user(user.id, page=1, limit=TASKS_PER_USER)
        return UserWithTasks(**user.model_dump(), tasks=tasks.items)

    def list_users(self, query: PageQuery) -> Page[UserWithTasks]:
        page = self.storage.list_users(query.page, query.limit, query.sort_by, query.sort_order)
        return Page.build(
            items=[self._with_tasks(u) for u in page.items],
            page=page.page,
            limit=page.limit,
            total=page.total,
        )

    def get_user(self, user_id: str) -> UserWithTasks:
        user = self.storage.get_user_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return self._with_tasks(user)

    def update_user(self, user_id: str, payload: UserUpdate) -> User:
        changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
        user = self.storage.update_user(user_id, changes)
        if user is None:
            raise NotFoundError("User not found")
        logger.info("User updated", user_id=user_id, fields=sorted(changes))
        return user

    def delete_user(self, user_id: str) -> None:
        """Refuses while any task is still assigned to the user."""
        if self.storage.list_tasks_by_user(user_id, page=1, limit=1).total > 0:
            raise ValidationError("Cannot delete user with assigned tasks")
        if not self.storage.delete_user(user_id):
            raise NotFoundError("User not found")
        logger.info("User deleted", user_id=user_id)
