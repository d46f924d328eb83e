"""
Storage adapter interface.

Business logic depends only on StorageAdapter. FileStorage and MongoStorage
implement it and must agree on every externally observed behavior:
pagination math, sort order (missing values first in ascending order, ties
broken by id ascending) and reference population.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

from ..auth.models import Role, User, UserCredential
from ..core.schema import Page, SortOrder
from ..tasks.models import TASK_SORT_FIELDS, USER_SORT_FIELDS, Task, TaskCreate
from ..utils.exceptions import ValidationError


M = TypeVar("M")


def check_sort(sort_by: str, allowed: Sequence[str]) -> None:
    if sort_by not in allowed:
        raise ValidationError(f"Sort by must be one of: {', '.join(allowed)}")


def check_task_sort(sort_by: str) -> None:
    check_sort(sort_by, TASK_SORT_FIELDS)


def check_user_sort(sort_by: str) -> None:
    check_sort(sort_by, USER_SORT_FIELDS)


def sort_items(
    items: List[M],
    key: Callable[[M], Any],
    id_of: Callable[[M], str],
    sort_order: SortOrder,
) -> List[M]:
    """
    Sort in memory with the same rules the document store applies.

    None sorts below any present value. Equal keys keep id ascending in
    both directions.
    """
    by_id = sorted(items, key=id_of)
    return sorted(
        by_id,
        key=lambda item: (key(item) is not None, key(item) if key(item) is not None else 0),
        reverse=(sort_order == "desc"),
    )


def slice_page(items: List[M], page: int, limit: int) -> Page[M]:
    start = (page - 1) * limit
    return Page.build(items=items[start:start + limit], page=page, limit=limit, total=len(items))


class StorageAdapter(ABC):
    """Uniform user/task CRUD with pagination, sorting and populated references."""

    # Users

    @abstractmethod
    def list_users(
        self, page: int = 1, limit: int = 10, sort_by: str = "createdAt", sort_order: SortOrder = "desc"
    ) -> Page[User]:
        ...

    @abstractmethod
    def get_user_by_id(self, user_id: str) -> Optional[User]:
        ...

    @abstractmethod
    def get_user_by_email(self, email: str) -> Optional[User]:
        ...

    @abstractmethod
    def get_user_by_email_with_credential(self, email: str) -> Optional[UserCredential]:
        ...

    @abstractmethod
    def create_user(self, name: str, email: str, password_hash: str, role: Role = "user") -> User:
        """Raises DuplicateEmailError if the email is already stored."""

    @abstractmethod
    def update_user(self, user_id: str, fields: Dict[str, Any]) -> Optional[User]:
        """Apply name/email/role changes. Raises DuplicateEmailError on an email clash."""

    @abstractmethod
    def delete_user(self, user_id: str) -> bool:
        ...

    # Tasks

    @abstractmethod
    def list_tasks(
        self, page: int = 1, limit: int = 10, sort_by: str = "createdAt", sort_order: SortOrder = "desc"
    ) -> Page[Task]:
        ...

    @abstractmethod
    def list_tasks_by_user(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "createdAt",
        sort_order: SortOrder = "desc",
    ) -> Page[Task]:
        """Tasks assigned to user_id."""

    @abstractmethod
    def get_task_by_id(self, task_id: str) -> Optional[Task]:
        ...

    @abstractmethod
    def create_task(self, data: TaskCreate, created_by: str) -> Task:
        ...

    @abstractmethod
    def update_task(self, task_id: str, fields: Dict[str, Any]) -> Optional[Task]:
        """Apply {attribute: value} changes; None values clear optional fields."""

    @abstractmethod
    def delete_task(self, task_id: str) -> bool:
        ...

    def close(self) -> None:
        """Release engine resources."""
