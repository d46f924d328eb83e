"""
Task lifecycle rules.

Invariants enforced here, on top of payload validation:
- assignedTo must resolve to an existing user whenever it is set or changed
- createdBy comes from the caller and never changes
- only the creator or an admin may update or delete a task; the assignee
  may change the status and nothing else
- a due date, when set, must be strictly in the future
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from ..auth.models import User
from ..core.schema import Page, PageQuery, utcnow
from ..stores.base import StorageAdapter
from ..utils.exceptions import AuthorizationError, NotFoundError, ValidationError
from ..utils.logger import get_logger
from .models import Task, TaskCreate, TaskUpdate, ref_id

logger = get_logger(__name__)

_NON_NULLABLE = ("title", "description", "status", "priority", "assigned_to")


def can_modify(user: User, task: Task) -> bool:
    """Creator or admin. createdBy may be a bare id, a dict or a UserRef."""
    return user.role == "admin" or ref_id(task.created_by) == user.id


def is_assignee(user: User, task: Task) -> bool:
    return ref_id(task.assigned_to) == user.id


class TaskService:
    def __init__(self, storage: StorageAdapter, clock: Callable[[], datetime] = utcnow):
        self.storage = storage
        self.clock = clock

    def _require_assignee(self, user_id: str) -> None:
        if self.storage.get_user_by_id(user_id) is None:
            raise ValidationError("Assigned user not found")

    def _require_future(self, due_date: Optional[datetime]) -> None:
        if due_date is not None and due_date <= self.clock():
            raise ValidationError("Due date must be in the future")

    def list_tasks(self, query: PageQuery) -> Page[Task]:
        return self.storage.list_tasks(query.page, query.limit, query.sort_by, query.sort_order)

    def get_task(self, task_id: str) -> Task:
        task = self.storage.get_task_by_id(task_id)
        if task is None:
            raise NotFoundError("Task not found")
        return task

    def create_task(self, caller: User, payload: TaskCreate) -> Task:
        self._require_future(payload.due_date)
        self._require_assignee(payload.assigned_to)
        task = self.storage.create_task(payload, created_by=caller.id)
        logger.info("Task created", task_id=task.id, created_by=caller.id, assigned_to=payload.assigned_to)
        return task

    def update_task(self, caller: User, task_id: str, payload: TaskUpdate) -> Task:
        existing = self.get_task(task_id)
        changes = payload.changes()
        status_only = set(changes) <= {"status"}
        if not can_modify(caller, existing) and not (status_only and is_assignee(caller, existing)):
            logger.warning("Task update forbidden", task_id=task_id, user_id=caller.id)
            raise AuthorizationError("Not authorized to update this task")

        for field in _NON_NULLABLE:
            if field in changes and changes[field] is None:
                raise ValidationError(f"{field} cannot be null")
        if "assigned_to" in changes and changes["assigned_to"] != ref_id(existing.assigned_to):
            self._require_assignee(changes["assigned_to"])
        if "due_date" in changes:
            self._require_future(changes["due_date"])
        if not changes:
            return existing

        task = self.storage.update_task(task_id, changes)
        if task is None:
            raise NotFoundError("Task not found")
        logger.info("Task updated", task_id=task_id, user_id=caller.id, fields=sorted(changes))
        return task

    def delete_task(self, caller: User, task_id: str) -> None:
        existing = self.get_task(task_id)
        if not can_modify(caller, existing):
            logger.warning("Task delete forbidden", task_id=task_id, user_id=caller.id)
            raise AuthorizationError("Not authorized to delete this task")
        if not self.storage.delete_task(task_id):
            raise NotFoundError("Task not found")
        logger.info("Task deleted", task_id=task_id, user_id=caller.id)
