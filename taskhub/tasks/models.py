"""Task models and the request payloads that create or change them."""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import Field, field_validator, model_serializer

from ..auth.models import User
from ..core.schema import CamelModel, as_utc, to_millis


TaskStatus = Literal["pending", "in-progress", "completed"]
TaskPriority = Literal["low", "medium", "high"]

TASK_SORT_FIELDS = ("title", "status", "priority", "dueDate", "createdAt")
USER_SORT_FIELDS = ("name", "email", "role", "createdAt")


class UserRef(CamelModel):
    """
    Reference from a task to a user.

    Both engines always produce this shape. When the referenced user no
    longer exists, missing is True and only the id is known; the reference
    then serializes as the bare id string instead of {id, name, email}.
    """

    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    missing: bool = False

    @classmethod
    def of(cls, user_id: str, user: Optional[User] = None) -> "UserRef":
        if user is None:
            return cls(id=user_id, missing=True)
        return cls(id=user.id, name=user.name, email=user.email)

    @model_serializer(mode="wrap")
    def serialize_ref(self, handler) -> Any:
        if self.missing:
            return self.id
        data = handler(self)
        data.pop("missing", None)
        return data


def ref_id(value: Any) -> Optional[str]:
    """Normalize a bare id, a populated dict or a UserRef to the plain id."""
    if value is None:
        return None
    if isinstance(value, UserRef):
        return value.id
    if isinstance(value, dict):
        raw = value.get("id", value.get("_id"))
        return str(raw) if raw is not None else None
    return str(value)


class Task(CamelModel):
    id: str
    title: str
    description: str
    status: TaskStatus = "pending"
    priority: TaskPriority = "medium"
    assigned_to: UserRef
    created_by: UserRef
    due_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


def _clean_text(value: Optional[str]) -> Optional[str]:
    return value.strip() if isinstance(value, str) else value


class TaskCreate(CamelModel):
    title: str = Field(min_length=3, max_length=100)
    description: str = Field(min_length=10, max_length=500)
    status: TaskStatus = "pending"
    priority: TaskPriority = "medium"
    assigned_to: str = Field(min_length=1)
    due_date: Optional[datetime] = None

    @field_validator("title", "description", mode="before")
    @classmethod
    def strip_text(cls, value: Any) -> Any:
        return _clean_text(value)

    @field_validator("due_date")
    @classmethod
    def due_in_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_millis(as_utc(value)) if value is not None else None


class TaskUpdate(CamelModel):
    """
    Partial task update.

    Only fields present in the payload are applied (see model_fields_set).
    dueDate may be sent as null to clear it; other fields may not be null.
    """

    title: Optional[str] = Field(default=None, min_length=3, max_length=100)
    description: Optional[str] = Field(default=None, min_length=10, max_length=500)
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    assigned_to: Optional[str] = Field(default=None, min_length=1)
    due_date: Optional[datetime] = None

    @field_validator("title", "description", mode="before")
    @classmethod
    def strip_text(cls, value: Any) -> Any:
        return _clean_text(value)

    @field_validator("due_date")
    @classmethod
    def due_in_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_millis(as_utc(value)) if value is not None else None

    def changes(self) -> dict:
        """Return {attribute: value} for the fields the caller actually sent."""
        return {name: getattr(self, name) for name in self.model_fields_set}


class UserWithTasks(User):
    tasks: List[Task] = Field(default_factory=list)
