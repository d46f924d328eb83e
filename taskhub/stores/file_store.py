"""
Flat-file JSON storage engine.

Users and tasks live in two independent files under the data directory,
each a JSON array of camelCase entity objects. Every write is a full
read-modify-write of one collection, serialized by an in-process lock and
committed with an atomic rename. There is no cross-process file locking:
run a single process against one data directory.
"""

from __future__ import annotations

import json
import secrets
import shutil
import tempfile
import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic.alias_generators import to_camel

from ..auth.models import Role, User, UserCredential
from ..core.schema import Page, SortOrder, utcnow
from ..tasks.models import Task, TaskCreate, UserRef
from ..utils.exceptions import DuplicateEmailError, StorageError
from ..utils.logger import get_logger
from .base import StorageAdapter, check_task_sort, check_user_sort, slice_page, sort_items

logger = get_logger(__name__)

USERS_FILE = "users.json"
TASKS_FILE = "tasks.json"

_USER_SORT_ATTRS = {"name": "name", "email": "email", "role": "role", "createdAt": "created_at"}
_TASK_SORT_ATTRS = {
    "title": "title",
    "status": "status",
    "priority": "priority",
    "dueDate": "due_date",
    "createdAt": "created_at",
}


def generate_id() -> str:
    """Millisecond timestamp (hex) followed by 64 random bits."""
    return f"{int(time.time() * 1000):012x}{secrets.token_hex(8)}"


def _atomic_write(path: Path, payload: List[Dict[str, Any]]) -> None:
    """Atomically write JSON to the target path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        mode="w", dir=str(path.parent), delete=False, encoding="utf-8"
    ) as tf:
        json.dump(payload, tf, indent=2, ensure_ascii=False, default=str)
        temp_path = Path(tf.name)
    try:
        shutil.move(str(temp_path), str(path))
    except Exception:
        if temp_path.exists():
            temp_path.unlink()
        raise


class FileStorage(StorageAdapter):
    """JSON-file backed StorageAdapter."""

    def __init__(self, data_dir: str | Path):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.users_path = self.data_dir / USERS_FILE
        self.tasks_path = self.data_dir / TASKS_FILE
        self._lock = threading.RLock()

    # Raw collection access

    def _read(self, path: Path) -> List[Dict[str, Any]]:
        if not path.exists():
            return []
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.error("Failed to read collection", path=str(path), error=str(e))
            raise StorageError(f"Failed to read {path.name}")
        if not isinstance(data, list):
            logger.error("Collection is not a JSON array", path=str(path))
            raise StorageError(f"Failed to read {path.name}")
        return data

    def _write(self, path: Path, rows: List[Dict[str, Any]]) -> None:
        try:
            _atomic_write(path, rows)
        except OSError as e:
            logger.error("Failed to write collection", path=str(path), error=str(e))
            raise StorageError(f"Failed to write {path.name}")

    # Row conversion

    @staticmethod
    def _credential(row: Dict[str, Any]) -> UserCredential:
        return UserCredential.model_validate(row)

    @classmethod
    def _user(cls, row: Dict[str, Any]) -> User:
        return cls._credential(row).public()

    def _users_by_id(self) -> Dict[str, User]:
        return {row["id"]: self._user(row) for row in self._read(self.users_path)}

    @staticmethod
    def _task(row: Dict[str, Any], users: Dict[str, User]) -> Task:
        data = dict(row)
        data["assignedTo"] = UserRef.of(row["assignedTo"], users.get(row["assignedTo"]))
        data["createdBy"] = UserRef.of(row["createdBy"], users.get(row["createdBy"]))
        return Task.model_validate(data)

    # Users

    def list_users(
        self, page: int = 1, limit: int = 10, sort_by: str = "createdAt", sort_order: SortOrder = "desc"
    ) -> Page[User]:
        check_user_sort(sort_by)
        users = [self._user(row) for row in self._read(self.users_path)]
        attr = _USER_SORT_ATTRS[sort_by]
        ordered = sort_items(users, lambda u: getattr(u, attr), lambda u: u.id, sort_order)
        return slice_page(ordered, page, limit)

    def get_user_by_id(self, user_id: str) -> Optional[User]:
        row = next((r for r in self._read(self.users_path) if r.get("id") == user_id), None)
        return self._user(row) if row else None

    def get_user_by_email(self, email: str) -> Optional[User]:
        credential = self.get_user_by_email_with_credential(email)
        return credential.public() if credential else None

    def get_user_by_email_with_credential(self, email: str) -> Optional[UserCredential]:
        row = next((r for r in self._read(self.users_path) if r.get("email") == email), None)
        return self._credential(row) if row else None

    def create_user(self, name: str, email: str, password_hash: str, role: Role = "user") -> User:
        with self._lock:
            rows = self._read(self.users_path)
            if any(r.get("email") == email for r in rows):
                raise DuplicateEmailError()
            now = utcnow()
            user = UserCredential(
                id=generate_id(),
                name=name,
                email=email,
                password_hash=password_hash,
                role=role,
                created_at=now,
                updated_at=now,
            )
            rows.append(user.to_json())
            self._write(self.users_path, rows)
        return user.public()

    def update_user(self, user_id: str, fields: Dict[str, Any]) -> Optional[User]:
        with self._lock:
            rows = self._read(self.users_path)
            index = next((i for i, r in enumerate(rows) if r.get("id") == user_id), None)
            if index is None:
                return None
            email = fields.get("email")
            if email is not None and any(
                r.get("email") == email and r.get("id") != user_id for r in rows
            ):
                raise DuplicateEmailError()
            current = self._credential(rows[index])
            updated = current.model_copy(
                update={**{k: v for k, v in fields.items() if k in ("name", "email", "role")},
                        "updated_at": utcnow()}
            )
            rows[index] = updated.to_json()
            self._write(self.users_path, rows)
        return updated.public()

    def delete_user(self, user_id: str) -> bool:
        with self._lock:
            rows = self._read(self.users_path)
            remaining = [r for r in rows if r.get("id") != user_id]
            if len(remaining) == len(rows):
                return False
            self._write(self.users_path, remaining)
        return True

    # Tasks

    def _list_tasks(
        self,
        rows: List[Dict[str, Any]],
        page: int,
        limit: int,
        sort_by: str,
        sort_order: SortOrder,
    ) -> Page[Task]:
        check_task_sort(sort_by)
        users = self._users_by_id()
        tasks = [self._task(row, users) for row in rows]
        attr = _TASK_SORT_ATTRS[sort_by]
        ordered = sort_items(tasks, lambda t: getattr(t, attr), lambda t: t.id, sort_order)
        return slice_page(ordered, page, limit)

    def list_tasks(
        self, page: int = 1, limit: int = 10, sort_by: str = "createdAt", sort_order: SortOrder = "desc"
    ) -> Page[Task]:
        return self._list_tasks(self._read(self.tasks_path), page, limit, sort_by, sort_order)

    def list_tasks_by_user(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "createdAt",
        sort_order: SortOrder = "desc",
    ) -> Page[Task]:
        rows = [r for r in self._read(self.tasks_path) if r.get("assignedTo") == user_id]
        return self._list_tasks(rows, page, limit, sort_by, sort_order)

    def get_task_by_id(self, task_id: str) -> Optional[Task]:
        row = next((r for r in self._read(self.tasks_path) if r.get("id") == task_id), None)
        if row is None:
            return None
        return self._task(row, self._users_by_id())

    def create_task(self, data: TaskCreate, created_by: str) -> Task:
        now = utcnow()
        row = {
            **data.model_dump(mode="json", by_alias=True),
            "id": generate_id(),
            "createdBy": created_by,
            "createdAt": now,
            "updatedAt": now,
        }
        row = json.loads(json.dumps(row, default=_json_default))
        with self._lock:
            rows = self._read(self.tasks_path)
            rows.append(row)
            self._write(self.tasks_path, rows)
        return self._task(row, self._users_by_id())

    def update_task(self, task_id: str, fields: Dict[str, Any]) -> Optional[Task]:
        with self._lock:
            rows = self._read(self.tasks_path)
            index = next((i for i, r in enumerate(rows) if r.get("id") == task_id), None)
            if index is None:
                return None
            changes = {to_camel(k): v for k, v in fields.items() if k not in ("id", "created_by", "created_at")}
            changes["updatedAt"] = utcnow()
            row = {**rows[index], **json.loads(json.dumps(changes, default=_json_default))}
            rows[index] = row
            self._write(self.tasks_path, rows)
        return self._task(row, self._users_by_id())

    def delete_task(self, task_id: str) -> bool:
        with self._lock:
            rows = self._read(self.tasks_path)
            remaining = [r for r in rows if r.get("id") != task_id]
            if len(remaining) == len(rows):
                return False
            self._write(self.tasks_path, remaining)
        return True


def _json_default(value: Any) -> Any:
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)
