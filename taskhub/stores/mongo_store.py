"""
MongoDB storage engine.

Documents use camelCase field names with native ObjectId _id values;
assignedTo/createdBy are stored as ObjectIds and populated on read with a
single batched user lookup per page. Mutations rely on the server's atomic
update-by-id (find_one_and_update / find_one_and_delete).
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError
from pydantic.alias_generators import to_camel

from ..auth.models import Role, User, UserCredential
from ..core.schema import Page, SortOrder, as_utc, utcnow
from ..tasks.models import Task, TaskCreate, UserRef
from ..utils.exceptions import DuplicateEmailError, StorageError
from ..utils.logger import get_logger
from .base import StorageAdapter, check_task_sort, check_user_sort

logger = get_logger(__name__)

_USER_PROJECTION = {"passwordHash": 0}
_DATE_FIELDS = ("createdAt", "updatedAt", "dueDate")


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Parse an id string; None when it is not a valid ObjectId."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def _normalize(doc: Dict[str, Any]) -> Dict[str, Any]:
    data = dict(doc)
    data["id"] = str(data.pop("_id"))
    for field in _DATE_FIELDS:
        if data.get(field) is not None:
            data[field] = as_utc(data[field])
    return data


def _sort_spec(sort_by: str, sort_order: SortOrder) -> List[tuple]:
    direction = ASCENDING if sort_order == "asc" else DESCENDING
    return [(sort_by, direction), ("_id", ASCENDING)]


class MongoStorage(StorageAdapter):
    """pymongo-backed StorageAdapter."""

    def __init__(self, database: Database, client: Optional[MongoClient] = None):
        self.db = database
        self.users = database["users"]
        self.tasks = database["tasks"]
        self._client = client
        self.ensure_indexes()

    @classmethod
    def from_uri(cls, uri: str, db_name: str) -> "MongoStorage":
        client = MongoClient(uri, tz_aware=True, serverSelectionTimeoutMS=5000)
        logger.info("Connecting to MongoDB", database=db_name)
        return cls(client[db_name], client=client)

    def ensure_indexes(self) -> None:
        try:
            self.users.create_index("email", unique=True)
            self.tasks.create_index([("assignedTo", ASCENDING), ("status", ASCENDING)])
            self.tasks.create_index("createdBy")
            self.tasks.create_index("dueDate")
        except PyMongoError as e:
            logger.error("Failed to create indexes", error=str(e))
            raise StorageError("Failed to initialize document store")

    def close(self) -> None:
        if self._client is not None:
            self._client.close()

    # Conversion

    @staticmethod
    def _user(doc: Dict[str, Any]) -> User:
        data = _normalize(doc)
        data.pop("passwordHash", None)
        return User.model_validate(data)

    def _refs(self, docs: Iterable[Dict[str, Any]]) -> Dict[str, User]:
        ids = set()
        for doc in docs:
            ids.add(doc.get("assignedTo"))
            ids.add(doc.get("createdBy"))
        ids.discard(None)
        if not ids:
            return {}
        found = self.users.find({"_id": {"$in": list(ids)}}, _USER_PROJECTION)
        return {str(doc["_id"]): self._user(doc) for doc in found}

    @staticmethod
    def _task(doc: Dict[str, Any], users: Dict[str, User]) -> Task:
        data = _normalize(doc)
        assigned = str(data["assignedTo"])
        creator = str(data["createdBy"])
        data["assignedTo"] = UserRef.of(assigned, users.get(assigned))
        data["createdBy"] = UserRef.of(creator, users.get(creator))
        return Task.model_validate(data)

    def _tasks_page(
        self, query: Dict[str, Any], page: int, limit: int, sort_by: str, sort_order: SortOrder
    ) -> Page[Task]:
        check_task_sort(sort_by)
        try:
            docs = list(
                self.tasks.find(query)
                .sort(_sort_spec(sort_by, sort_order))
                .skip((page - 1) * limit)
                .limit(limit)
            )
            total = self.tasks.count_documents(query)
            users = self._refs(docs)
        except PyMongoError as e:
            logger.error("Task query failed", error=str(e))
            raise StorageError("Failed to list tasks")
        return Page.build([self._task(d, users) for d in docs], page=page, limit=limit, total=total)

    # Users

    def list_users(
        self, page: int = 1, limit: int = 10, sort_by: str = "createdAt", sort_order: SortOrder = "desc"
    ) -> Page[User]:
        check_user_sort(sort_by)
        try:
            docs = list(
                self.users.find({}, _USER_PROJECTION)
                .sort(_sort_spec(sort_by, sort_order))
                .skip((page - 1) * limit)
                .limit(limit)
            )
            total = self.users.count_documents({})
        except PyMongoError as e:
            logger.error("User query failed", error=str(e))
            raise StorageError("Failed to list users")
        return Page.build([self._user(d) for d in docs], page=page, limit=limit, total=total)

    def get_user_by_id(self, user_id: str) -> Optional[User]:
        oid = to_object_id(user_id)
        if oid is None:
            return None
        doc = self.users.find_one({"_id": oid}, _USER_PROJECTION)
        return self._user(doc) if doc else None

    def get_user_by_email(self, email: str) -> Optional[User]:
        doc = self.users.find_one({"email": email}, _USER_PROJECTION)
        return self._user(doc) if doc else None

    def get_user_by_email_with_credential(self, email: str) -> Optional[UserCredential]:
        doc = self.users.find_one({"email": email})
        return UserCredential.model_validate(_normalize(doc)) if doc else None

    def create_user(self, name: str, email: str, password_hash: str, role: Role = "user") -> User:
        if self.users.find_one({"email": email}, {"_id": 1}):
            raise DuplicateEmailError()
        now = utcnow()
        doc = {
            "name": name,
            "email": email,
            "passwordHash": password_hash,
            "role": role,
            "createdAt": now,
            "updatedAt": now,
        }
        try:
            result = self.users.insert_one(doc)
        except DuplicateKeyError:
            raise DuplicateEmailError()
        doc["_id"] = result.inserted_id
        return self._user(doc)

    def update_user(self, user_id: str, fields: Dict[str, Any]) -> Optional[User]:
        oid = to_object_id(user_id)
        if oid is None:
            return None
        changes = {k: v for k, v in fields.items() if k in ("name", "email", "role")}
        email = changes.get("email")
        if email is not None and self.users.find_one({"email": email, "_id": {"$ne": oid}}, {"_id": 1}):
            raise DuplicateEmailError()
        changes["updatedAt"] = utcnow()
        try:
            doc = self.users.find_one_and_update(
                {"_id": oid},
                {"$set": changes},
                projection=_USER_PROJECTION,
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError:
            raise DuplicateEmailError()
        return self._user(doc) if doc else None

    def delete_user(self, user_id: str) -> bool:
        oid = to_object_id(user_id)
        if oid is None:
            return False
        return self.users.find_one_and_delete({"_id": oid}) is not None

    # Tasks

    def list_tasks(
        self, page: int = 1, limit: int = 10, sort_by: str = "createdAt", sort_order: SortOrder = "desc"
    ) -> Page[Task]:
        return self._tasks_page({}, page, limit, sort_by, sort_order)

    def list_tasks_by_user(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "createdAt",
        sort_order: SortOrder = "desc",
    ) -> Page[Task]:
        oid = to_object_id(user_id)
        if oid is None:
            check_task_sort(sort_by)
            return Page.build([], page=page, limit=limit, total=0)
        return self._tasks_page({"assignedTo": oid}, page, limit, sort_by, sort_order)

    def get_task_by_id(self, task_id: str) -> Optional[Task]:
        oid = to_object_id(task_id)
        if oid is None:
            return None
        doc = self.tasks.find_one({"_id": oid})
        if doc is None:
            return None
        return self._task(doc, self._refs([doc]))

    def create_task(self, data: TaskCreate, created_by: str) -> Task:
        now = utcnow()
        doc = data.model_dump(by_alias=True)
        doc["assignedTo"] = to_object_id(data.assigned_to) or data.assigned_to
        doc["createdBy"] = to_object_id(created_by) or created_by
        doc["createdAt"] = now
        doc["updatedAt"] = now
        try:
            result = self.tasks.insert_one(doc)
        except PyMongoError as e:
            logger.error("Task insert failed", error=str(e))
            raise StorageError("Failed to create task")
        doc["_id"] = result.inserted_id
        return self._task(doc, self._refs([doc]))

    def update_task(self, task_id: str, fields: Dict[str, Any]) -> Optional[Task]:
        oid = to_object_id(task_id)
        if oid is None:
            return None
        changes = {to_camel(k): v for k, v in fields.items() if k not in ("id", "created_by", "created_at")}
        if "assignedTo" in changes:
            changes["assignedTo"] = to_object_id(changes["assignedTo"]) or changes["assignedTo"]
        changes["updatedAt"] = utcnow()
        try:
            doc = self.tasks.find_one_and_update(
                {"_id": oid},
                {"$set": changes},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            logger.error("Task update failed", task_id=task_id, error=str(e))
            raise StorageError("Failed to update task")
        if doc is None:
            return None
        return self._task(doc, self._refs([doc]))

    def delete_task(self, task_id: str) -> bool:
        oid = to_object_id(task_id)
        if oid is None:
            return False
        return self.tasks.find_one_and_delete({"_id": oid}) is not None
