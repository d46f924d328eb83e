"""
Storage contract tests.

The storage fixture is parametrized, so each test runs against both the
file engine and the document engine; they must behave identically.
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from taskhub.tasks.models import TaskCreate, TaskUpdate
from taskhub.utils.exceptions import DuplicateEmailError, StorageError, ValidationError


def _task(assignee_id: str, title: str = "Write report", **extra) -> TaskCreate:
    return TaskCreate(
        title=title,
        description="A description long enough",
        assigned_to=assignee_id,
        **extra,
    )


@pytest.fixture
def alice(storage):
    return storage.create_user("Alice", "alice@example.com", "hash-a", role="admin")


@pytest.fixture
def bob(storage):
    return storage.create_user("Bob", "bob@example.com", "hash-b")


def test_create_user_rejects_duplicate_email(storage, alice):
    with pytest.raises(DuplicateEmailError):
        storage.create_user("Other", "alice@example.com", "hash")


def test_email_lookup_is_case_sensitive(storage, alice):
    assert storage.get_user_by_email("Alice@example.com") is None
    assert storage.get_user_by_email("alice@example.com").id == alice.id


def test_password_hash_only_on_credential_lookup(storage, alice):
    user = storage.get_user_by_email("alice@example.com")
    assert "passwordHash" not in user.to_json()
    assert "passwordHash" not in storage.get_user_by_id(alice.id).to_json()

    credential = storage.get_user_by_email_with_credential("alice@example.com")
    assert credential.password_hash == "hash-a"
    assert credential.role == "admin"


def test_unknown_ids_resolve_to_none(storage):
    assert storage.get_user_by_id("does-not-exist") is None
    assert storage.get_task_by_id("does-not-exist") is None
    assert storage.update_task("does-not-exist", {"title": "New title"}) is None
    assert storage.delete_task("does-not-exist") is False
    assert storage.delete_user("does-not-exist") is False


def test_update_user_bumps_updated_at_and_guards_email(storage, alice, bob):
    updated = storage.update_user(bob.id, {"name": "Robert"})
    assert updated.name == "Robert"
    assert updated.updated_at >= bob.updated_at
    assert updated.created_at == bob.created_at

    with pytest.raises(DuplicateEmailError):
        storage.update_user(bob.id, {"email": "alice@example.com"})

    # Keeping your own email is not a clash
    assert storage.update_user(bob.id, {"email": "bob@example.com"}).email == "bob@example.com"


def test_created_ids_are_unique(storage, alice):
    ids = {storage.create_task(_task(alice.id), created_by=alice.id).id for _ in range(30)}
    assert len(ids) == 30


def test_pagination_math(storage, alice):
    for i in range(25):
        storage.create_task(_task(alice.id, title=f"Task {i:02d}"), created_by=alice.id)

    page2 = storage.list_tasks(page=2, limit=10)
    assert len(page2.items) == 10
    assert page2.total == 25
    assert page2.page_count == 3

    page3 = storage.list_tasks(page=3, limit=10)
    assert len(page3.items) == 5

    page4 = storage.list_tasks(page=4, limit=10)
    assert page4.items == []
    assert page4.total == 25
    assert page4.page_count == 3


def test_pages_do_not_overlap(storage, alice):
    for i in range(12):
        storage.create_task(_task(alice.id, title=f"Task {i:02d}"), created_by=alice.id)

    seen = []
    for page in (1, 2, 3):
        seen.extend(t.id for t in storage.list_tasks(page=page, limit=5, sort_by="title").items)
    assert len(seen) == len(set(seen)) == 12


def test_sort_by_title_both_directions(storage, alice):
    for title in ("Bravo task", "Alpha task", "Charlie task"):
        storage.create_task(_task(alice.id, title=title), created_by=alice.id)

    asc = [t.title for t in storage.list_tasks(sort_by="title", sort_order="asc").items]
    desc = [t.title for t in storage.list_tasks(sort_by="title", sort_order="desc").items]
    assert asc == ["Alpha task", "Bravo task", "Charlie task"]
    assert desc == list(reversed(asc))


def test_ties_break_by_id_ascending(storage, alice):
    for i in range(6):
        storage.create_task(_task(alice.id, title=f"Same status {i}"), created_by=alice.id)

    expected = sorted(t.id for t in storage.list_tasks(limit=100).items)
    for order in ("asc", "desc"):
        ids = [t.id for t in storage.list_tasks(limit=100, sort_by="status", sort_order=order).items]
        assert ids == expected


def test_missing_due_dates_sort_below_present_ones(storage, alice):
    soon = datetime.now(timezone.utc) + timedelta(days=1)
    later = soon + timedelta(days=1)
    storage.create_task(_task(alice.id, title="Later one", due_date=later), created_by=alice.id)
    storage.create_task(_task(alice.id, title="No due date"), created_by=alice.id)
    storage.create_task(_task(alice.id, title="Soon one", due_date=soon), created_by=alice.id)

    asc = [t.title for t in storage.list_tasks(sort_by="dueDate", sort_order="asc").items]
    desc = [t.title for t in storage.list_tasks(sort_by="dueDate", sort_order="desc").items]
    assert asc == ["No due date", "Soon one", "Later one"]
    assert desc == ["Later one", "Soon one", "No due date"]


def test_unknown_sort_key_is_rejected(storage, alice):
    with pytest.raises(ValidationError):
        storage.list_tasks(sort_by="assignedTo")
    with pytest.raises(ValidationError):
        storage.list_users(sort_by="passwordHash")


def test_list_users_paginates_and_sorts(storage, alice, bob):
    page = storage.list_users(sort_by="name", sort_order="asc")
    assert [u.name for u in page.items] == ["Alice", "Bob"]
    assert page.total == 2
    assert page.page_count == 1
    assert all("passwordHash" not in u.to_json() for u in page.items)


def test_references_are_populated(storage, alice, bob):
    task = storage.create_task(_task(bob.id), created_by=alice.id)

    assert task.assigned_to.name == "Bob"
    assert task.created_by.email == "alice@example.com"
    data = task.to_json()
    assert data["assignedTo"] == {"id": bob.id, "name": "Bob", "email": "bob@example.com"}
    assert data["createdBy"]["id"] == alice.id

    listed = storage.list_tasks().items[0]
    assert listed.assigned_to.id == bob.id and not listed.assigned_to.missing


def test_dangling_reference_falls_back_to_bare_id(storage, alice, bob):
    task = storage.create_task(_task(bob.id), created_by=alice.id)
    assert storage.delete_user(bob.id)

    fetched = storage.get_task_by_id(task.id)
    assert fetched.assigned_to.missing
    assert fetched.to_json()["assignedTo"] == bob.id
    assert fetched.to_json()["createdBy"]["name"] == "Alice"


def test_update_task_applies_changes_and_keeps_creator(storage, alice, bob):
    task = storage.create_task(_task(alice.id), created_by=alice.id)

    updated = storage.update_task(task.id, {"status": "in-progress", "assigned_to": bob.id})
    assert updated.status == "in-progress"
    assert updated.assigned_to.id == bob.id
    assert updated.created_by.id == alice.id
    assert updated.created_at == task.created_at
    assert updated.updated_at >= task.updated_at


def test_due_date_round_trips_at_millisecond_precision(storage, alice):
    due = (datetime.now(timezone.utc) + timedelta(days=3)).replace(microsecond=123456)
    task = storage.create_task(_task(alice.id, due_date=due), created_by=alice.id)

    fetched = storage.get_task_by_id(task.id)
    assert task.due_date == due.replace(microsecond=123000)
    assert fetched.due_date == task.due_date

    later = due + timedelta(days=1, microseconds=654321)
    updated = storage.update_task(task.id, TaskUpdate(due_date=later).changes())
    assert updated.due_date == storage.get_task_by_id(task.id).due_date
    assert updated.due_date.microsecond % 1000 == 0


def test_update_task_can_clear_due_date(storage, alice):
    due = datetime.now(timezone.utc) + timedelta(days=3)
    task = storage.create_task(_task(alice.id, due_date=due), created_by=alice.id)
    assert task.due_date is not None

    cleared = storage.update_task(task.id, {"due_date": None})
    assert cleared.due_date is None


def test_list_tasks_by_user_scopes_by_assignee(storage, alice, bob):
    storage.create_task(_task(bob.id, title="For Bob 1"), created_by=alice.id)
    storage.create_task(_task(bob.id, title="For Bob 2"), created_by=alice.id)
    storage.create_task(_task(alice.id, title="For Alice"), created_by=alice.id)

    bobs = storage.list_tasks_by_user(bob.id)
    assert bobs.total == 2
    assert {t.title for t in bobs.items} == {"For Bob 1", "For Bob 2"}
    assert storage.list_tasks_by_user("does-not-exist").total == 0


def test_delete_task(storage, alice):
    task = storage.create_task(_task(alice.id), created_by=alice.id)
    assert storage.delete_task(task.id) is True
    assert storage.get_task_by_id(task.id) is None
    assert storage.delete_task(task.id) is False


def test_file_engine_creates_data_dir_and_arrays(tmp_path):
    from taskhub.stores.file_store import FileStorage

    store = FileStorage(tmp_path / "nested" / "db")
    user = store.create_user("Alice", "alice@example.com", "hash")
    rows = json.loads((tmp_path / "nested" / "db" / "users.json").read_text(encoding="utf-8"))
    assert isinstance(rows, list)
    assert rows[0]["id"] == user.id
    assert rows[0]["passwordHash"] == "hash"
    assert not (tmp_path / "nested" / "db" / "tasks.json").exists()


def test_file_engine_reports_corrupt_collection(file_storage):
    file_storage.users_path.write_text("{not json", encoding="utf-8")
    with pytest.raises(StorageError):
        file_storage.list_users()

    file_storage.users_path.write_text('{"users": []}', encoding="utf-8")
    with pytest.raises(StorageError):
        file_storage.get_user_by_email("alice@example.com")
