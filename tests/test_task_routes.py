from datetime import datetime, timedelta, timezone

import mongomock
import pytest

from conftest import add_user, create_test_app, login
from taskhub.stores.mongo_store import MongoStorage

TASKS = "/api/v1/tasks"


def _future(days: int = 3) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


def _task_body(assignee_id: str, **extra) -> dict:
    body = {
        "title": "Ship the release",
        "description": "Tag, build and publish the release",
        "assignedTo": assignee_id,
    }
    body.update(extra)
    return body


@pytest.fixture
def team(client):
    """Admin A, user B and an unrelated user C, each with auth headers."""
    services = client.app.state.services
    a = add_user(services, "a@example.com", role="admin", name="Alice Admin")
    b = add_user(services, "b@example.com", name="Bob User")
    c = add_user(services, "c@example.com", name="Carol User")
    return {
        "a": (a, login(client, "a@example.com")),
        "b": (b, login(client, "b@example.com")),
        "c": (c, login(client, "c@example.com")),
    }


def test_requires_authentication(client):
    res = client.get(TASKS)
    assert res.status_code == 401
    assert res.json()["message"] == "Access denied. No token provided."


def test_create_task_populates_references(client, team):
    a, a_headers = team["a"]
    b, _ = team["b"]
    res = client.post(TASKS, json=_task_body(b.id, priority="high", dueDate=_future()), headers=a_headers)
    assert res.status_code == 201, res.text
    body = res.json()
    assert body["message"] == "Task created successfully"
    task = body["data"]
    assert task["status"] == "pending"
    assert task["priority"] == "high"
    assert task["assignedTo"] == {"id": b.id, "name": "Bob User", "email": "b@example.com"}
    assert task["createdBy"]["id"] == a.id
    assert task["dueDate"] is not None


def test_created_by_in_payload_is_ignored(client, team):
    a, a_headers = team["a"]
    b, _ = team["b"]
    res = client.post(TASKS, json=_task_body(b.id, createdBy=b.id), headers=a_headers)
    assert res.status_code == 201
    assert res.json()["data"]["createdBy"]["id"] == a.id


def test_admin_assignee_scenario(client, team):
    a, a_headers = team["a"]
    b, b_headers = team["b"]
    task_id = client.post(TASKS, json=_task_body(b.id), headers=a_headers).json()["data"]["id"]

    # B can view the task and move its status
    res = client.get(f"{TASKS}/{task_id}", headers=b_headers)
    assert res.status_code == 200
    assert res.json()["message"] == "Task retrieved successfully"
    res = client.put(f"{TASKS}/{task_id}", json={"status": "in-progress"}, headers=b_headers)
    assert res.status_code == 200, res.text
    assert res.json()["data"]["status"] == "in-progress"

    # but not change anything else, or delete it
    res = client.put(f"{TASKS}/{task_id}", json={"title": "Renamed by B"}, headers=b_headers)
    assert res.status_code == 403
    res = client.delete(f"{TASKS}/{task_id}", headers=b_headers)
    assert res.status_code == 403
    assert res.json() == {"success": False, "message": "Not authorized to delete this task"}

    res = client.delete(f"{TASKS}/{task_id}", headers=a_headers)
    assert res.status_code == 200
    assert res.json()["message"] == "Task deleted successfully"
    assert client.get(f"{TASKS}/{task_id}", headers=a_headers).status_code == 404


def test_unrelated_user_cannot_modify(client, team):
    b, b_headers = team["b"]
    _, c_headers = team["c"]
    a, a_headers = team["a"]
    task_id = client.post(TASKS, json=_task_body(a.id), headers=b_headers).json()["data"]["id"]

    res = client.put(f"{TASKS}/{task_id}", json={"status": "completed"}, headers=c_headers)
    assert res.status_code == 403
    assert res.json()["message"] == "Not authorized to update this task"
    assert client.delete(f"{TASKS}/{task_id}", headers=c_headers).status_code == 403

    # Creator and admin both succeed
    assert client.put(f"{TASKS}/{task_id}", json={"priority": "low"}, headers=b_headers).status_code == 200
    assert client.put(f"{TASKS}/{task_id}", json={"priority": "high"}, headers=a_headers).status_code == 200
    assert client.delete(f"{TASKS}/{task_id}", headers=b_headers).status_code == 200


def test_unknown_assignee_is_rejected(client, team):
    _, a_headers = team["a"]
    res = client.post(TASKS, json=_task_body("000000000000000000000000"), headers=a_headers)
    assert res.status_code == 400
    assert res.json() == {"success": False, "message": "Assigned user not found"}
    assert client.get(TASKS, headers=a_headers).json()["data"]["total"] == 0


@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"title": "ab"}, "title"),
        ({"description": "short"}, "description"),
        ({"status": "done"}, "status"),
        ({"priority": "urgent"}, "priority"),
        ({"dueDate": "not-a-date"}, "dueDate"),
    ],
)
def test_invalid_payloads_return_400(client, team, overrides, field):
    b, b_headers = team["b"]
    res = client.post(TASKS, json=_task_body(b.id, **overrides), headers=b_headers)
    assert res.status_code == 400
    body = res.json()
    assert body["success"] is False
    assert field in body["message"]


def test_past_due_date_is_rejected(client, team):
    b, b_headers = team["b"]
    res = client.post(TASKS, json=_task_body(b.id, dueDate=_future(days=-1)), headers=b_headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Due date must be in the future"


def test_due_date_can_be_cleared(client, team):
    b, b_headers = team["b"]
    task_id = client.post(
        TASKS, json=_task_body(b.id, dueDate=_future()), headers=b_headers
    ).json()["data"]["id"]

    kept = client.put(f"{TASKS}/{task_id}", json={"priority": "low"}, headers=b_headers).json()["data"]
    assert kept["dueDate"] is not None

    cleared = client.put(f"{TASKS}/{task_id}", json={"dueDate": None}, headers=b_headers).json()["data"]
    assert cleared["dueDate"] is None


def test_unknown_task_is_404(client, team):
    _, a_headers = team["a"]
    for method in ("get", "delete"):
        res = getattr(client, method)(f"{TASKS}/does-not-exist", headers=a_headers)
        assert res.status_code == 404
        assert res.json() == {"success": False, "message": "Task not found"}
    res = client.put(f"{TASKS}/does-not-exist", json={"status": "completed"}, headers=a_headers)
    assert res.status_code == 404


def test_pagination_and_sorting(client, team):
    b, b_headers = team["b"]
    for i in range(25):
        client.post(TASKS, json=_task_body(b.id, title=f"Task number {i:02d}"), headers=b_headers)

    res = client.get(TASKS, params={"page": 2, "limit": 10, "sortBy": "title", "sortOrder": "asc"}, headers=b_headers)
    assert res.status_code == 200
    page = res.json()["data"]
    assert page["page"] == 2
    assert page["limit"] == 10
    assert page["total"] == 25
    assert page["pageCount"] == 3
    assert [t["title"] for t in page["items"]] == [f"Task number {i:02d}" for i in range(10, 20)]

    empty = client.get(TASKS, params={"page": 4, "limit": 10}, headers=b_headers).json()["data"]
    assert empty["items"] == []
    assert empty["total"] == 25


@pytest.mark.parametrize(
    "params",
    [{"page": 0}, {"limit": 0}, {"limit": 101}, {"sortBy": "assignedTo"}, {"sortOrder": "up"}],
)
def test_invalid_list_query_returns_400(client, team, params):
    _, b_headers = team["b"]
    res = client.get(TASKS, params=params, headers=b_headers)
    assert res.status_code == 400
    assert res.json()["success"] is False


def test_end_to_end_with_document_store(settings):
    storage = MongoStorage(mongomock.MongoClient()["taskhub_e2e"])
    client = create_test_app(settings, storage=storage)

    res = client.post(
        "/api/v1/auth/signup",
        json={"name": "Doc User", "email": "doc@example.com", "password": "password123"},
    )
    assert res.status_code == 201, res.text
    headers = {"Authorization": f"Bearer {res.json()['data']['accessToken']}"}
    me = client.get("/api/v1/auth/profile", headers=headers).json()["data"]

    created = client.post(TASKS, json=_task_body(me["id"], dueDate=_future()), headers=headers)
    assert created.status_code == 201, created.text
    task_id = created.json()["data"]["id"]

    listed = client.get(TASKS, params={"sortBy": "dueDate", "sortOrder": "asc"}, headers=headers).json()["data"]
    assert [t["id"] for t in listed["items"]] == [task_id]
    assert listed["items"][0]["assignedTo"]["email"] == "doc@example.com"

    updated = client.put(f"{TASKS}/{task_id}", json={"status": "completed"}, headers=headers)
    assert updated.json()["data"]["status"] == "completed"

    assert client.delete(f"{TASKS}/{task_id}", headers=headers).status_code == 200
    assert client.get(f"{TASKS}/{task_id}", headers=headers).status_code == 404
