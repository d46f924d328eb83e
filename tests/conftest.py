"""Shared fixtures: isolated settings, both storage engines, and an API client."""

from pathlib import Path

import mongomock
import pytest
from fastapi.testclient import TestClient

from taskhub.auth.service import hash_password
from taskhub.core.config import Settings
from taskhub.stores.file_store import FileStorage
from taskhub.stores.mongo_store import MongoStorage

ACCESS_SECRET = "test-access-secret-0123456789abcdef"
REFRESH_SECRET = "test-refresh-secret-0123456789abcdef"
PASSWORD = "password123"


def make_settings(tmp_path: Path, **overrides) -> Settings:
    values = dict(
        data_dir=str(tmp_path / "db"),
        access_token_secret=ACCESS_SECRET,
        refresh_token_secret=REFRESH_SECRET,
        bcrypt_rounds=4,
        rate_limit_max=10000,
        log_format="console",
        log_level="WARNING",
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture(params=["file", "mongodb"])
def storage(request, tmp_path):
    """Every storage contract test runs against both engines."""
    if request.param == "file":
        store = FileStorage(tmp_path / "db")
    else:
        store = MongoStorage(mongomock.MongoClient()["taskhub_test"])
    yield store
    store.close()


@pytest.fixture
def file_storage(tmp_path):
    return FileStorage(tmp_path / "db")


def create_test_app(settings: Settings, storage=None) -> TestClient:
    from taskhub_web.app import create_app

    app = create_app(settings, storage=storage)
    return TestClient(app)


@pytest.fixture
def client(settings):
    return create_test_app(settings)


def add_user(services, email: str, role: str = "user", name: str = "Test User"):
    """Create a user straight through the storage adapter."""
    return services.storage.create_user(
        name=name, email=email, password_hash=hash_password(PASSWORD, rounds=4), role=role
    )


def login(client: TestClient, email: str, password: str = PASSWORD) -> dict:
    """Log in and return Authorization headers for the user."""
    res = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert res.status_code == 200, res.text
    token = res.json()["data"]["accessToken"]
    return {"Authorization": f"Bearer {token}"}
