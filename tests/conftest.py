"""Shared fixtures: a fresh SQLite database per test and a fake asset host."""

import os
import tempfile

# Configure the application before any of its modules are imported
_TEST_DATA_DIR = tempfile.mkdtemp(prefix="voiceit-tests-")
os.environ.update(
    {
        "ENVIRONMENT": "development",
        "DATA_DIR": _TEST_DATA_DIR,
        "JWT_SECRET_KEY": "test-secret",
        "BCRYPT_ROUNDS": "4",
        "ASSET_HOST_BACKEND": "local",
        "ADMIN_EMAIL": "",
        "ADMIN_PASSWORD": "",
        "ADMIN_EMAILS": "",
        "STATUS_UPDATE_REQUIRES_ADMIN": "false",
        "SEED_SAMPLE_DATA": "false",
    }
)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from app import app
from core.database import build_engine, get_db, init_db
from core.dependencies import get_asset_host, get_issue_locks
from core.exceptions import UploadError
from utils.asset_host import AssetHost, ImageUpload
from utils.issue_manager import IssueLockRegistry, IssueManager
from utils.user_manager import UserManager


class FakeAssetHost(AssetHost):
    """In-memory asset host whose failures can be switched on per filename."""

    name = "fake"

    def __init__(self):
        self.stored = {}
        self.deleted = []
        self.fail_uploads_for = set()
        self.fail_deletes = False
        self._counter = 0

    async def upload(self, image: ImageUpload) -> str:
        if image.filename in self.fail_uploads_for:
            raise UploadError(f"upload refused for {image.filename}")
        self._counter += 1
        url = f"https://assets.test/{self._counter}-{image.filename}"
        self.stored[url] = image.data
        return url

    async def delete(self, url: str) -> None:
        if self.fail_deletes:
            raise UploadError("asset host unavailable")
        self.deleted.append(url)
        self.stored.pop(url, None)


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path}/test.db")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def asset_host():
    return FakeAssetHost()


@pytest.fixture
def issue_locks():
    return IssueLockRegistry()


@pytest.fixture
def user_manager(db):
    return UserManager(db)


@pytest.fixture
def issue_manager(db, asset_host, issue_locks):
    return IssueManager(db, asset_host, issue_locks)


@pytest.fixture
def client(session_factory, asset_host, issue_locks):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_asset_host] = lambda: asset_host
    app.dependency_overrides[get_issue_locks] = lambda: issue_locks
    yield TestClient(app)
    app.dependency_overrides.clear()


def register(client, name="Alice", email="alice@example.com", password="secret1"):
    """Register through the API and return (token, user dict)."""
    response = client.post(
        "/api/auth/register", json={"name": name, "email": email, "password": password}
    )
    assert response.status_code == 201, response.text
    body = response.json()
    return body["token"], body["user"]


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


ISSUE_FORM = {
    "title": "Pothole",
    "description": "Deep pothole in the right lane",
    "category": "pothole",
    "address": "5th Ave",
    "latitude": "1.0",
    "longitude": "2.0",
}


def create_issue(client, token, files=None, **overrides):
    """Create an issue through the API and return the response."""
    data = dict(ISSUE_FORM, **overrides)
    return client.post("/api/issues", data=data, files=files, headers=bearer(token))


@pytest.fixture
def alice(client):
    return register(client)


@pytest.fixture
def bob(client):
    return register(client, name="Bob", email="bob@example.com", password="secret2")


@pytest.fixture
def admin(client, user_manager):
    token, user = register(client, name="Admin", email="admin@example.com", password="adminpw")
    user_manager.update_role(user["user_id"], "admin", changed_by="tests")
    return token, dict(user, role="admin")
