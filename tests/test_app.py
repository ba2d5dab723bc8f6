import pytest
from fastapi.testclient import TestClient

import config
import core.dependencies
from app import app
from core.bootstrap import bootstrap
from core.dependencies import get_asset_host
from models.issue import IssueModel
from utils.issue_manager import SAMPLE_ISSUES, IssueManager


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["database"] == "sqlite"
    assert body["timestamp"]
    assert body["asset_host"] == "fake"


def test_health_reports_fallback_host(client, monkeypatch):
    monkeypatch.setattr(config, "ASSET_HOST_BACKEND", "cloudinary")
    monkeypatch.setattr(config, "CLOUDINARY_API_SECRET", "")
    monkeypatch.setattr(core.dependencies, "_asset_host_instance", None)
    app.dependency_overrides.pop(get_asset_host)

    assert client.get("/api/health").json()["asset_host"] == "local"


def test_root_lists_endpoints(client):
    body = client.get("/").json()
    assert body["name"] == "VoiceIt API"
    assert body["endpoints"]["issues"] == "/api/issues"


def test_unknown_route_is_404(client):
    assert client.get("/api/nothing-here").status_code == 404


class TestUnexpectedErrors:
    @pytest.fixture
    def failing_client(self, client, monkeypatch):
        def boom(self, **filters):
            raise RuntimeError("database on fire")

        monkeypatch.setattr(IssueManager, "list_issues", boom)
        return TestClient(app, raise_server_exceptions=False)

    def test_development_includes_error(self, failing_client):
        response = failing_client.get("/api/issues")
        assert response.status_code == 500
        assert response.json() == {
            "detail": "Internal server error",
            "error": "database on fire",
        }

    def test_production_hides_error(self, failing_client, monkeypatch):
        monkeypatch.setattr(config, "ENVIRONMENT", "production")
        response = failing_client.get("/api/issues")
        assert response.status_code == 500
        assert response.json() == {"detail": "Internal server error"}


class TestBootstrap:
    def test_without_admin_settings_does_nothing(self, db):
        assert bootstrap(db) is None

    def test_creates_admin_once(self, db, user_manager, monkeypatch):
        monkeypatch.setattr(config, "ADMIN_EMAIL", "root@example.com")
        monkeypatch.setattr(config, "ADMIN_PASSWORD", "rootpw1")

        first = bootstrap(db)
        second = bootstrap(db)

        assert first.role == "admin"
        assert first.user_id == second.user_id
        assert [u.email for u in user_manager.list_users()] == ["root@example.com"]

    def test_seeds_sample_issues_once(self, db, monkeypatch):
        monkeypatch.setattr(config, "ADMIN_EMAIL", "root@example.com")
        monkeypatch.setattr(config, "ADMIN_PASSWORD", "rootpw1")
        monkeypatch.setattr(config, "SEED_SAMPLE_DATA", True)

        admin = bootstrap(db)
        bootstrap(db)

        issues = db.query(IssueModel).all()
        assert len(issues) == len(SAMPLE_ISSUES)
        assert {issue.reporter_id for issue in issues} == {admin.user_id}
        assert all(issue.upvotes == 0 for issue in issues)

    def test_seeding_needs_an_admin(self, db, monkeypatch):
        monkeypatch.setattr(config, "SEED_SAMPLE_DATA", True)
        assert bootstrap(db) is None
        assert db.query(IssueModel).count() == 0
