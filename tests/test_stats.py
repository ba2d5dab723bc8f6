from datetime import datetime, timedelta

import pytest

import config
from conftest import bearer, create_issue
from core.exceptions import AuthorizationError, ValidationError
from models.issue import IssueModel


def stats(client, token, **params):
    response = client.get("/api/issues/stats", params=params, headers=bearer(token))
    assert response.status_code == 200, response.text
    return response.json()


def shift_created_at(db, issue_id, delta):
    model = db.get(IssueModel, issue_id)
    model.created_at = (datetime.fromisoformat(model.updated_at) - delta).isoformat()
    db.commit()


@pytest.fixture
def populated(client, alice, bob, admin):
    ids = [
        create_issue(client, alice[0], category="pothole").json()["issue_id"],
        create_issue(client, alice[0], category="pothole").json()["issue_id"],
        create_issue(client, alice[0], category="garbage").json()["issue_id"],
        create_issue(client, bob[0], category="streetlight").json()["issue_id"],
    ]
    client.patch(
        f"/api/issues/{ids[0]}/status", json={"status": "resolved"}, headers=bearer(admin[0])
    )
    return ids


class TestStats:
    def test_empty(self, client, admin):
        body = stats(client, admin[0])
        assert body["total"] == 0
        assert body["resolution_rate"] == 0
        assert body["average_resolution_days"] == 0
        assert body["top_reporters"] == []
        assert all(c["percentage"] == 0 for c in body["by_category"])

    def test_counts_and_percentages(self, client, admin, populated):
        body = stats(client, admin[0])
        assert body["window"] == "all"
        assert body["total"] == 4
        assert body["by_status"] == {
            "reported": 3,
            "acknowledged": 0,
            "in-progress": 0,
            "resolved": 1,
        }
        by_category = {c["category"]: c for c in body["by_category"]}
        assert by_category["pothole"] == {"category": "pothole", "count": 2, "percentage": 50}
        assert by_category["garbage"]["percentage"] == 25
        assert by_category["parks"]["count"] == 0
        assert body["resolution_rate"] == 25
        assert body["top_reporters"] == [
            {"name": "Alice", "count": 3},
            {"name": "Bob", "count": 1},
        ]

    def test_average_resolution_days(self, client, admin, populated, db):
        shift_created_at(db, populated[0], timedelta(days=2))
        assert stats(client, admin[0])["average_resolution_days"] == 2.0

    def test_urgent_issues(self, client, alice, bob, admin, populated, monkeypatch):
        monkeypatch.setattr(config, "URGENT_UPVOTE_THRESHOLD", 1)
        for token in (alice[0], bob[0]):
            client.post(f"/api/issues/{populated[3]}/upvote", headers=bearer(token))
        client.post(f"/api/issues/{populated[2]}/upvote", headers=bearer(alice[0]))
        assert stats(client, admin[0])["urgent_issues"] == 1

    def test_window_filters_by_creation_time(self, client, admin, populated, db):
        shift_created_at(db, populated[3], timedelta(days=60))
        shift_created_at(db, populated[2], timedelta(days=10))

        assert stats(client, admin[0], window="all")["total"] == 4
        assert stats(client, admin[0], window="month")["total"] == 3
        assert stats(client, admin[0], window="week")["total"] == 2
        month = stats(client, admin[0], window="month")
        assert month["window"] == "month"
        assert month["top_reporters"] == [{"name": "Alice", "count": 3}]

    def test_unknown_window(self, client, admin):
        response = client.get(
            "/api/issues/stats", params={"window": "year"}, headers=bearer(admin[0])
        )
        assert response.status_code == 400

    def test_admin_only(self, client, alice):
        response = client.get("/api/issues/stats", headers=bearer(alice[0]))
        assert response.status_code == 403
        assert client.get("/api/issues/stats").status_code == 401


class TestStatsManager:
    def test_rejects_non_admin(self, issue_manager, user_manager):
        user = user_manager.create_user("Dan", "dan@example.com", "secret1")
        with pytest.raises(AuthorizationError):
            issue_manager.get_stats(user)

    def test_rejects_unknown_window(self, issue_manager, user_manager):
        admin = user_manager.create_user("Eve", "eve@example.com", "secret1", role="admin")
        with pytest.raises(ValidationError):
            issue_manager.get_stats(admin, "decade")
