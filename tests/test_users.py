import pytest

from conftest import bearer, create_issue
from core.exceptions import AccountNotFoundError


class TestProfile:
    def test_profile_counts(self, client, alice, bob):
        mine = [create_issue(client, alice[0]).json()["issue_id"] for _ in range(2)]
        theirs = create_issue(client, bob[0]).json()["issue_id"]
        for issue_id in (mine[0], theirs):
            client.post(f"/api/issues/{issue_id}/upvote", headers=bearer(alice[0]))

        response = client.get("/api/users/profile", headers=bearer(alice[0]))
        assert response.status_code == 200
        assert response.json() == {
            "user": alice[1],
            "reported_issues": 2,
            "upvoted_issues": 2,
        }

    def test_profile_requires_authentication(self, client):
        assert client.get("/api/users/profile").status_code == 401

    def test_my_issues(self, client, alice, bob):
        create_issue(client, alice[0], title="Mine")
        create_issue(client, bob[0], title="Theirs")
        response = client.get("/api/users/my-issues", headers=bearer(alice[0]))
        assert [issue["title"] for issue in response.json()] == ["Mine"]


class TestAdminUserManagement:
    def test_admin_lists_users_without_password_data(self, client, alice, admin):
        response = client.get("/api/users", headers=bearer(admin[0]))
        assert response.status_code == 200
        users = response.json()["users"]
        assert [u["email"] for u in users] == ["alice@example.com", "admin@example.com"]
        assert all("password_hash" not in u for u in users)

    def test_non_admin_cannot_list_users(self, client, alice):
        response = client.get("/api/users", headers=bearer(alice[0]))
        assert response.status_code == 403
        assert response.json()["detail"] == "Admin access required"

    def test_promotion_applies_to_existing_tokens(self, client, alice, bob, admin):
        issue_id = create_issue(client, alice[0]).json()["issue_id"]
        url = f"/api/issues/{issue_id}"
        assert client.delete(url, headers=bearer(bob[0])).status_code == 403

        response = client.patch(
            f"/api/users/{bob[1]['user_id']}/role",
            json={"role": "admin"},
            headers=bearer(admin[0]),
        )
        assert response.status_code == 200
        assert response.json()["user"]["role"] == "admin"

        # Bob's token predates the promotion
        assert client.delete(url, headers=bearer(bob[0])).status_code == 200

    def test_admin_cannot_demote_self(self, client, admin):
        response = client.patch(
            f"/api/users/{admin[1]['user_id']}/role",
            json={"role": "user"},
            headers=bearer(admin[0]),
        )
        assert response.status_code == 403
        me = client.get("/api/auth/me", headers=bearer(admin[0])).json()["user"]
        assert me["role"] == "admin"

    def test_non_admin_cannot_assign_roles(self, client, alice):
        response = client.patch(
            f"/api/users/{alice[1]['user_id']}/role",
            json={"role": "admin"},
            headers=bearer(alice[0]),
        )
        assert response.status_code == 403
        assert client.get("/api/auth/me", headers=bearer(alice[0])).json()["user"]["role"] == "user"

    def test_unknown_user(self, client, admin):
        response = client.patch(
            "/api/users/no-such-user/role", json={"role": "admin"}, headers=bearer(admin[0])
        )
        assert response.status_code == 404

    def test_unknown_role(self, client, alice, admin):
        response = client.patch(
            f"/api/users/{alice[1]['user_id']}/role",
            json={"role": "superuser"},
            headers=bearer(admin[0]),
        )
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "role"


class TestUserManager:
    def test_ensure_admin_is_idempotent(self, user_manager):
        first = user_manager.ensure_admin("Root", "Root@Example.com", "rootpw1")
        second = user_manager.ensure_admin("Root", "root@example.com", "different")
        assert first.user_id == second.user_id
        assert second.role == "admin"
        assert len(user_manager.list_users()) == 1
        assert user_manager.verify_password("rootpw1", second.password_hash)

    def test_ensure_admin_promotes_existing_account(self, user_manager):
        user = user_manager.create_user("Carol", "carol@example.com", "secret1")
        promoted = user_manager.ensure_admin("Carol", "carol@example.com", "ignored")
        assert promoted.user_id == user.user_id
        assert promoted.role == "admin"

    def test_update_role_unknown_user(self, user_manager):
        with pytest.raises(AccountNotFoundError):
            user_manager.update_role("missing", "admin", changed_by="tests")

    def test_malformed_hash_never_verifies(self, user_manager):
        assert user_manager.verify_password("secret1", "not-a-bcrypt-hash") is False
