"""
Tests for the HTTP API

Tests the endpoints, the error envelope and token authentication.
"""

from fastapi.testclient import TestClient

from pr_reviewer.errors import StorageError
from pr_reviewer.storage.memory import MemoryRepository


def _create_team(client: TestClient, payload: dict) -> None:
    response = client.post("/team/add", json=payload)
    assert response.status_code == 201


def _create_pr(client: TestClient, headers: dict, pr_id: str = "pr-1", author_id: str = "u1"):
    return client.post(
        "/pullRequest/create",
        json={"pull_request_id": pr_id, "pull_request_name": "Add search", "author_id": author_id},
        headers=headers,
    )


class TestHealth:
    """Test suite for service-level endpoints."""

    def test_health_check(self, client: TestClient):
        """Test the health check endpoint."""
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_stats(self, client: TestClient, sample_team_payload: dict, admin_headers: dict):
        """Test reviewer assignment counts."""
        _create_team(client, sample_team_payload)
        _create_pr(client, admin_headers)

        response = client.get("/stats")

        assert response.status_code == 200
        assert response.json()["reviewer_assignments"] == {"u2": 1, "u3": 1}


class TestAuthentication:
    """Test suite for bearer-token checks."""

    def test_missing_token(self, client: TestClient, sample_team_payload: dict):
        """Test a protected route without an Authorization header."""
        _create_team(client, sample_team_payload)

        response = client.get("/team/get", params={"team_name": "backend"})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    def test_invalid_token(self, client: TestClient):
        """Test a protected route with an unknown token."""
        response = client.get(
            "/team/get",
            params={"team_name": "backend"},
            headers={"Authorization": "Bearer nope"}
        )

        assert response.status_code == 401

    def test_user_token_rejected_on_admin_route(self, client: TestClient, user_headers: dict):
        """Test that the user token cannot create PRs."""
        response = _create_pr(client, user_headers)

        assert response.status_code == 401

    def test_admin_token_accepted_on_user_route(
        self, client: TestClient, sample_team_payload: dict, admin_headers: dict
    ):
        """Test that the admin token also unlocks read-only routes."""
        _create_team(client, sample_team_payload)

        response = client.get("/team/get", params={"team_name": "backend"}, headers=admin_headers)

        assert response.status_code == 200

    def test_bare_token(self, client: TestClient, sample_team_payload: dict):
        """Test a token sent without the Bearer prefix."""
        _create_team(client, sample_team_payload)

        response = client.get(
            "/team/get",
            params={"team_name": "backend"},
            headers={"Authorization": "test-user-token"}
        )

        assert response.status_code == 200


class TestTeamEndpoints:
    """Test suite for /team routes."""

    def test_create_team(self, client: TestClient, sample_team_payload: dict):
        """Test team creation."""
        response = client.post("/team/add", json=sample_team_payload)

        assert response.status_code == 201
        team = response.json()["team"]
        assert team["team_name"] == "backend"
        assert [m["user_id"] for m in team["members"]] == ["u1", "u2", "u3"]

    def test_create_team_twice(self, client: TestClient, sample_team_payload: dict):
        """Test that a duplicate team is rejected with TEAM_EXISTS."""
        _create_team(client, sample_team_payload)

        response = client.post("/team/add", json=sample_team_payload)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "TEAM_EXISTS"

    def test_get_team(self, client: TestClient, sample_team_payload: dict, user_headers: dict):
        """Test team lookup."""
        _create_team(client, sample_team_payload)

        response = client.get("/team/get", params={"team_name": "backend"}, headers=user_headers)

        assert response.status_code == 200
        assert response.json()["members"][1] == {
            "user_id": "u2", "username": "Bob", "is_active": True
        }

    def test_get_unknown_team(self, client: TestClient, user_headers: dict):
        """Test team lookup of a missing team."""
        response = client.get("/team/get", params={"team_name": "ghost"}, headers=user_headers)

        assert response.status_code == 404
        assert response.json() == {"error": {"code": "NOT_FOUND", "message": "team not found"}}

    def test_deactivate_users(
        self, client: TestClient, sample_team_payload: dict, admin_headers: dict
    ):
        """Test mass deactivation re-staffing an open PR."""
        _create_team(client, sample_team_payload)
        _create_pr(client, admin_headers)

        response = client.post(
            "/team/deactivateUsers",
            json={"team_name": "backend", "user_ids": ["u2", "u3"]},
            headers=admin_headers
        )

        assert response.status_code == 200
        data = response.json()
        assert data["deactivated_users"] == ["u2", "u3"]
        assert data["reassigned_prs"][0]["pull_request_id"] == "pr-1"
        assert data["reassigned_prs"][0]["new_reviewers"] == []

    def test_deactivate_no_valid_users(
        self, client: TestClient, sample_team_payload: dict, admin_headers: dict
    ):
        """Test that a batch with no team members is a BAD_REQUEST."""
        _create_team(client, sample_team_payload)

        response = client.post(
            "/team/deactivateUsers",
            json={"team_name": "backend", "user_ids": ["ghost"]},
            headers=admin_headers
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "BAD_REQUEST"


class TestUserEndpoints:
    """Test suite for /users routes."""

    def test_set_is_active(self, client: TestClient, sample_team_payload: dict, admin_headers: dict):
        """Test toggling a user's activity flag."""
        _create_team(client, sample_team_payload)

        response = client.post(
            "/users/setIsActive",
            json={"user_id": "u2", "is_active": False},
            headers=admin_headers
        )

        assert response.status_code == 200
        assert response.json()["user"] == {
            "user_id": "u2", "username": "Bob", "team_name": "backend", "is_active": False
        }

    def test_set_is_active_unknown(self, client: TestClient, admin_headers: dict):
        """Test toggling a missing user."""
        response = client.post(
            "/users/setIsActive",
            json={"user_id": "ghost", "is_active": False},
            headers=admin_headers
        )

        assert response.status_code == 404

    def test_get_review(
        self, client: TestClient, sample_team_payload: dict, admin_headers: dict, user_headers: dict
    ):
        """Test listing the PRs a user reviews."""
        _create_team(client, sample_team_payload)
        _create_pr(client, admin_headers)

        response = client.get("/users/getReview", params={"user_id": "u2"}, headers=user_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["user_id"] == "u2"
        assert data["pull_requests"] == [{
            "pull_request_id": "pr-1",
            "pull_request_name": "Add search",
            "author_id": "u1",
            "status": "OPEN",
        }]


class TestPullRequestEndpoints:
    """Test suite for /pullRequest routes."""

    def test_create(self, client: TestClient, sample_team_payload: dict, admin_headers: dict):
        """Test PR creation assigns both teammates."""
        _create_team(client, sample_team_payload)

        response = _create_pr(client, admin_headers)

        assert response.status_code == 201
        pr = response.json()["pr"]
        assert pr["status"] == "OPEN"
        assert sorted(pr["assigned_reviewers"]) == ["u2", "u3"]
        assert "createdAt" in pr
        assert "mergedAt" not in pr

    def test_create_duplicate(
        self, client: TestClient, sample_team_payload: dict, admin_headers: dict
    ):
        """Test that a duplicate PR id is a 409 PR_EXISTS."""
        _create_team(client, sample_team_payload)
        _create_pr(client, admin_headers)

        response = _create_pr(client, admin_headers)

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "PR_EXISTS"

    def test_create_unknown_author(self, client: TestClient, admin_headers: dict):
        """Test PR creation for a missing author."""
        response = _create_pr(client, admin_headers, author_id="ghost")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_create_invalid_body(self, client: TestClient, admin_headers: dict):
        """Test that a missing field is a BAD_REQUEST in the error envelope."""
        response = client.post(
            "/pullRequest/create",
            json={"pull_request_id": "pr-1", "pull_request_name": "Add search"},
            headers=admin_headers
        )

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "BAD_REQUEST"
        assert "author_id" in error["message"]

    def test_merge_twice(self, client: TestClient, sample_team_payload: dict, admin_headers: dict):
        """Test that merging is idempotent."""
        _create_team(client, sample_team_payload)
        _create_pr(client, admin_headers)

        first = client.post(
            "/pullRequest/merge", json={"pull_request_id": "pr-1"}, headers=admin_headers
        )
        second = client.post(
            "/pullRequest/merge", json={"pull_request_id": "pr-1"}, headers=admin_headers
        )

        assert first.status_code == 200
        assert second.status_code == 200
        assert first.json()["pr"]["status"] == "MERGED"
        assert "mergedAt" in first.json()["pr"]
        assert second.json() == first.json()

    def test_reassign(self, client: TestClient, admin_headers: dict):
        """Test replacing a reviewer when a free teammate exists."""
        _create_team(client, {
            "team_name": "backend",
            "members": [
                {"user_id": "u1", "username": "Alice", "is_active": True},
                {"user_id": "u2", "username": "Bob", "is_active": True},
                {"user_id": "u3", "username": "Charlie", "is_active": True},
                {"user_id": "u4", "username": "Dana", "is_active": True},
            ]
        })
        created = _create_pr(client, admin_headers).json()["pr"]
        old = created["assigned_reviewers"][0]
        staying = created["assigned_reviewers"][1]

        response = client.post(
            "/pullRequest/reassign",
            json={"pull_request_id": "pr-1", "old_user_id": old},
            headers=admin_headers
        )

        assert response.status_code == 200
        data = response.json()
        assert data["replaced_by"] not in {"u1", old, staying}
        assert sorted(data["pr"]["assigned_reviewers"]) == sorted([staying, data["replaced_by"]])

    def test_reassign_merged(
        self, client: TestClient, sample_team_payload: dict, admin_headers: dict
    ):
        """Test that reassigning on a merged PR is a 409 PR_MERGED."""
        _create_team(client, sample_team_payload)
        _create_pr(client, admin_headers)
        client.post("/pullRequest/merge", json={"pull_request_id": "pr-1"}, headers=admin_headers)

        response = client.post(
            "/pullRequest/reassign",
            json={"pull_request_id": "pr-1", "old_user_id": "u2"},
            headers=admin_headers
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "PR_MERGED"

    def test_reassign_not_assigned(
        self, client: TestClient, sample_team_payload: dict, admin_headers: dict
    ):
        """Test replacing a user who is not a reviewer."""
        _create_team(client, sample_team_payload)
        _create_pr(client, admin_headers)

        response = client.post(
            "/pullRequest/reassign",
            json={"pull_request_id": "pr-1", "old_user_id": "u1"},
            headers=admin_headers
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "NOT_ASSIGNED"

    def test_reassign_no_candidate(
        self, client: TestClient, sample_team_payload: dict, admin_headers: dict
    ):
        """Test that a team without spare members answers NO_CANDIDATE."""
        _create_team(client, sample_team_payload)
        _create_pr(client, admin_headers)

        response = client.post(
            "/pullRequest/reassign",
            json={"pull_request_id": "pr-1", "old_user_id": "u2"},
            headers=admin_headers
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "NO_CANDIDATE"

    def test_reassign_unknown_pr(self, client: TestClient, admin_headers: dict):
        """Test reassignment on a missing PR."""
        response = client.post(
            "/pullRequest/reassign",
            json={"pull_request_id": "missing", "old_user_id": "u2"},
            headers=admin_headers
        )

        assert response.status_code == 404

    def test_get(
        self, client: TestClient, sample_team_payload: dict, admin_headers: dict, user_headers: dict
    ):
        """Test the PR status query."""
        _create_team(client, sample_team_payload)
        _create_pr(client, admin_headers)

        response = client.get(
            "/pullRequest/get", params={"pull_request_id": "pr-1"}, headers=user_headers
        )

        assert response.status_code == 200
        assert response.json()["pr"]["pull_request_id"] == "pr-1"


class TestErrorHandling:
    """Test suite for the error envelope on storage failures."""

    def test_storage_failure_is_opaque(
        self, client: TestClient, sample_team_payload: dict, admin_headers: dict, monkeypatch
    ):
        """Test that storage errors answer 500 without internal details."""

        _create_team(client, sample_team_payload)

        def fail(self, pr, reviewer_ids):
            raise StorageError("connection reset by peer")

        monkeypatch.setattr(MemoryRepository, "create_pr", fail)

        response = _create_pr(client, admin_headers)

        assert response.status_code == 500
        assert response.json() == {
            "error": {"code": "INTERNAL_ERROR", "message": "internal server error"}
        }
