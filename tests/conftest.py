"""
Test Configuration

Pytest configuration and fixtures for the test suite.
"""

import random
from datetime import datetime, timedelta, timezone
from typing import Generator, List

import pytest
from fastapi.testclient import TestClient

from pr_reviewer.config import Settings
from pr_reviewer.main import create_app
from pr_reviewer.models import PRStatus, PullRequest, TeamMember
from pr_reviewer.services import PRService, TeamService, UserService
from pr_reviewer.storage import MemoryStorage

ADMIN_TOKEN = "test-admin-token"
USER_TOKEN = "test-user-token"

BASE_TIME = datetime(2025, 1, 15, 10, 0, tzinfo=timezone.utc)


class FirstChoiceRandom:
    """Random source stub: never shuffles, always picks the first element."""

    def shuffle(self, x) -> None:
        pass

    def choice(self, seq):
        return seq[0]


class LastChoiceRandom:
    """Random source stub: reverses on shuffle, picks the last element."""

    def shuffle(self, x) -> None:
        x.reverse()

    def choice(self, seq):
        return seq[-1]


@pytest.fixture
def first_choice_rng() -> FirstChoiceRandom:
    return FirstChoiceRandom()


@pytest.fixture
def last_choice_rng() -> LastChoiceRandom:
    return LastChoiceRandom()


@pytest.fixture
def settings() -> Settings:
    """Settings with known tokens and in-memory storage."""
    return Settings(
        admin_token=ADMIN_TOKEN,
        user_token=USER_TOKEN,
        storage_backend="memory",
        log_json_format=False,
    )


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def team_service(storage) -> TeamService:
    return TeamService(storage)


@pytest.fixture
def user_service(storage) -> UserService:
    return UserService(storage)


@pytest.fixture
def pr_service(storage) -> PRService:
    """PR service with a seeded random source."""
    return PRService(storage, rng=random.Random(42))


@pytest.fixture
def make_team(team_service):
    """Create a team from user ids; usernames are the upper-cased ids."""
    def _make(team_name: str, *user_ids: str, inactive=()):
        members = [
            TeamMember(user_id=u, username=u.upper(), is_active=u not in inactive)
            for u in user_ids
        ]
        return team_service.create_team(team_name, members)
    return _make


@pytest.fixture
def make_pr(storage):
    """Insert a PR with an exact reviewer list, bypassing random assignment."""
    counter = {"n": 0}

    def _make(pr_id: str, author_id: str, reviewers: List[str], merged: bool = False):
        counter["n"] += 1
        created_at = BASE_TIME + timedelta(minutes=counter["n"])
        pr = PullRequest(
            pull_request_id=pr_id,
            pull_request_name=f"PR {pr_id}",
            author_id=author_id,
            status=PRStatus.MERGED if merged else PRStatus.OPEN,
            created_at=created_at,
            merged_at=created_at if merged else None,
        )
        with storage.transaction() as repo:
            repo.create_pr(pr, reviewers)
        return pr
    return _make


@pytest.fixture
def reviewers_of(storage):
    """Read the current reviewer list of a PR."""
    def _read(pr_id: str) -> List[str]:
        with storage.transaction() as repo:
            return repo.get_pr_reviewers(pr_id)
    return _read


@pytest.fixture
def client(settings, storage) -> Generator[TestClient, None, None]:
    """Create a test client over a fresh in-memory storage."""
    app = create_app(settings=settings, storage=storage, rng=random.Random(7))
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def admin_headers() -> dict:
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}


@pytest.fixture
def user_headers() -> dict:
    return {"Authorization": f"Bearer {USER_TOKEN}"}


@pytest.fixture
def sample_team_payload() -> dict:
    """Team with three active members."""
    return {
        "team_name": "backend",
        "members": [
            {"user_id": "u1", "username": "Alice", "is_active": True},
            {"user_id": "u2", "username": "Bob", "is_active": True},
            {"user_id": "u3", "username": "Charlie", "is_active": True},
        ]
    }
