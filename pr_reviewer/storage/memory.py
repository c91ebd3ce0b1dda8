"""MemoryStorage: process-local backend for tests and single-instance runs.

Isolation model: one re-entrant lock is held for the whole lifetime of a
transactional scope, so scopes are fully serialized. Rollback restores a
snapshot of the state taken when the scope was opened.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from pr_reviewer.errors import (
    PRAlreadyExists,
    PRNotFound,
    TeamAlreadyExists,
    TeamNotFound,
    UserNotFound,
)
from pr_reviewer.logging_config import get_logger
from pr_reviewer.models import PRStatus, PullRequest, ReassignmentRecord, Team, User
from pr_reviewer.storage.base import Repository, Storage

logger = get_logger(__name__)


@dataclass
class _State:
    teams: List[str] = field(default_factory=list)
    users: Dict[str, User] = field(default_factory=dict)
    prs: Dict[str, PullRequest] = field(default_factory=dict)
    reviewers: Dict[str, List[str]] = field(default_factory=dict)

    def clone(self) -> "_State":
        return _State(
            teams=list(self.teams),
            users={uid: u.model_copy() for uid, u in self.users.items()},
            prs={pid: pr.model_copy() for pid, pr in self.prs.items()},
            reviewers={pid: list(revs) for pid, revs in self.reviewers.items()},
        )

    def restore(self, snapshot: "_State") -> None:
        self.teams = snapshot.teams
        self.users = snapshot.users
        self.prs = snapshot.prs
        self.reviewers = snapshot.reviewers


_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _pr_sort_key(pr: PullRequest):
    return (pr.created_at or _EPOCH, pr.pull_request_id)


class MemoryRepository(Repository):
    """Repository view over the live state; only valid while its lock is held."""

    def __init__(self, state: _State):
        self._state = state

    # Teams

    def team_exists(self, team_name: str) -> bool:
        return team_name in self._state.teams

    def create_team(self, team_name: str, members: List[User]) -> None:
        if team_name in self._state.teams:
            raise TeamAlreadyExists()

        self._state.teams.append(team_name)
        for member in members:
            self._state.users[member.user_id] = member.model_copy(update={"team_name": team_name})

    def get_team(self, team_name: str) -> Team:
        if team_name not in self._state.teams:
            raise TeamNotFound()

        members = sorted(
            (u.model_copy() for u in self._state.users.values() if u.team_name == team_name),
            key=lambda u: u.user_id,
        )
        return Team(team_name=team_name, members=members)

    # Users

    def get_user(self, user_id: str) -> User:
        user = self._state.users.get(user_id)
        if user is None:
            raise UserNotFound()
        return user.model_copy()

    def set_user_active(self, user_id: str, is_active: bool) -> None:
        user = self._state.users.get(user_id)
        if user is None:
            raise UserNotFound()
        user.is_active = is_active

    def deactivate_users(self, user_ids: Iterable[str]) -> None:
        for user_id in user_ids:
            user = self._state.users.get(user_id)
            if user is not None:
                user.is_active = False

    def get_active_team_members(
        self, team_name: str, exclude_user_id: Optional[str] = None
    ) -> List[User]:
        members = [
            u.model_copy()
            for u in self._state.users.values()
            if u.team_name == team_name and u.is_active and u.user_id != exclude_user_id
        ]
        return sorted(members, key=lambda u: u.user_id)

    # Pull requests

    def pr_exists(self, pr_id: str) -> bool:
        return pr_id in self._state.prs

    def create_pr(self, pr: PullRequest, reviewer_ids: List[str]) -> None:
        if pr.pull_request_id in self._state.prs:
            raise PRAlreadyExists()

        self._state.prs[pr.pull_request_id] = pr.model_copy()
        self._state.reviewers[pr.pull_request_id] = list(dict.fromkeys(reviewer_ids))

    def get_pr(self, pr_id: str) -> PullRequest:
        pr = self._state.prs.get(pr_id)
        if pr is None:
            raise PRNotFound()
        return pr.model_copy()

    def get_pr_with_reviewers(self, pr_id: str) -> Tuple[PullRequest, List[str]]:
        return self.get_pr(pr_id), self.get_pr_reviewers(pr_id)

    def merge_pr(self, pr_id: str, merged_at: datetime) -> None:
        pr = self._state.prs.get(pr_id)
        if pr is None:
            raise PRNotFound()
        pr.status = PRStatus.MERGED
        pr.merged_at = merged_at

    # Reviewer assignments

    def get_pr_reviewers(self, pr_id: str) -> List[str]:
        return list(self._state.reviewers.get(pr_id, []))

    def is_reviewer_assigned(self, pr_id: str, user_id: str) -> bool:
        return user_id in self._state.reviewers.get(pr_id, [])

    def add_reviewer(self, pr_id: str, user_id: str) -> None:
        reviewers = self._state.reviewers.setdefault(pr_id, [])
        if user_id not in reviewers:
            reviewers.append(user_id)

    def remove_reviewer(self, pr_id: str, user_id: str) -> None:
        reviewers = self._state.reviewers.get(pr_id, [])
        if user_id in reviewers:
            reviewers.remove(user_id)

    def get_user_reviews(self, user_id: str) -> List[PullRequest]:
        prs = [
            self._state.prs[pr_id].model_copy()
            for pr_id, reviewers in self._state.reviewers.items()
            if user_id in reviewers and pr_id in self._state.prs
        ]
        return sorted(prs, key=_pr_sort_key)

    def get_open_prs_with_reviewers(
        self, reviewer_ids: Iterable[str]
    ) -> Tuple[List[PullRequest], Dict[str, List[str]]]:
        wanted = set(reviewer_ids)
        affected: List[PullRequest] = []
        reviewers_map: Dict[str, List[str]] = {}

        for pr_id, pr in self._state.prs.items():
            if pr.status != PRStatus.OPEN:
                continue
            reviewers = self._state.reviewers.get(pr_id, [])
            if wanted.intersection(reviewers):
                affected.append(pr.model_copy())
                reviewers_map[pr_id] = list(reviewers)

        affected.sort(key=_pr_sort_key)
        return affected, reviewers_map

    def bulk_reassign_reviewers(self, records: Iterable[ReassignmentRecord]) -> None:
        for record in records:
            self.remove_reviewer(record.pull_request_id, record.old_reviewer_id)
            if record.new_reviewer_id:
                self.add_reviewer(record.pull_request_id, record.new_reviewer_id)

    # Statistics

    def get_assignment_stats(self) -> Dict[str, int]:
        stats: Dict[str, int] = {}
        for reviewers in self._state.reviewers.values():
            for reviewer_id in reviewers:
                stats[reviewer_id] = stats.get(reviewer_id, 0) + 1
        return stats


class MemoryStorage(Storage):
    """In-memory storage with serialized, all-or-nothing transactional scopes.

    Usage:
        storage = MemoryStorage()
        with storage.transaction() as repo:
            repo.create_team("backend", members)
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._state = _State()

    @contextmanager
    def transaction(self) -> Iterator[Repository]:
        with self._lock:
            snapshot = self._state.clone()
            try:
                yield MemoryRepository(self._state)
            except BaseException:
                logger.debug("Rolling back in-memory transaction")
                self._state.restore(snapshot)
                raise
