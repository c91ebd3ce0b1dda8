"""Storage port.

The services depend on ``Storage`` and ``Repository`` only, never on a
concrete backend, so the in-memory and SQL backends are interchangeable.

A ``Storage`` hands out transactional scopes::

    with storage.transaction() as repo:
        pr, reviewers = repo.get_pr_with_reviewers("pr-1")
        ...

Every call made on ``repo`` inside the ``with`` block commits together when
the block exits normally, and is rolled back when any exception escapes it.
A ``Repository`` must not be used after its scope has closed.

Backends raise the domain errors of ``pr_reviewer.errors`` for absent or
duplicate records and ``StorageError`` for anything unexpected.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from pr_reviewer.models import PullRequest, ReassignmentRecord, Team, User


class Repository(ABC):
    """Record-level operations valid inside one transactional scope."""

    # Teams

    @abstractmethod
    def team_exists(self, team_name: str) -> bool:
        ...

    @abstractmethod
    def create_team(self, team_name: str, members: List[User]) -> None:
        """Create the team and upsert its members into it.

        Raises TeamAlreadyExists if the team is already present.
        """

    @abstractmethod
    def get_team(self, team_name: str) -> Team:
        """Return the team with its members; raises TeamNotFound."""

    # Users

    @abstractmethod
    def get_user(self, user_id: str) -> User:
        """Raises UserNotFound."""

    @abstractmethod
    def set_user_active(self, user_id: str, is_active: bool) -> None:
        """Raises UserNotFound."""

    @abstractmethod
    def deactivate_users(self, user_ids: Iterable[str]) -> None:
        """Clear the activity flag of every listed user that exists."""

    @abstractmethod
    def get_active_team_members(
        self, team_name: str, exclude_user_id: Optional[str] = None
    ) -> List[User]:
        """Active members of a team ordered by user id, minus ``exclude_user_id``."""

    # Pull requests

    @abstractmethod
    def pr_exists(self, pr_id: str) -> bool:
        ...

    @abstractmethod
    def create_pr(self, pr: PullRequest, reviewer_ids: List[str]) -> None:
        """Raises PRAlreadyExists."""

    @abstractmethod
    def get_pr(self, pr_id: str) -> PullRequest:
        """Raises PRNotFound."""

    @abstractmethod
    def get_pr_with_reviewers(self, pr_id: str) -> Tuple[PullRequest, List[str]]:
        """PR and its reviewer ids; raises PRNotFound.

        Backends that support row locks lock the PR for the rest of the scope,
        so concurrent reviewer changes on the same PR are serialized.
        """

    @abstractmethod
    def merge_pr(self, pr_id: str, merged_at: datetime) -> None:
        """Raises PRNotFound."""

    # Reviewer assignments

    @abstractmethod
    def get_pr_reviewers(self, pr_id: str) -> List[str]:
        ...

    @abstractmethod
    def is_reviewer_assigned(self, pr_id: str, user_id: str) -> bool:
        ...

    @abstractmethod
    def add_reviewer(self, pr_id: str, user_id: str) -> None:
        ...

    @abstractmethod
    def remove_reviewer(self, pr_id: str, user_id: str) -> None:
        ...

    @abstractmethod
    def get_user_reviews(self, user_id: str) -> List[PullRequest]:
        """PRs of any status where the user is an assigned reviewer."""

    @abstractmethod
    def get_open_prs_with_reviewers(
        self, reviewer_ids: Iterable[str]
    ) -> Tuple[List[PullRequest], Dict[str, List[str]]]:
        """OPEN PRs reviewed by any of ``reviewer_ids`` and every such PR's reviewers.

        PRs are ordered by creation time, then id.
        """

    @abstractmethod
    def bulk_reassign_reviewers(self, records: Iterable[ReassignmentRecord]) -> None:
        """Apply each swap: drop the old reviewer, add the new one if given and absent."""

    # Statistics

    @abstractmethod
    def get_assignment_stats(self) -> Dict[str, int]:
        """Reviewer id -> number of PRs the user is assigned to."""


class Storage(ABC):
    """Factory of transactional scopes over one backend."""

    @abstractmethod
    def transaction(self) -> AbstractContextManager[Repository]:
        """Open a scope whose writes commit together or not at all."""

    def close(self) -> None:
        """Release any resources held by the storage (connections, pools).

        Default is a no-op so callers can always call close() safely.
        """
