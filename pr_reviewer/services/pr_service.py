"""
Pull Request Service

Owns the PR lifecycle and the two randomized reviewer engines:

- Assignment: on creation, up to ``reviewers_per_pr`` active teammates of
  the author are drawn uniformly at random (never the author).
- Reassignment: one reviewer of an OPEN PR is replaced by a random active
  member of that reviewer's team who is neither the author nor already
  assigned. When nobody qualifies the PR is left untouched.

Each operation re-reads the current state inside its own transactional
scope; nothing read in one call is trusted in the next.
"""

import random
from typing import Optional

from pr_reviewer.errors import NoActiveCandidate, PRAlreadyExists, PRMerged, ReviewerNotAssigned
from pr_reviewer.logging_config import get_logger
from pr_reviewer.models import PRStatus, PullRequest, PullRequestResponse, ReassignResponse
from pr_reviewer.services.base import BaseService, utcnow
from pr_reviewer.services.selector import RandomSource, eligible_reviewers, pick_random
from pr_reviewer.storage.base import Storage

logger = get_logger(__name__)

DEFAULT_REVIEWERS_PER_PR = 2


class PRService(BaseService):
    """
    Creates, merges and re-staffs pull requests.

    Usage:
        service = PRService(storage, rng=random.Random(42))
        pr = service.create_pr("pr-1", "Add search", "u1")
        result = service.reassign_reviewer("pr-1", pr.assigned_reviewers[0])
    """

    def __init__(
        self,
        storage: Storage,
        rng: Optional[RandomSource] = None,
        reviewers_per_pr: int = DEFAULT_REVIEWERS_PER_PR,
    ):
        super().__init__(storage)
        self._rng = rng if rng is not None else random.Random()
        self._reviewers_per_pr = reviewers_per_pr

    def create_pr(self, pr_id: str, name: str, author_id: str) -> PullRequestResponse:
        """
        Create an OPEN PR and assign its initial reviewers.

        Args:
            pr_id: New, unique PR identifier
            name: Display name
            author_id: Existing user authoring the PR

        Returns:
            The created PR with its reviewer list

        Raises:
            PRAlreadyExists: If ``pr_id`` is taken
            UserNotFound: If the author does not exist
        """
        with self._transaction("create_pr", pr_id=pr_id, author_id=author_id) as repo:
            if repo.pr_exists(pr_id):
                raise PRAlreadyExists()

            author = repo.get_user(author_id)
            candidates = eligible_reviewers(repo, author.team_name, exclude_ids={author_id})
            reviewer_ids = [
                u.user_id for u in pick_random(candidates, self._reviewers_per_pr, self._rng)
            ]

            pr = PullRequest(
                pull_request_id=pr_id,
                pull_request_name=name,
                author_id=author_id,
                status=PRStatus.OPEN,
                created_at=utcnow(),
            )
            repo.create_pr(pr, reviewer_ids)

        logger.info(
            "PR created",
            pr_id=pr_id,
            author_id=author_id,
            team_name=author.team_name,
            reviewers=reviewer_ids
        )
        return PullRequestResponse.from_pr(pr, reviewer_ids)

    def merge_pr(self, pr_id: str) -> PullRequestResponse:
        """
        Mark a PR as MERGED. Merging an already merged PR returns it unchanged.

        Raises:
            PRNotFound: If the PR does not exist
        """
        with self._transaction("merge_pr", pr_id=pr_id) as repo:
            pr, reviewers = repo.get_pr_with_reviewers(pr_id)
            if pr.is_merged:
                return PullRequestResponse.from_pr(pr, reviewers)

            repo.merge_pr(pr_id, utcnow())
            pr, reviewers = repo.get_pr_with_reviewers(pr_id)

        logger.info("PR merged", pr_id=pr_id)
        return PullRequestResponse.from_pr(pr, reviewers)

    def get_pr(self, pr_id: str) -> PullRequestResponse:
        """Current status and reviewers of a PR; raises PRNotFound."""
        with self._transaction("get_pr", pr_id=pr_id) as repo:
            pr, reviewers = repo.get_pr_with_reviewers(pr_id)
        return PullRequestResponse.from_pr(pr, reviewers)

    def reassign_reviewer(self, pr_id: str, old_reviewer_id: str) -> ReassignResponse:
        """
        Replace one reviewer of an open PR with a random eligible teammate.

        Preconditions are checked in order: the PR exists, it is not merged,
        and ``old_reviewer_id`` is currently assigned to it.

        Raises:
            PRNotFound: If the PR does not exist
            PRMerged: If the PR is merged (never retry)
            ReviewerNotAssigned: If the user is not a reviewer of the PR
            NoActiveCandidate: If nobody can take over; nothing is changed
        """
        with self._transaction(
            "reassign_reviewer", pr_id=pr_id, old_reviewer_id=old_reviewer_id
        ) as repo:
            pr, reviewers = repo.get_pr_with_reviewers(pr_id)

            if pr.is_merged:
                raise PRMerged()

            if not repo.is_reviewer_assigned(pr_id, old_reviewer_id):
                raise ReviewerNotAssigned()

            old_reviewer = repo.get_user(old_reviewer_id)
            candidates = eligible_reviewers(
                repo,
                old_reviewer.team_name,
                exclude_ids={pr.author_id, old_reviewer_id, *reviewers},
            )
            if not candidates:
                raise NoActiveCandidate()

            new_reviewer = self._rng.choice(candidates)

            repo.remove_reviewer(pr_id, old_reviewer_id)
            repo.add_reviewer(pr_id, new_reviewer.user_id)

            updated_pr, updated_reviewers = repo.get_pr_with_reviewers(pr_id)

        logger.info(
            "Reviewer reassigned",
            pr_id=pr_id,
            old_reviewer_id=old_reviewer_id,
            new_reviewer_id=new_reviewer.user_id
        )
        return ReassignResponse(
            pr=PullRequestResponse.from_pr(updated_pr, updated_reviewers),
            replaced_by=new_reviewer.user_id,
        )
