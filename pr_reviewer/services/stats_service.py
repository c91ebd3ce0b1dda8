"""Assignment statistics."""

from pr_reviewer.models import AssignmentStatsResponse
from pr_reviewer.services.base import BaseService


class StatsService(BaseService):

    def get_assignment_stats(self) -> AssignmentStatsResponse:
        """Number of PRs each reviewer is currently assigned to."""
        with self._transaction("get_assignment_stats") as repo:
            stats = repo.get_assignment_stats()
        return AssignmentStatsResponse(reviewer_assignments=stats)
