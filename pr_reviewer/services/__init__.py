"""
Services Package

This package contains the reviewer assignment engine:
- selector: candidate pool computation and pick helpers
- pr_service: PR creation (assignment), merge, status, reassignment
- team_service: teams and mass deactivation
- reconciler: pure planning of mass-deactivation swaps
- user_service: activity flag and review listings
- stats_service: assignment statistics
"""

from dataclasses import dataclass
from typing import Optional

from pr_reviewer.config import Settings
from pr_reviewer.services.pr_service import PRService
from pr_reviewer.services.selector import RandomSource
from pr_reviewer.services.stats_service import StatsService
from pr_reviewer.services.team_service import TeamService
from pr_reviewer.services.user_service import UserService
from pr_reviewer.storage.base import Storage


@dataclass
class Services:
    """All services sharing one storage backend."""
    teams: TeamService
    users: UserService
    pull_requests: PRService
    stats: StatsService


def build_services(
    storage: Storage,
    settings: Settings,
    rng: Optional[RandomSource] = None,
) -> Services:
    """Wire every service to ``storage``."""
    return Services(
        teams=TeamService(storage),
        users=UserService(storage),
        pull_requests=PRService(storage, rng=rng, reviewers_per_pr=settings.reviewers_per_pr),
        stats=StatsService(storage),
    )


__all__ = [
    "build_services",
    "Services",
    "PRService",
    "TeamService",
    "UserService",
    "StatsService",
]
