"""
Team Service

Team creation and lookup, and mass deactivation of team members with
reconciliation of every open PR they review.

Mass deactivation runs as one transactional scope:
1. validate the requested ids against the team
2. load the open PRs reviewed by the valid ids
3. plan replacements (see ``pr_reviewer.services.reconciler``)
4. apply every swap, then deactivate the users

If anything fails, no swap and no deactivation takes effect.
"""

from typing import Dict, Sequence

from pr_reviewer.errors import BadRequest, UserNotFound
from pr_reviewer.logging_config import get_logger
from pr_reviewer.models import DeactivateTeamUsersResponse, TeamMember, TeamResponse, User
from pr_reviewer.services.base import BaseService
from pr_reviewer.services.reconciler import group_teams, plan_deactivation
from pr_reviewer.storage.base import Repository

logger = get_logger(__name__)


class TeamService(BaseService):
    """
    Manages teams and reconciles reviewer assignments on mass deactivation.

    Usage:
        service = TeamService(storage)
        service.create_team("backend", members)
        result = service.deactivate_team_users("backend", ["u2", "u3"])
    """

    def create_team(self, team_name: str, members: Sequence[TeamMember]) -> TeamResponse:
        """
        Create a team seeded with its members.

        Members that already exist in another team are moved into this one.

        Raises:
            TeamAlreadyExists: If the team is already present
        """
        users = [
            User(user_id=m.user_id, username=m.username, team_name=team_name, is_active=m.is_active)
            for m in members
        ]

        with self._transaction("create_team", team_name=team_name) as repo:
            repo.create_team(team_name, users)
            team = repo.get_team(team_name)

        logger.info("Team created", team_name=team_name, num_members=len(team.members))
        return TeamResponse.from_team(team)

    def get_team(self, team_name: str) -> TeamResponse:
        """Team with its members; raises TeamNotFound."""
        with self._transaction("get_team", team_name=team_name) as repo:
            team = repo.get_team(team_name)
        return TeamResponse.from_team(team)

    def deactivate_team_users(
        self, team_name: str, user_ids: Sequence[str]
    ) -> DeactivateTeamUsersResponse:
        """
        Deactivate users of a team and re-staff the open PRs they review.

        Ids that do not exist or belong to another team are ignored.

        Raises:
            TeamNotFound: If the team does not exist
            BadRequest: If no requested id is a member of the team
        """
        with self._transaction(
            "deactivate_team_users", team_name=team_name, requested=len(user_ids)
        ) as repo:
            users = self._valid_team_users(repo, team_name, user_ids)
            deactivating = set(users)

            prs, reviewers_map = repo.get_open_prs_with_reviewers(list(users))

            reviewer_teams = group_teams(users)
            active_by_team = {
                team: repo.get_active_team_members(team)
                for team in set(reviewer_teams.values())
            }

            plan = plan_deactivation(
                prs, reviewers_map, deactivating, reviewer_teams, active_by_team
            )

            if plan.reassignments:
                repo.bulk_reassign_reviewers(plan.reassignments)
            repo.deactivate_users(list(users))

        logger.info(
            "Team users deactivated",
            team_name=team_name,
            deactivated=list(users),
            affected_prs=len(plan.summaries),
            dropped_reviewers=sum(1 for r in plan.reassignments if r.new_reviewer_id is None)
        )
        return DeactivateTeamUsersResponse(
            deactivated_users=list(users),
            reassigned_prs=plan.summaries,
        )

    @staticmethod
    def _valid_team_users(
        repo: Repository, team_name: str, user_ids: Sequence[str]
    ) -> Dict[str, User]:
        """Requested users that exist and belong to the team, in request order."""
        repo.get_team(team_name)

        valid: Dict[str, User] = {}
        for user_id in user_ids:
            if user_id in valid:
                continue
            try:
                user = repo.get_user(user_id)
            except UserNotFound:
                continue
            if user.team_name == team_name:
                valid[user_id] = user

        if not valid:
            raise BadRequest("no valid users to deactivate")
        return valid
