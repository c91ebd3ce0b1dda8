"""
Team Endpoints

POST /team/add              create a team with its members (no auth)
GET  /team/get              team with members (user token)
POST /team/deactivateUsers  mass deactivation with reviewer reconciliation (admin token)
"""

from fastapi import APIRouter, Depends, Query, status

from pr_reviewer.api.dependencies import get_team_service
from pr_reviewer.api.security import require_admin, require_user
from pr_reviewer.logging_config import get_logger
from pr_reviewer.models import (
    CreateTeamRequest,
    DeactivateTeamUsersRequest,
    DeactivateTeamUsersResponse,
    TeamEnvelope,
    TeamResponse,
)
from pr_reviewer.services import TeamService

logger = get_logger(__name__)

router = APIRouter(prefix="/team", tags=["teams"])


@router.post("/add", status_code=status.HTTP_201_CREATED, response_model=TeamEnvelope)
def create_team(
    body: CreateTeamRequest,
    service: TeamService = Depends(get_team_service),
) -> TeamEnvelope:
    """Create a team; members already known elsewhere are moved into it."""
    logger.debug("Create team request received", team_name=body.team_name)
    return TeamEnvelope(team=service.create_team(body.team_name, body.members))


@router.get("/get", response_model=TeamResponse, dependencies=[Depends(require_user)])
def get_team(
    team_name: str = Query(min_length=1),
    service: TeamService = Depends(get_team_service),
) -> TeamResponse:
    logger.debug("Get team request received", team_name=team_name)
    return service.get_team(team_name)


@router.post(
    "/deactivateUsers",
    response_model=DeactivateTeamUsersResponse,
    dependencies=[Depends(require_admin)],
)
def deactivate_team_users(
    body: DeactivateTeamUsersRequest,
    service: TeamService = Depends(get_team_service),
) -> DeactivateTeamUsersResponse:
    """
    Deactivate users of a team in one atomic step.

    Every open PR they review gets a replacement reviewer where one exists;
    the response lists the deactivated ids and, per affected PR, the old and
    new reviewer lists.
    """
    logger.debug(
        "Deactivate team users request received",
        team_name=body.team_name,
        user_ids=body.user_ids
    )
    return service.deactivate_team_users(body.team_name, body.user_ids)
