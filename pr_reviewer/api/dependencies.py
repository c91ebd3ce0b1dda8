"""FastAPI dependencies resolving the services attached to the app."""

from fastapi import Request

from pr_reviewer.services import PRService, StatsService, TeamService, UserService


def get_team_service(request: Request) -> TeamService:
    return request.app.state.services.teams


def get_user_service(request: Request) -> UserService:
    return request.app.state.services.users


def get_pr_service(request: Request) -> PRService:
    return request.app.state.services.pull_requests


def get_stats_service(request: Request) -> StatsService:
    return request.app.state.services.stats
