"""
Data Models Module

This module defines all Pydantic models used throughout the application.
Strong typing ensures data integrity and provides clear contracts between components.

Design Decisions:
- Use Pydantic models for domain records and for API payloads
- Strict validation to fail fast on invalid data (empty ids are rejected)
- Clear separation between domain records, reconciliation records and API schemas
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Enums
# =============================================================================

class PRStatus(str, Enum):
    """Pull request lifecycle states. MERGED is terminal."""
    OPEN = "OPEN"
    MERGED = "MERGED"


# =============================================================================
# Domain Records
# =============================================================================

class User(BaseModel):
    """A team member that can author PRs and review them."""
    user_id: str
    username: str
    team_name: str
    is_active: bool = True


class Team(BaseModel):
    """A team together with its members."""
    team_name: str
    members: List[User] = []


class PullRequest(BaseModel):
    """
    Pull request record.

    The reviewer set is stored separately (see ``Repository.get_pr_with_reviewers``).
    """
    pull_request_id: str
    pull_request_name: str
    author_id: str
    status: PRStatus = PRStatus.OPEN
    created_at: Optional[datetime] = None
    merged_at: Optional[datetime] = None

    @property
    def is_merged(self) -> bool:
        return self.status == PRStatus.MERGED


class ReassignmentRecord(BaseModel):
    """
    One planned reviewer swap produced by mass deactivation.

    ``new_reviewer_id`` is None when no eligible replacement exists and the
    old reviewer is simply dropped.
    """
    pull_request_id: str
    old_reviewer_id: str
    new_reviewer_id: Optional[str] = None


class PRReassignmentSummary(BaseModel):
    """Per-PR outcome of a mass deactivation."""
    pull_request_id: str
    old_reviewers: List[str] = Field(description="Reviewers removed from the PR")
    new_reviewers: List[str] = Field(description="Full reviewer list after the swap")


# =============================================================================
# API Requests
# =============================================================================

class TeamMember(BaseModel):
    """Team member as exchanged over the API (team name is implied)."""
    user_id: str = Field(min_length=1)
    username: str = Field(min_length=1)
    is_active: bool = True


class CreateTeamRequest(BaseModel):
    team_name: str = Field(min_length=1)
    members: List[TeamMember]


class SetIsActiveRequest(BaseModel):
    user_id: str = Field(min_length=1)
    is_active: bool


class CreatePRRequest(BaseModel):
    pull_request_id: str = Field(min_length=1)
    pull_request_name: str = Field(min_length=1)
    author_id: str = Field(min_length=1)


class MergePRRequest(BaseModel):
    pull_request_id: str = Field(min_length=1)


class ReassignRequest(BaseModel):
    pull_request_id: str = Field(min_length=1)
    old_user_id: str = Field(min_length=1)


class DeactivateTeamUsersRequest(BaseModel):
    team_name: str = Field(min_length=1)
    user_ids: List[str]


# =============================================================================
# API Responses
# =============================================================================

class TeamResponse(BaseModel):
    team_name: str
    members: List[TeamMember] = []

    @classmethod
    def from_team(cls, team: Team) -> "TeamResponse":
        return cls(
            team_name=team.team_name,
            members=[
                TeamMember(user_id=m.user_id, username=m.username, is_active=m.is_active)
                for m in team.members
            ],
        )


class TeamEnvelope(BaseModel):
    team: TeamResponse


class UserEnvelope(BaseModel):
    user: User


class PullRequestResponse(BaseModel):
    """Pull request with its reviewer list, as returned to callers."""
    model_config = ConfigDict(populate_by_name=True)

    pull_request_id: str
    pull_request_name: str
    author_id: str
    status: PRStatus
    assigned_reviewers: List[str] = []
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    merged_at: Optional[datetime] = Field(default=None, alias="mergedAt")

    @classmethod
    def from_pr(cls, pr: PullRequest, reviewers: List[str]) -> "PullRequestResponse":
        return cls(
            pull_request_id=pr.pull_request_id,
            pull_request_name=pr.pull_request_name,
            author_id=pr.author_id,
            status=pr.status,
            assigned_reviewers=list(reviewers),
            created_at=pr.created_at,
            merged_at=pr.merged_at,
        )


class PREnvelope(BaseModel):
    pr: PullRequestResponse


class ReassignResponse(BaseModel):
    pr: PullRequestResponse
    replaced_by: str


class PullRequestShort(BaseModel):
    pull_request_id: str
    pull_request_name: str
    author_id: str
    status: PRStatus

    @classmethod
    def from_pr(cls, pr: PullRequest) -> "PullRequestShort":
        return cls(
            pull_request_id=pr.pull_request_id,
            pull_request_name=pr.pull_request_name,
            author_id=pr.author_id,
            status=pr.status,
        )


class UserReviewsResponse(BaseModel):
    user_id: str
    pull_requests: List[PullRequestShort] = []


class DeactivateTeamUsersResponse(BaseModel):
    deactivated_users: List[str]
    reassigned_prs: List[PRReassignmentSummary] = []


class AssignmentStatsResponse(BaseModel):
    reviewer_assignments: Dict[str, int] = {}


class ErrorBody(BaseModel):
    code: str
    message: str


class ErrorResponse(BaseModel):
    """Envelope for every error answered by the API."""
    error: ErrorBody
