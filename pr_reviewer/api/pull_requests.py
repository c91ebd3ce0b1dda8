"""
Pull Request Endpoints

POST /pullRequest/create    create a PR and assign reviewers (admin token)
POST /pullRequest/merge     mark a PR merged, idempotent (admin token)
POST /pullRequest/reassign  replace one reviewer (admin token)
GET  /pullRequest/get       PR status and reviewers (user token)

Timestamps are omitted from the PR payload while unset.
"""

from fastapi import APIRouter, Depends, Query, status

from pr_reviewer.api.dependencies import get_pr_service
from pr_reviewer.api.security import require_admin, require_user
from pr_reviewer.logging_config import get_logger
from pr_reviewer.models import (
    CreatePRRequest,
    MergePRRequest,
    PREnvelope,
    ReassignRequest,
    ReassignResponse,
)
from pr_reviewer.services import PRService

logger = get_logger(__name__)

router = APIRouter(prefix="/pullRequest", tags=["pull requests"])


@router.post(
    "/create",
    status_code=status.HTTP_201_CREATED,
    response_model=PREnvelope,
    response_model_exclude_none=True,
    dependencies=[Depends(require_admin)],
)
def create_pr(
    body: CreatePRRequest,
    service: PRService = Depends(get_pr_service),
) -> PREnvelope:
    logger.debug(
        "Create PR request received",
        pr_id=body.pull_request_id,
        author_id=body.author_id
    )
    pr = service.create_pr(body.pull_request_id, body.pull_request_name, body.author_id)
    return PREnvelope(pr=pr)


@router.post(
    "/merge",
    response_model=PREnvelope,
    response_model_exclude_none=True,
    dependencies=[Depends(require_admin)],
)
def merge_pr(
    body: MergePRRequest,
    service: PRService = Depends(get_pr_service),
) -> PREnvelope:
    logger.debug("Merge PR request received", pr_id=body.pull_request_id)
    return PREnvelope(pr=service.merge_pr(body.pull_request_id))


@router.post(
    "/reassign",
    response_model=ReassignResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(require_admin)],
)
def reassign_reviewer(
    body: ReassignRequest,
    service: PRService = Depends(get_pr_service),
) -> ReassignResponse:
    logger.debug(
        "Reassign reviewer request received",
        pr_id=body.pull_request_id,
        old_user_id=body.old_user_id
    )
    return service.reassign_reviewer(body.pull_request_id, body.old_user_id)


@router.get(
    "/get",
    response_model=PREnvelope,
    response_model_exclude_none=True,
    dependencies=[Depends(require_user)],
)
def get_pr(
    pull_request_id: str = Query(min_length=1),
    service: PRService = Depends(get_pr_service),
) -> PREnvelope:
    return PREnvelope(pr=service.get_pr(pull_request_id))
