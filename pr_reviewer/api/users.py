"""
User Endpoints

POST /users/setIsActive  set a user's activity flag (admin token)
GET  /users/getReview    PRs the user is assigned to review (user token)
"""

from fastapi import APIRouter, Depends, Query

from pr_reviewer.api.dependencies import get_user_service
from pr_reviewer.api.security import require_admin, require_user
from pr_reviewer.logging_config import get_logger
from pr_reviewer.models import SetIsActiveRequest, UserEnvelope, UserReviewsResponse
from pr_reviewer.services import UserService

logger = get_logger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


@router.post("/setIsActive", response_model=UserEnvelope, dependencies=[Depends(require_admin)])
def set_is_active(
    body: SetIsActiveRequest,
    service: UserService = Depends(get_user_service),
) -> UserEnvelope:
    logger.debug("Set user active request received", user_id=body.user_id, is_active=body.is_active)
    return UserEnvelope(user=service.set_user_active(body.user_id, body.is_active))


@router.get("/getReview", response_model=UserReviewsResponse, dependencies=[Depends(require_user)])
def get_reviews(
    user_id: str = Query(min_length=1),
    service: UserService = Depends(get_user_service),
) -> UserReviewsResponse:
    logger.debug("Get user reviews request received", user_id=user_id)
    return service.get_user_reviews(user_id)
