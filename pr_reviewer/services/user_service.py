"""
User Service

Explicit activation changes and the "what am I reviewing" query.
Changing a single user's activity flag never touches reviewer assignments;
only mass deactivation reconciles them.
"""

from pr_reviewer.logging_config import get_logger
from pr_reviewer.models import PullRequestShort, User, UserReviewsResponse
from pr_reviewer.services.base import BaseService

logger = get_logger(__name__)


class UserService(BaseService):

    def set_user_active(self, user_id: str, is_active: bool) -> User:
        """Set a user's activity flag; raises UserNotFound."""
        with self._transaction("set_user_active", user_id=user_id, is_active=is_active) as repo:
            repo.set_user_active(user_id, is_active)
            user = repo.get_user(user_id)

        logger.info("User activity changed", user_id=user_id, is_active=is_active)
        return user

    def get_user_reviews(self, user_id: str) -> UserReviewsResponse:
        """PRs where the user is an assigned reviewer; raises UserNotFound."""
        with self._transaction("get_user_reviews", user_id=user_id) as repo:
            repo.get_user(user_id)
            prs = repo.get_user_reviews(user_id)

        return UserReviewsResponse(
            user_id=user_id,
            pull_requests=[PullRequestShort.from_pr(pr) for pr in prs],
        )
