"""
API Package

This package contains the HTTP surface over the services:
- teams, users, pull_requests: FastAPI routers
- security: static bearer-token authentication
- dependencies: service lookup from the application state
"""

from pr_reviewer.api.pull_requests import router as pull_requests_router
from pr_reviewer.api.teams import router as teams_router
from pr_reviewer.api.users import router as users_router

routers = [teams_router, users_router, pull_requests_router]

__all__ = ["routers"]
