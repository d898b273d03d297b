"""
Dependency injection for FastAPI endpoints.
Provides common dependencies like settings, services and the current user.
"""
from typing import Optional
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ..container.container import Container
from ..core.config import Settings
from ..core.database import get_db
from ..models.user import User
from ..services.auth.authentication_service import AuthenticationService

bearer_scheme = HTTPBearer(auto_error=False)


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_app_settings(container: Container = Depends(get_container)) -> Settings:
    return container.settings


def get_auth_service(container: Container = Depends(get_container)) -> AuthenticationService:
    return container.auth_service


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
    auth_service: AuthenticationService = Depends(get_auth_service)
) -> User:
    """
    Get current authenticated user from the bearer access token.

    Raises:
        MissingToken, TokenInvalid, TokenExpired, TokenRevoked, UserNotFound (all 401)
    """
    token = credentials.credentials if credentials else None
    user = await auth_service.authenticate_access_token(db, token)

    request.state.user_id = user.id
    structlog.contextvars.bind_contextvars(user_id=user.id)
    return user
