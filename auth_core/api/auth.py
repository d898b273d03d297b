"""
Authentication endpoints for the auth core.
Implements registration, email verification, login, token refresh and logout.
Domain errors propagate to the handlers registered in ``create_app``.
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ..core.config import Settings
from ..core.database import get_db
from ..models.user import User
from ..schemas.auth_schemas import (
    ErrorResponse,
    LoginData,
    LoginRequest,
    RegistrationData,
    RegistrationRequest,
    ResendVerificationRequest,
    SuccessResponse,
    UserResponse,
)
from ..services.auth.authentication_service import AuthenticationService, AuthResult
from .deps import get_app_settings, get_auth_service, get_current_user

logger = structlog.get_logger()
router = APIRouter(prefix="/auth", tags=["authentication"])


def set_refresh_cookie(response: Response, settings: Settings, refresh_token: str) -> None:
    response.set_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        value=refresh_token,
        max_age=settings.refresh_cookie_max_age,
        path=settings.REFRESH_COOKIE_PATH,
        secure=settings.is_production,
        httponly=True,
        samesite="lax",
    )


def clear_refresh_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        path=settings.REFRESH_COOKIE_PATH,
        secure=settings.is_production,
        httponly=True,
        samesite="lax",
    )


def _login_data(result: AuthResult) -> LoginData:
    return LoginData(
        access_token=result.access_token,
        token_type="bearer",
        expires_in=result.expires_in,
        user=UserResponse.model_validate(result.user),
    )


@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    response_model=SuccessResponse[RegistrationData],
    responses={
        400: {"model": ErrorResponse},
        409: {"model": ErrorResponse}
    }
)
async def register(
    registration_data: RegistrationRequest,
    db: AsyncSession = Depends(get_db),
    auth_service: AuthenticationService = Depends(get_auth_service)
):
    """
    Register a new user account.

    - **name**: Display name
    - **email**: User's email address (must be unique, case-insensitive)
    - **password**: User's password (must meet strength requirements)

    The account stays unverified until the emailed link is followed.
    """
    logger.info("Register endpoint hit")
    result = await auth_service.register(
        db=db,
        name=registration_data.name,
        email=registration_data.email,
        password=registration_data.password
    )

    return SuccessResponse[RegistrationData](
        message="User registered successfully",
        data=RegistrationData(
            user=UserResponse.model_validate(result.user),
            verification_email_sent=result.verification_email_sent
        )
    )


@router.api_route(
    "/verify-email",
    methods=["POST", "GET"],
    response_model=SuccessResponse[UserResponse],
    responses={
        400: {"model": ErrorResponse},
        409: {"model": ErrorResponse}
    }
)
async def verify_email(
    token: Optional[str] = Query(None, description="Email verification token"),
    db: AsyncSession = Depends(get_db),
    auth_service: AuthenticationService = Depends(get_auth_service)
):
    """
    Verify user email with the token from the verification link.

    GET is accepted as well so the emailed link works from a mail client.
    """
    logger.info("Verify email endpoint hit")
    user = await auth_service.verify_email(db, token)

    return SuccessResponse[UserResponse](
        message="Email is now verified, you can proceed to login",
        data=UserResponse.model_validate(user)
    )


@router.post(
    "/login",
    response_model=SuccessResponse[LoginData],
    responses={
        400: {"model": ErrorResponse}
    }
)
async def login(
    login_data: LoginRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    auth_service: AuthenticationService = Depends(get_auth_service)
):
    """
    Authenticate user.

    Returns the access token and user projection in the body; the refresh
    token is only ever delivered as an HTTP-only cookie.
    """
    logger.info("Login endpoint hit")
    result = await auth_service.login(db, login_data.email, login_data.password)
    request.state.user_id = result.user.id

    set_refresh_cookie(response, settings, result.refresh_token)
    return SuccessResponse[LoginData](message="User logged in successfully", data=_login_data(result))


@router.post(
    "/refresh",
    response_model=SuccessResponse[LoginData],
    responses={
        401: {"model": ErrorResponse}
    }
)
async def refresh_token(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    auth_service: AuthenticationService = Depends(get_auth_service)
):
    """
    Exchange the refresh cookie for a new access token.

    The refresh cookie is rotated with the same token version.
    """
    result = await auth_service.refresh(db, request.cookies.get(settings.REFRESH_COOKIE_NAME))
    request.state.user_id = result.user.id

    set_refresh_cookie(response, settings, result.refresh_token)
    return SuccessResponse[LoginData](message="Token refreshed", data=_login_data(result))


@router.get(
    "/me",
    response_model=SuccessResponse[UserResponse],
    responses={
        401: {"model": ErrorResponse}
    }
)
async def read_current_user(current_user: User = Depends(get_current_user)):
    """Return the user behind the bearer access token."""
    return SuccessResponse[UserResponse](message="Current user", data=UserResponse.model_validate(current_user))


@router.post("/logout", response_model=SuccessResponse[None])
async def logout(response: Response, settings: Settings = Depends(get_app_settings)):
    """Forget the refresh cookie on this client."""
    clear_refresh_cookie(response, settings)
    return SuccessResponse[None](message="Successfully logged out")


@router.post(
    "/logout-all",
    response_model=SuccessResponse[None],
    responses={
        401: {"model": ErrorResponse}
    }
)
async def logout_all(
    response: Response,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    auth_service: AuthenticationService = Depends(get_auth_service)
):
    """Revoke every access and refresh token issued to the current user."""
    await auth_service.logout_all(db, current_user)

    clear_refresh_cookie(response, settings)
    return SuccessResponse[None](message="Logged out from all sessions")


@router.post(
    "/resend-verification",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=SuccessResponse[None],
    responses={
        400: {"model": ErrorResponse}
    }
)
async def resend_verification(
    resend_data: ResendVerificationRequest,
    db: AsyncSession = Depends(get_db),
    auth_service: AuthenticationService = Depends(get_auth_service)
):
    """
    Request a new verification link.

    Always answers the same way so it cannot be used to discover accounts.
    """
    await auth_service.resend_verification(db, resend_data.email)
    return SuccessResponse[None](
        message="If the account exists and is not verified, a new verification email has been sent"
    )
