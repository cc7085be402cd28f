"""Authentication endpoints."""

import structlog
from fastapi import APIRouter, Query, Response, status
from pydantic import ValidationError

from app.core.identity import Identity
from app.core.session_cookie import clear_session_cookie, set_session_cookie
from app.dependencies import AuthServiceDep
from app.schemas.auth import (
    AuthResponse,
    GoogleAuthRequest,
    GoogleCallbackRequest,
    GoogleRedirectResponse,
    IdentityResponse,
    LoginRequest,
    PasswordResetRequest,
    RegisterRequest,
    SuccessResponse,
)
from app.services.auth_service import AuthService

logger = structlog.get_logger(__name__)

router = APIRouter()


async def _signed_in(auth_service: AuthService, identity: Identity, response: Response) -> AuthResponse:
    if identity.id_token:
        set_session_cookie(response, identity.id_token)

    try:
        profile = await auth_service.profiles.get_profile(identity.uid)
    except ValidationError as e:
        # Unreadable document; answered like a missing profile
        logger.warning("profile_document_invalid", uid=identity.uid, error=str(e))
        profile = None
    return AuthResponse(
        user=IdentityResponse.from_identity(identity),
        profile=profile,
        is_profile_complete=profile.is_profile_complete if profile else False,
    )


@router.post(
    "/login",
    response_model=AuthResponse,
    status_code=status.HTTP_200_OK,
    summary="E-mail/password login",
)
async def login(
    request: LoginRequest,
    response: Response,
    auth_service: AuthServiceDep,
) -> AuthResponse:
    """
    Sign in with e-mail and password.

    Sets the session cookie and returns the identity with its profile. Failures
    carry an ``auth/*`` code and a German message, e.g. "Falsches Passwort.".
    """
    identity = await auth_service.login_with_email(request.email, request.password)
    return await _signed_in(auth_service, identity, response)


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="E-mail/password registration",
)
async def register(
    request: RegisterRequest,
    response: Response,
    auth_service: AuthServiceDep,
) -> AuthResponse:
    """
    Create an account and its incomplete profile.

    The profile is stored with ``isProfileComplete`` false and the chosen
    account type; the role details are collected by the completion endpoints.
    """
    identity = await auth_service.register_with_email(
        email=request.email,
        password=request.password,
        first_name=request.first_name,
        last_name=request.last_name,
        account_type=request.account_type,
    )
    return await _signed_in(auth_service, identity, response)


@router.post(
    "/google",
    response_model=AuthResponse,
    status_code=status.HTTP_200_OK,
    summary="Google sign-in with an ID token",
)
async def google_login(
    request: GoogleAuthRequest,
    response: Response,
    auth_service: AuthServiceDep,
) -> AuthResponse:
    """Sign in with a Google ID token; first-time users get a customer profile."""
    identity = await auth_service.login_with_google(request.id_token)
    return await _signed_in(auth_service, identity, response)


@router.get(
    "/google/redirect",
    response_model=GoogleRedirectResponse,
    status_code=status.HTTP_200_OK,
    summary="Start a Google redirect sign-in",
)
async def google_redirect(
    auth_service: AuthServiceDep,
    continue_uri: str = Query(..., min_length=1, description="URL Google redirects back to"),
) -> GoogleRedirectResponse:
    """Return the Google authorization URL and the session id to finish with."""
    redirect = await auth_service.start_google_redirect(continue_uri)
    return GoogleRedirectResponse(auth_uri=redirect.auth_uri, session_id=redirect.session_id)


@router.post(
    "/google/callback",
    response_model=AuthResponse,
    status_code=status.HTTP_200_OK,
    summary="Finish a Google redirect sign-in",
)
async def google_callback(
    request: GoogleCallbackRequest,
    response: Response,
    auth_service: AuthServiceDep,
) -> AuthResponse:
    identity = await auth_service.complete_google_redirect(request.request_uri, request.session_id)
    return await _signed_in(auth_service, identity, response)


@router.post(
    "/logout",
    response_model=SuccessResponse,
    status_code=status.HTTP_200_OK,
    summary="Logout and clear the session cookie",
)
async def logout(response: Response, auth_service: AuthServiceDep) -> SuccessResponse:
    await auth_service.logout()
    clear_session_cookie(response)
    return SuccessResponse()


@router.post(
    "/password-reset",
    response_model=SuccessResponse,
    status_code=status.HTTP_200_OK,
    summary="Send a password reset e-mail",
)
async def password_reset(
    request: PasswordResetRequest,
    auth_service: AuthServiceDep,
) -> SuccessResponse:
    """
    Send a password reset e-mail.

    Succeeds for unknown addresses too, so the response never reveals whether
    an account exists.
    """
    await auth_service.send_password_reset(request.email)
    return SuccessResponse()
