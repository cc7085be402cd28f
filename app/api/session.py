"""Cookie bridge endpoints.

Copy the identity provider's ID token into an HTTP-only cookie so the route
guard can see a session without talking to the identity provider.
"""

import json

import structlog
from fastapi import APIRouter, Request, Response, status
from fastapi.responses import JSONResponse

from app.core.session_cookie import clear_session_cookie, set_session_cookie
from app.schemas.auth import SuccessResponse

logger = structlog.get_logger(__name__)

router = APIRouter()


async def _read_token(request: Request) -> str | None:
    # navigator.sendBeacon posts JSON as text/plain, so parse the raw body
    body = await request.body()
    if not body:
        return None
    try:
        payload = json.loads(body)
    except ValueError:
        return None
    token = payload.get("token") if isinstance(payload, dict) else None
    return token if isinstance(token, str) and token else None


def _internal_error() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )


async def _store_token(
    request: Request, response: Response, endpoint: str
) -> Response | SuccessResponse:
    try:
        token = await _read_token(request)
        if token is None:
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={"error": "Token required"},
            )

        set_session_cookie(response, token)
        logger.info("session_cookie_set", endpoint=endpoint)
        return SuccessResponse()
    except Exception as e:
        logger.error("session_cookie_set_failed", endpoint=endpoint, error=str(e))
        return _internal_error()


@router.post(
    "/auth/set-token",
    response_model=SuccessResponse,
    status_code=status.HTTP_200_OK,
    tags=["Session"],
    summary="Store the ID token in the session cookie",
)
async def set_token(request: Request, response: Response):
    """
    Set the session cookie from ``{"token": "<id token>"}``.

    Returns 400 when the token is missing.
    """
    return await _store_token(request, response, "set-token")


@router.post(
    "/auth/remove-token",
    response_model=SuccessResponse,
    status_code=status.HTTP_200_OK,
    tags=["Session"],
    summary="Delete the session cookie",
)
async def remove_token(response: Response):
    """Delete the session cookie."""
    try:
        clear_session_cookie(response)
        logger.info("session_cookie_removed")
        return SuccessResponse()
    except Exception as e:
        logger.error("session_cookie_remove_failed", error=str(e))
        return _internal_error()


@router.post(
    "/session",
    response_model=SuccessResponse,
    status_code=status.HTTP_200_OK,
    tags=["Session"],
    summary="Store the ID token in the session cookie (alias)",
)
async def create_session(request: Request, response: Response):
    """Same as ``/auth/set-token``; both use the same cookie lifetime."""
    return await _store_token(request, response, "session")
