"""Session cookie helpers shared by the cookie bridge and the auth endpoints."""

from starlette.requests import HTTPConnection
from starlette.responses import Response

from app.config import settings


def set_session_cookie(response: Response, token: str) -> None:
    """Store the identity token in the HTTP-only session cookie."""
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.session_cookie_max_age,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    """Expire the session cookie."""
    response.delete_cookie(
        key=settings.session_cookie_name,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
    )


def has_session_cookie(connection: HTTPConnection) -> bool:
    """Presence check only; the token is not verified."""
    return settings.session_cookie_name in connection.cookies


def get_session_token(connection: HTTPConnection) -> str | None:
    return connection.cookies.get(settings.session_cookie_name) or None
