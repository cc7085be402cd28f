"""Route guard middleware.

Redirects requests for protected pages to the login page when no session
cookie is present. Only the cookie's presence is checked, the token inside is
not verified, so this is a navigation convenience and not an authorization
boundary. API endpoints authenticate with ``app.dependencies`` instead.
"""

from collections.abc import Callable, Iterable
from urllib.parse import urlencode

import structlog
from fastapi import Request, Response
from fastapi.responses import RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from app.config import settings
from app.core.session_cookie import has_session_cookie

logger = structlog.get_logger(__name__)

# Never gated, whatever the configured prefixes are
BYPASS_PREFIXES = ("/_next", "/static", "/favicon", "/api")


def _matches(path: str, prefix: str) -> bool:
    if prefix == "/":
        return path == "/"
    prefix = prefix.rstrip("/")
    return path == prefix or path.startswith(prefix + "/")


def is_protected_path(
    path: str,
    protected_prefixes: Iterable[str],
    public_paths: Iterable[str],
) -> bool:
    """
    Decide whether a path needs a session cookie.

    Args:
        path: Request path
        protected_prefixes: Prefixes the guard applies to
        public_paths: Paths that stay reachable without a session (sub-paths included)

    Returns:
        True if the request must carry the session cookie
    """
    if not any(_matches(path, prefix) for prefix in protected_prefixes):
        return False
    if path.startswith(BYPASS_PREFIXES):
        return False
    if any(_matches(path, public) for public in public_paths):
        return False
    return True


def login_redirect_url(request: Request, login_path: str) -> str:
    """Login URL carrying the requested path and query as ``callback``."""
    callback = request.url.path
    if request.url.query:
        callback = f"{callback}?{request.url.query}"
    return str(request.url.replace(path=login_path, query=urlencode({"callback": callback})))


class RouteGuardMiddleware(BaseHTTPMiddleware):
    """Middleware redirecting cookie-less requests away from protected paths."""

    def __init__(
        self,
        app: ASGIApp,
        protected_prefixes: Iterable[str] | None = None,
        public_paths: Iterable[str] | None = None,
        login_path: str | None = None,
    ):
        super().__init__(app)
        self.protected_prefixes = list(
            protected_prefixes if protected_prefixes is not None else settings.protected_prefixes
        )
        self.public_paths = list(
            public_paths if public_paths is not None else settings.public_paths
        )
        self.login_path = login_path or settings.login_path

    async def dispatch(
        self,
        request: Request,
        call_next: Callable,
    ) -> Response:
        """
        Redirect to login or pass the request through unchanged.

        Args:
            request: Request object
            call_next: Next middleware in chain

        Returns:
            Redirect response or the downstream response
        """
        path = request.url.path

        if is_protected_path(path, self.protected_prefixes, self.public_paths) and not (
            has_session_cookie(request)
        ):
            logger.info("route_guard_redirect", path=path)
            return RedirectResponse(
                url=login_redirect_url(request, self.login_path),
                status_code=307,
            )

        return await call_next(request)
