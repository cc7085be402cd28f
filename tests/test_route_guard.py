"""Tests for the route guard middleware."""

import pytest
from httpx import AsyncClient

from app.middleware.route_guard import is_protected_path

PROTECTED = ["/dashboard", "/account", "/orders", "/chat", "/admin"]
PUBLIC = ["/", "/login", "/register", "/services"]


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("/dashboard", True),
        ("/dashboard/anything", True),
        ("/account/settings", True),
        ("/orders/42", True),
        ("/chat", True),
        ("/admin/users", True),
        ("/dashboards", False),
        ("/", False),
        ("/login", False),
        ("/services/gartenpflege", False),
        ("/api/v1/profiles/me", False),
        ("/_next/static/chunk.js", False),
        ("/favicon.ico", False),
    ],
)
def test_is_protected_path(path, expected):
    assert is_protected_path(path, PROTECTED, PUBLIC) is expected


def test_public_allowlist_wins_over_protected_prefix():
    assert is_protected_path("/dashboard/help", PROTECTED, ["/dashboard/help"]) is False


@pytest.mark.asyncio
async def test_redirects_without_cookie(client: AsyncClient):
    """Test a cookie-less request is sent to login with the requested path."""
    response = await client.get("/dashboard/anything")

    assert response.status_code == 307
    assert response.headers["location"].endswith("/login?callback=%2Fdashboard%2Fanything")


@pytest.mark.asyncio
async def test_redirect_keeps_query(client: AsyncClient):
    response = await client.get("/orders/42", params={"tab": "open"})

    assert response.status_code == 307
    assert response.headers["location"].endswith("/login?callback=%2Forders%2F42%3Ftab%3Dopen")


@pytest.mark.asyncio
async def test_passes_with_cookie(client: AsyncClient):
    """Test the cookie's presence is enough; the request reaches routing."""
    client.cookies.set("firebase-auth-token", "anything")

    response = await client.get("/dashboard/anything")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_unprotected_paths_pass(client: AsyncClient):
    response = await client.get("/api/v1/ping")

    assert response.status_code == 200
    assert response.json() == {"message": "pong"}
