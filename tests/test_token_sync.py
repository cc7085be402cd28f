"""Tests for keeping the session cookie in step with the identity client."""

import asyncio

import httpx
import pytest
from httpx import AsyncClient

from app.session.context import SessionContext, SessionState
from app.session.token_sync import TokenSync

COOKIE = "firebase-auth-token"


@pytest.mark.asyncio
async def test_sign_in_and_out_sync_cookie(client: AsyncClient, identity_client):
    """Test the cookie follows sign-in and is gone after sign-out."""
    sync = TokenSync(identity_client, client)
    await sync.start()

    identity = await identity_client.create_user("a@b.com", "secret123")
    assert client.cookies.get(COOKIE) == identity.id_token

    await identity_client.sign_out()
    await sync.close()

    assert identity_client.current_user is None
    assert client.cookies.get(COOKIE) is None

    response = await client.get("/dashboard/anything")
    assert response.status_code == 307


@pytest.mark.asyncio
async def test_session_logout_removes_cookie(client: AsyncClient, auth_service, identity_client):
    """Test logging out through the session context clears the cookie."""
    session = SessionContext(auth_service, TokenSync(identity_client, client))
    await session.start()
    await session.register("a@b.com", "secret123", "Max")
    assert client.cookies.get(COOKIE) == identity_client.current_user.id_token

    await session.logout()
    await session.close()

    assert session.state == SessionState.LOGGED_OUT
    assert client.cookies.get(COOKIE) is None


@pytest.mark.asyncio
async def test_refresh_loop_pushes_new_token(client: AsyncClient, identity_client):
    sync = TokenSync(identity_client, client, refresh_interval=0.01)
    await sync.start()
    identity = await identity_client.create_user("a@b.com", "secret123")

    for _ in range(100):
        if client.cookies.get(COOKIE) != identity.id_token:
            break
        await asyncio.sleep(0.01)
    await sync.close()

    assert client.cookies.get(COOKIE) != identity.id_token
    assert client.cookies.get(COOKIE).startswith(f"id-token-{identity.uid}-")
    assert sync.running is False


@pytest.mark.asyncio
async def test_flush_pushes_current_token(client: AsyncClient, identity_client):
    identity = await identity_client.create_user("a@b.com", "secret123")
    sync = TokenSync(identity_client, client)

    await sync.flush()

    assert client.cookies.get(COOKIE) == identity.id_token


@pytest.mark.asyncio
async def test_sync_failures_are_swallowed(identity_client):
    """Test an unreachable or failing cookie bridge never raises."""

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/set-token"):
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(500, json={"error": "Internal server error"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test") as http:
        sync = TokenSync(identity_client, http)
        await sync.start()

        identity = await identity_client.create_user("a@b.com", "secret123")
        await identity_client.sign_out()
        await sync.close()

    assert identity.uid
    assert identity_client.current_user is None
