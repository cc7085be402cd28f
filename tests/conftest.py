import asyncio
import json
import os
from collections.abc import AsyncGenerator
from typing import Any
from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlparse

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("FIREBASE_API_KEY", "test-api-key")

import httpx
import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient

# Load environment variables from .env file
load_dotenv()

from app.core.exceptions import ConflictException, NotFoundException
from app.core.identity import IdentityClient, get_http_client
from app.core.redis_client import CacheManager, get_redis_client
from app.dependencies import get_job_repository, get_profile_repository
from app.main import app
from app.schemas.jobs import Job
from app.services.auth_service import AuthService
from app.services.profile_service import ProfileService

# ============================================================================
# Firestore fakes
# ============================================================================


class InMemoryProfileRepository:
    """Profile documents kept in a dict, keyed by uid."""

    def __init__(self) -> None:
        self.documents: dict[str, dict[str, Any]] = {}
        self.reads = 0
        self.writes = 0
        self.fail_create = False

    async def get(self, uid: str) -> dict[str, Any] | None:
        self.reads += 1
        document = self.documents.get(uid)
        if document is None:
            return None
        return {"uid": uid, **document}

    async def create(self, uid: str, data: dict[str, Any]) -> None:
        if self.fail_create:
            raise RuntimeError("firestore unavailable")
        if uid in self.documents:
            raise ConflictException(f"Profile for {uid} already exists")
        self.documents[uid] = dict(data)
        self.writes += 1

    async def update(self, uid: str, data: dict[str, Any]) -> None:
        if uid not in self.documents:
            raise NotFoundException(f"Profile for {uid} not found")
        self.documents[uid].update(data)
        self.writes += 1


class BlockingProfileRepository(InMemoryProfileRepository):
    """Profile reads wait until the test releases them."""

    def __init__(self) -> None:
        super().__init__()
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def get(self, uid: str) -> dict[str, Any] | None:
        self.started.set()
        await self.release.wait()
        return await super().get(uid)


class InMemoryJobRepository:
    def __init__(self) -> None:
        self.jobs: list[Job] = []

    async def list_by_provider(self, provider_id: str) -> list[Job]:
        return [job for job in self.jobs if job.provider_id == provider_id]


# ============================================================================
# Identity Toolkit fake
# ============================================================================


class FakeIdentityToolkit:
    """Answers Identity Toolkit and Secure Token REST calls from memory."""

    def __init__(self) -> None:
        self.accounts: dict[str, dict[str, Any]] = {}
        self.google_tokens: dict[str, dict[str, Any]] = {}
        self.sessions: set[str] = set()
        self.reset_emails: list[str] = []
        self.requests: list[str] = []
        self.network_down = False
        self.failing_methods: set[str] = set()
        self._tokens: dict[str, str] = {}
        self._counter = 0

    # Setup helpers

    def add_account(
        self,
        email: str,
        password: str | None = "secret123",
        display_name: str | None = None,
        photo_url: str | None = None,
    ) -> dict[str, Any]:
        self._counter += 1
        account = {
            "localId": f"uid-{self._counter}",
            "email": email,
            "password": password,
            "displayName": display_name or "",
            "photoUrl": photo_url or "",
            "emailVerified": False,
        }
        self.accounts[email] = account
        return account

    def add_google_user(self, google_token: str, email: str, display_name: str) -> None:
        self.google_tokens[google_token] = {"email": email, "displayName": display_name}

    def uid_for_token(self, id_token: str) -> str | None:
        return self._tokens.get(id_token)

    # Transport

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.network_down:
            raise httpx.ConnectError("connection refused", request=request)
        if not request.url.params.get("key"):
            return self._error("API_KEY_INVALID")

        path = request.url.path
        if path.endswith("/token"):
            self.requests.append("token")
            return self._refresh(parse_qs(request.content.decode()))

        method = path.rsplit(":", 1)[1]
        self.requests.append(method)
        if method in self.failing_methods:
            return httpx.Response(503, json={"error": {"code": 503, "message": "INTERNAL_ERROR"}})
        body = json.loads(request.content)
        return getattr(self, f"_{method}")(body)

    def _error(self, message: str) -> httpx.Response:
        return httpx.Response(400, json={"error": {"code": 400, "message": message}})

    def _issue(self, account: dict[str, Any]) -> dict[str, Any]:
        self._counter += 1
        token = f"id-token-{account['localId']}-{self._counter}"
        self._tokens[token] = account["localId"]
        return {
            "localId": account["localId"],
            "email": account["email"],
            "displayName": account["displayName"],
            "photoUrl": account["photoUrl"],
            "idToken": token,
            "refreshToken": f"refresh-{account['localId']}",
            "expiresIn": "3600",
        }

    def _by_token(self, id_token: str) -> dict[str, Any] | None:
        uid = self._tokens.get(id_token)
        return next((a for a in self.accounts.values() if a["localId"] == uid), None)

    def _signUp(self, body: dict[str, Any]) -> httpx.Response:
        if body["email"] in self.accounts:
            return self._error("EMAIL_EXISTS")
        if len(body["password"]) < 6:
            return self._error("WEAK_PASSWORD : Password should be at least 6 characters")
        return httpx.Response(200, json=self._issue(self.add_account(body["email"], body["password"])))

    def _signInWithPassword(self, body: dict[str, Any]) -> httpx.Response:
        account = self.accounts.get(body["email"])
        if account is None:
            return self._error("EMAIL_NOT_FOUND")
        if account["password"] != body["password"]:
            return self._error("INVALID_PASSWORD")
        return httpx.Response(200, json=self._issue(account))

    def _lookup(self, body: dict[str, Any]) -> httpx.Response:
        account = self._by_token(body["idToken"])
        if account is None:
            return self._error("INVALID_ID_TOKEN")
        return httpx.Response(
            200,
            json={"users": [{"localId": account["localId"], "email": account["email"], "emailVerified": account["emailVerified"]}]},
        )

    def _update(self, body: dict[str, Any]) -> httpx.Response:
        account = self._by_token(body["idToken"])
        if account is None:
            return self._error("INVALID_ID_TOKEN")
        account["displayName"] = body.get("displayName", account["displayName"])
        return httpx.Response(200, json={"localId": account["localId"], "email": account["email"]})

    def _google_sign_in(self, google_token: str | None) -> httpx.Response:
        google_user = self.google_tokens.get(google_token or "")
        if google_user is None:
            return self._error("INVALID_IDP_RESPONSE")
        account = self.accounts.get(google_user["email"]) or self.add_account(
            google_user["email"],
            password=None,
            display_name=google_user["displayName"],
            photo_url="https://lh3.googleusercontent.com/a/photo",
        )
        account["emailVerified"] = True
        return httpx.Response(200, json={**self._issue(account), "emailVerified": True})

    def _signInWithIdp(self, body: dict[str, Any]) -> httpx.Response:
        if "sessionId" in body:
            if body["sessionId"] not in self.sessions:
                return self._error("INVALID_IDP_RESPONSE")
            query = parse_qs(urlparse(body["requestUri"]).query)
            return self._google_sign_in(query.get("id_token", [None])[0])
        post_body = parse_qs(body["postBody"])
        return self._google_sign_in(post_body["id_token"][0])

    def _createAuthUri(self, body: dict[str, Any]) -> httpx.Response:
        session_id = f"session-{len(self.sessions) + 1}"
        self.sessions.add(session_id)
        return httpx.Response(
            200,
            json={
                "authUri": f"https://accounts.google.com/o/oauth2/auth?state={session_id}",
                "sessionId": session_id,
                "providerId": body["providerId"],
            },
        )

    def _sendOobCode(self, body: dict[str, Any]) -> httpx.Response:
        if body["email"] not in self.accounts:
            return self._error("EMAIL_NOT_FOUND")
        self.reset_emails.append(body["email"])
        return httpx.Response(200, json={"email": body["email"]})

    def _refresh(self, form: dict[str, list[str]]) -> httpx.Response:
        uid = form["refresh_token"][0].removeprefix("refresh-")
        account = next((a for a in self.accounts.values() if a["localId"] == uid), None)
        if account is None:
            return self._error("INVALID_REFRESH_TOKEN")
        issued = self._issue(account)
        return httpx.Response(
            200,
            json={
                "id_token": issued["idToken"],
                "refresh_token": issued["refreshToken"],
                "expires_in": "3600",
                "user_id": uid,
            },
        )


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def identity_toolkit() -> FakeIdentityToolkit:
    return FakeIdentityToolkit()


@pytest_asyncio.fixture
async def identity_http_client(
    identity_toolkit: FakeIdentityToolkit,
) -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(identity_toolkit.handler)) as client:
        yield client


@pytest.fixture
def identity_client(identity_http_client: httpx.AsyncClient) -> IdentityClient:
    return IdentityClient(identity_http_client)


@pytest.fixture
def mock_redis() -> MagicMock:
    """Redis stand-in that always misses."""
    redis_client = MagicMock()
    redis_client.get.return_value = None
    return redis_client


@pytest.fixture
def profile_repository() -> InMemoryProfileRepository:
    return InMemoryProfileRepository()


@pytest.fixture
def blocking_repository() -> BlockingProfileRepository:
    return BlockingProfileRepository()


@pytest.fixture
def job_repository() -> InMemoryJobRepository:
    return InMemoryJobRepository()


@pytest.fixture
def profile_service(
    profile_repository: InMemoryProfileRepository, mock_redis: MagicMock
) -> ProfileService:
    return ProfileService(profile_repository, CacheManager(mock_redis))


@pytest.fixture
def auth_service(identity_client: IdentityClient, profile_service: ProfileService) -> AuthService:
    return AuthService(identity_client, profile_service)


@pytest_asyncio.fixture
async def client(
    monkeypatch: pytest.MonkeyPatch,
    identity_toolkit: FakeIdentityToolkit,
    identity_http_client: httpx.AsyncClient,
    profile_repository: InMemoryProfileRepository,
    job_repository: InMemoryJobRepository,
    mock_redis: MagicMock,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client with Firebase, Firestore and Redis replaced."""

    async def fake_verify_firebase_token(id_token: str) -> dict:
        uid = identity_toolkit.uid_for_token(id_token)
        if uid is None:
            raise ValueError("Invalid Firebase ID token")
        return {"uid": uid}

    monkeypatch.setattr("app.dependencies.verify_firebase_token", fake_verify_firebase_token)

    app.dependency_overrides[get_http_client] = lambda: identity_http_client
    app.dependency_overrides[get_profile_repository] = lambda: profile_repository
    app.dependency_overrides[get_job_repository] = lambda: job_repository
    app.dependency_overrides[get_redis_client] = lambda: mock_redis

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def provider_completion_data() -> dict:
    """Provider completion form as sent by the profile completion page."""
    return {
        "business_name": "Max GmbH",
        "business_description": "Garten und Hof",
        "services": ["Gartenpflege"],
        "phone": "+49301234567",
        "address": {"street_and_number": "Hauptstr. 1", "zip": "10115", "city": "Berlin"},
        "service_area": ["Berlin"],
        "working_hours": {"start": "08:00", "end": "17:00"},
    }
