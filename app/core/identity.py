"""Firebase Identity Toolkit client.

Holds the signed-in identity for one session and publishes auth state changes
to subscribers, the way the Firebase web SDK does for a browser tab.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta
from typing import Any
from urllib.parse import urlencode

import httpx
import structlog

from app.config import settings

logger = structlog.get_logger(__name__)

AuthStateListener = Callable[["Identity | None"], Awaitable[None]]
Unsubscribe = Callable[[], None]

_http_client: httpx.AsyncClient | None = None


def get_http_client() -> httpx.AsyncClient:
    """
    Get or create the shared HTTP client for identity calls.

    Returns:
        Shared async HTTP client
    """
    global _http_client

    if _http_client is None:
        _http_client = httpx.AsyncClient(timeout=settings.identity_request_timeout)

    return _http_client


async def close_http_client() -> None:
    """Close the shared HTTP client."""
    global _http_client

    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None


class IdentityProviderError(Exception):
    """Raised when the Identity Toolkit rejects a request."""

    def __init__(self, provider_code: str, status_code: int | None = None):
        self.provider_code = provider_code
        self.status_code = status_code
        super().__init__(provider_code)


@dataclass(frozen=True)
class Identity:
    """Account record issued by the identity provider."""

    uid: str
    email: str
    display_name: str | None = None
    email_verified: bool = False
    photo_url: str | None = None
    id_token: str = ""
    refresh_token: str = ""
    expires_at: datetime | None = None

    @property
    def is_token_expired(self) -> bool:
        if self.expires_at is None:
            return False
        return datetime.now(UTC) >= self.expires_at


@dataclass(frozen=True)
class GoogleRedirect:
    """Pending Google sign-in started with the redirect strategy."""

    auth_uri: str
    session_id: str


def _expires_at(expires_in: Any) -> datetime | None:
    if expires_in is None:
        return None
    return datetime.now(UTC) + timedelta(seconds=int(expires_in))


class IdentityClient:
    """Stateful client for the Identity Toolkit and Secure Token REST APIs."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: str | None = None,
        identity_toolkit_url: str | None = None,
        secure_token_url: str | None = None,
    ):
        """Initialize client with a shared HTTP client and the web API key."""
        self.http = http_client
        self.api_key = api_key if api_key is not None else settings.firebase_api_key
        self.identity_toolkit_url = identity_toolkit_url or settings.identity_toolkit_url
        self.secure_token_url = secure_token_url or settings.secure_token_url
        self._current_user: Identity | None = None
        self._listeners: list[AuthStateListener] = []

    # ------------------------------------------------------------------
    # Auth state
    # ------------------------------------------------------------------

    @property
    def current_user(self) -> Identity | None:
        """Currently signed-in identity, if any."""
        return self._current_user

    def subscribe(self, listener: AuthStateListener) -> Unsubscribe:
        """
        Register a listener for auth state changes.

        Args:
            listener: Coroutine function called with the new identity or None

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def _set_current_user(self, identity: Identity | None) -> None:
        self._current_user = identity
        logger.info(
            "auth_state_changed",
            uid=identity.uid if identity else None,
            listeners=len(self._listeners),
        )
        # Listeners may unsubscribe while being notified
        for listener in list(self._listeners):
            await listener(identity)

    # ------------------------------------------------------------------
    # REST plumbing
    # ------------------------------------------------------------------

    async def _post(self, url: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self.http.post(url, params={"key": self.api_key}, **kwargs)
        except httpx.TransportError as e:
            logger.warning("identity_request_failed", url=url, error=str(e))
            raise IdentityProviderError("NETWORK_REQUEST_FAILED") from e

        if response.status_code >= 400:
            try:
                message = response.json()["error"]["message"]
            except (ValueError, KeyError, TypeError):
                message = "INTERNAL_ERROR"
            logger.info(
                "identity_request_rejected",
                url=url,
                status_code=response.status_code,
                provider_code=message,
            )
            raise IdentityProviderError(message, status_code=response.status_code)

        return response.json()

    async def _accounts(self, method: str, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._post(f"{self.identity_toolkit_url}/accounts:{method}", json=payload)

    def _identity_from_response(self, data: dict[str, Any]) -> Identity:
        return Identity(
            uid=data["localId"],
            email=data.get("email", ""),
            display_name=data.get("displayName") or None,
            email_verified=bool(data.get("emailVerified", False)),
            photo_url=data.get("photoUrl") or None,
            id_token=data.get("idToken", ""),
            refresh_token=data.get("refreshToken", ""),
            expires_at=_expires_at(data.get("expiresIn")),
        )

    async def _lookup(self, id_token: str) -> dict[str, Any]:
        data = await self._accounts("lookup", {"idToken": id_token})
        users = data.get("users") or []
        if not users:
            raise IdentityProviderError("USER_NOT_FOUND")
        return users[0]

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def sign_in_with_password(self, email: str, password: str) -> Identity:
        """Sign in with e-mail and password."""
        data = await self._accounts(
            "signInWithPassword",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        identity = self._identity_from_response(data)
        # signInWithPassword does not report the verification flag
        account = await self._lookup(identity.id_token)
        identity = replace(identity, email_verified=bool(account.get("emailVerified", False)))
        await self._set_current_user(identity)
        return identity

    async def create_user(self, email: str, password: str) -> Identity:
        """Create an e-mail/password account and sign it in."""
        data = await self._accounts(
            "signUp",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        identity = self._identity_from_response(data)
        await self._set_current_user(identity)
        return identity

    async def update_display_name(self, display_name: str) -> Identity:
        """Set the display name of the signed-in identity."""
        current = self._require_user()
        await self._accounts(
            "update",
            {"idToken": current.id_token, "displayName": display_name, "returnSecureToken": False},
        )
        # Profile edits do not fire an auth state change
        self._current_user = replace(current, display_name=display_name)
        return self._current_user

    async def sign_in_with_google_id_token(
        self, google_id_token: str, request_uri: str = "http://localhost"
    ) -> Identity:
        """Sign in with a Google ID token obtained by the popup flow."""
        data = await self._accounts(
            "signInWithIdp",
            {
                "postBody": urlencode({"id_token": google_id_token, "providerId": "google.com"}),
                "requestUri": request_uri,
                "returnIdpCredential": True,
                "returnSecureToken": True,
            },
        )
        identity = self._identity_from_response(data)
        await self._set_current_user(identity)
        return identity

    async def create_google_auth_uri(self, continue_uri: str) -> GoogleRedirect:
        """Start the Google redirect flow."""
        data = await self._accounts(
            "createAuthUri",
            {"providerId": "google.com", "continueUri": continue_uri},
        )
        return GoogleRedirect(auth_uri=data["authUri"], session_id=data["sessionId"])

    async def sign_in_with_redirect_result(self, request_uri: str, session_id: str) -> Identity:
        """Finish the Google redirect flow with the URL the provider redirected to."""
        data = await self._accounts(
            "signInWithIdp",
            {
                "requestUri": request_uri,
                "sessionId": session_id,
                "returnIdpCredential": True,
                "returnSecureToken": True,
            },
        )
        identity = self._identity_from_response(data)
        await self._set_current_user(identity)
        return identity

    async def send_password_reset(self, email: str) -> None:
        """Ask the provider to e-mail a password reset link."""
        await self._accounts("sendOobCode", {"requestType": "PASSWORD_RESET", "email": email})

    async def refresh_id_token(self) -> Identity:
        """Exchange the refresh token for a new ID token."""
        current = self._require_user()
        data = await self._post(
            f"{self.secure_token_url}/token",
            data={"grant_type": "refresh_token", "refresh_token": current.refresh_token},
        )
        identity = replace(
            current,
            id_token=data["id_token"],
            refresh_token=data.get("refresh_token", current.refresh_token),
            expires_at=_expires_at(data.get("expires_in")),
        )
        await self._set_current_user(identity)
        return identity

    async def get_id_token(self, force_refresh: bool = False) -> str:
        """Current ID token, refreshed when forced or expired."""
        current = self._require_user()
        if force_refresh or current.is_token_expired:
            current = await self.refresh_id_token()
        return current.id_token

    async def sign_out(self) -> None:
        """Drop the local identity and notify subscribers."""
        await self._set_current_user(None)

    def _require_user(self) -> Identity:
        if self._current_user is None:
            raise IdentityProviderError("USER_NOT_FOUND")
        return self._current_user
