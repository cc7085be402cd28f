"""Keeps the server-side session cookie in step with the identity client."""

import asyncio

import httpx
import structlog

from app.config import settings
from app.core.identity import Identity, IdentityClient, Unsubscribe

logger = structlog.get_logger(__name__)


class TokenSync:
    """Client half of the cookie bridge.

    Posts the current ID token to ``/api/auth/set-token`` on every auth state
    change (and removes it on sign-out), and refreshes the token on a timer so
    the cookie never carries an expired token for long. Failures are logged
    and swallowed; the client stays signed in even if the cookie is stale.
    """

    def __init__(
        self,
        identity_client: IdentityClient,
        http_client: httpx.AsyncClient,
        refresh_interval: float | None = None,
        api_prefix: str | None = None,
    ):
        self.identity = identity_client
        self.http = http_client
        self.refresh_interval = (
            refresh_interval
            if refresh_interval is not None
            else settings.token_refresh_interval_minutes * 60
        )
        prefix = api_prefix if api_prefix is not None else settings.api_prefix
        self.set_token_path = f"{prefix}/auth/set-token"
        self.remove_token_path = f"{prefix}/auth/remove-token"
        self._unsubscribe: Unsubscribe | None = None
        self._refresh_task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._unsubscribe is not None

    async def start(self) -> None:
        """Subscribe to auth state changes and start the refresh timer."""
        if self.running:
            return
        self._unsubscribe = self.identity.subscribe(self.sync)
        self._refresh_task = asyncio.create_task(self._refresh_loop())
        logger.info("token_sync_started", refresh_interval=self.refresh_interval)

    async def close(self) -> None:
        """Unsubscribe and stop the refresh timer."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._refresh_task is not None:
            self._refresh_task.cancel()
            try:
                await self._refresh_task
            except asyncio.CancelledError:
                pass
            self._refresh_task = None

    async def sync(self, identity: Identity | None) -> None:
        """Set or remove the session cookie for the given identity."""
        try:
            if identity is not None:
                response = await self.http.post(
                    self.set_token_path, json={"token": identity.id_token}
                )
            else:
                response = await self.http.post(self.remove_token_path)
            response.raise_for_status()
            logger.debug("session_cookie_synced", signed_in=identity is not None)
        except Exception as e:
            logger.error(
                "session_cookie_sync_failed",
                signed_in=identity is not None,
                error=str(e),
            )

    async def flush(self) -> None:
        """Push the current token before the client goes away."""
        current = self.identity.current_user
        if current is not None:
            await self.sync(current)

    async def _refresh_loop(self) -> None:
        while True:
            await asyncio.sleep(self.refresh_interval)
            if self.identity.current_user is None:
                continue
            try:
                # Emits an auth state change, which pushes the new token
                await self.identity.refresh_id_token()
            except Exception as e:
                logger.error("token_refresh_failed", error=str(e))
