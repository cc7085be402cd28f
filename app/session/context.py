"""Session context: who is signed in and whether their profile is complete.

The context owns the session state and is the only writer of it. Auth state
changes from the identity client drive every transition::

    unknown --start--> logged_out
                   \\-> logged_in_incomplete | logged_in_complete | error

Each auth state change re-fetches the profile. A newer change cancels the
fetch of an older one, so a slow response for a previous identity can never
overwrite the state of the current one.
"""

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum

import structlog

from app.core.auth_errors import DEFAULT_MESSAGE, PROFILE_NOT_FOUND_MESSAGE
from app.core.exceptions import AppException
from app.core.identity import GoogleRedirect, Identity, Unsubscribe
from app.schemas.profiles import (
    AccountType,
    CustomerProfile,
    IncompleteProfile,
    Profile,
    ProviderProfile,
)
from app.services.auth_service import AuthService
from app.session.token_sync import TokenSync

logger = structlog.get_logger(__name__)


class SessionState(str, Enum):
    """Session lifecycle states."""

    UNKNOWN = "unknown"
    LOGGED_OUT = "logged_out"
    LOGGED_IN_INCOMPLETE = "logged_in_incomplete"
    LOGGED_IN_COMPLETE = "logged_in_complete"
    ERROR = "error"


@dataclass(frozen=True)
class SessionSnapshot:
    """Immutable view of the session handed to observers."""

    state: SessionState
    identity: Identity | None
    profile: Profile | None
    error: str | None
    loading: bool
    initialized: bool

    @property
    def is_profile_complete(self) -> bool:
        return self.state == SessionState.LOGGED_IN_COMPLETE


SessionListener = Callable[[SessionSnapshot], None]


def state_for_profile(profile: Profile | None) -> SessionState:
    """Map a fetched profile to the signed-in session state."""
    match profile:
        case None:
            return SessionState.ERROR
        case IncompleteProfile():
            return SessionState.LOGGED_IN_INCOMPLETE
        case CustomerProfile() | ProviderProfile():
            return SessionState.LOGGED_IN_COMPLETE


class SessionContext:
    """Single authority for the signed-in identity and its profile."""

    def __init__(self, auth_service: AuthService, token_sync: TokenSync | None = None):
        self.auth = auth_service
        self.token_sync = token_sync

        self._state = SessionState.UNKNOWN
        self._identity: Identity | None = None
        self._profile: Profile | None = None
        self._error: str | None = None
        self._initialized = False
        self._pending_actions = 0
        self._fetching = False
        self._provisioning = 0

        self._generation = 0
        self._fetch_task: asyncio.Task[Profile | None] | None = None
        self._unsubscribe: Unsubscribe | None = None
        self._listeners: list[SessionListener] = []

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def identity(self) -> Identity | None:
        return self._identity

    @property
    def profile(self) -> Profile | None:
        return self._profile

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def loading(self) -> bool:
        return self._fetching or self._pending_actions > 0

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def is_profile_complete(self) -> bool:
        return self._state == SessionState.LOGGED_IN_COMPLETE

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            state=self._state,
            identity=self._identity,
            profile=self._profile,
            error=self._error,
            loading=self.loading,
            initialized=self._initialized,
        )

    def subscribe(self, listener: SessionListener) -> Unsubscribe:
        """Register an observer; returns a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("session_listener_failed")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Resolve the initial state and follow auth state changes."""
        if self._unsubscribe is not None:
            return

        client = self.auth.identity
        current = client.current_user
        self._unsubscribe = client.subscribe(self._on_auth_state_changed)
        if self.token_sync is not None:
            await self.token_sync.start()

        await self._on_auth_state_changed(current)

    async def close(self) -> None:
        """Stop following auth state and abort any in-flight profile fetch."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self.token_sync is not None:
            await self.token_sync.flush()
            await self.token_sync.close()

        self._generation += 1
        task = self._fetch_task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._fetch_task = None
        self._fetching = False

    async def _on_auth_state_changed(self, identity: Identity | None) -> None:
        self._generation += 1
        generation = self._generation
        if self._fetch_task is not None and not self._fetch_task.done():
            self._fetch_task.cancel()

        self._identity = identity

        if identity is None:
            self._profile = None
            self._fetching = False
            self._state = SessionState.LOGGED_OUT
            self._initialized = True
            self._notify()
            return

        await self._load_profile(identity, generation)

    async def _load_profile(self, identity: Identity, generation: int) -> None:
        self._fetching = True
        self._notify()

        task = asyncio.create_task(self.auth.profiles.get_profile(identity.uid))
        self._fetch_task = task
        try:
            profile = await task
        except asyncio.CancelledError:
            if generation != self._generation:
                # Superseded by a newer auth state change
                return
            raise
        except Exception as e:
            if generation != self._generation:
                return
            logger.warning("session_profile_fetch_failed", uid=identity.uid, error=str(e))
            profile = None
        finally:
            if self._fetch_task is task:
                self._fetch_task = None

        if generation != self._generation:
            logger.debug("session_stale_profile_discarded", uid=identity.uid)
            return

        if profile is None and self._provisioning:
            # Written by the running action, which re-fetches once it is done
            self._fetching = False
            logger.debug("session_profile_pending", uid=identity.uid)
            return

        self._profile = profile
        self._state = state_for_profile(profile)
        if self._state == SessionState.ERROR:
            self._error = PROFILE_NOT_FOUND_MESSAGE
        elif self._error == PROFILE_NOT_FOUND_MESSAGE:
            self._error = None
        self._fetching = False
        self._initialized = True
        logger.info("session_state_changed", uid=identity.uid, state=self._state.value)
        self._notify()

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _action(self, name: str, track_loading: bool = True) -> AsyncIterator[None]:
        self._error = None
        if track_loading:
            self._pending_actions += 1
        self._notify()
        try:
            yield
        except AppException as e:
            logger.info("session_action_failed", action=name, error=e.message)
            self._error = e.message
            raise
        except Exception as e:
            logger.error("session_action_failed", action=name, error=str(e))
            self._error = DEFAULT_MESSAGE
            raise
        finally:
            if track_loading:
                self._pending_actions -= 1
            self._notify()

    @asynccontextmanager
    async def _provisioning_profile(self) -> AsyncIterator[None]:
        """Hold back "profile missing" while the action is still writing it."""
        self._provisioning += 1
        failed = False
        try:
            yield
        except Exception:
            failed = True
            raise
        finally:
            self._provisioning -= 1
            if failed:
                await self.refresh_profile()

    async def login(self, email: str, password: str) -> None:
        """Sign in with e-mail and password."""
        async with self._action("login"):
            await self.auth.login_with_email(email, password)

    async def register(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str = "",
        account_type: AccountType = AccountType.CUSTOMER,
    ) -> None:
        """Register and load the freshly written incomplete profile."""
        async with self._action("register"):
            async with self._provisioning_profile():
                await self.auth.register_with_email(
                    email, password, first_name, last_name, account_type
                )
            await self.refresh_profile()

    async def login_with_google(self, google_id_token: str) -> None:
        """Sign in with Google (popup strategy)."""
        async with self._action("login_with_google"):
            async with self._provisioning_profile():
                await self.auth.login_with_google(google_id_token)
            await self.refresh_profile()

    async def start_google_redirect(self, continue_uri: str) -> GoogleRedirect:
        """Begin a Google sign-in with the redirect strategy."""
        async with self._action("start_google_redirect"):
            return await self.auth.start_google_redirect(continue_uri)

    async def complete_google_redirect(self, request_uri: str, session_id: str) -> None:
        """Pick up the redirect result after returning from Google."""
        async with self._action("complete_google_redirect"):
            async with self._provisioning_profile():
                await self.auth.complete_google_redirect(request_uri, session_id)
            await self.refresh_profile()

    async def logout(self) -> None:
        """Sign out; the resulting auth state change clears the profile and cookie."""
        async with self._action("logout", track_loading=False):
            await self.auth.logout()

    async def send_password_reset(self, email: str) -> None:
        async with self._action("send_password_reset", track_loading=False):
            await self.auth.send_password_reset(email)

    async def refresh_profile(self) -> None:
        """Re-fetch the profile, e.g. after a profile completion submission."""
        identity = self.auth.identity.current_user
        if identity is None:
            return
        self._generation += 1
        if self._fetch_task is not None and not self._fetch_task.done():
            self._fetch_task.cancel()
        self._identity = identity
        await self._load_profile(identity, self._generation)

    def clear_error(self) -> None:
        self._error = None
        self._notify()
