"""Authentication service over the Firebase identity provider."""

from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

from app.core.auth_errors import auth_error, from_provider_code
from app.core.exceptions import AuthError, ConflictException
from app.core.identity import GoogleRedirect, Identity, IdentityClient, IdentityProviderError
from app.schemas.profiles import AccountType
from app.services.profile_service import ProfileService

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def split_display_name(identity: Identity) -> tuple[str, str]:
    """Derive first and last name from a provider display name."""
    display_name = identity.display_name or identity.email.split("@", 1)[0]
    first, _, last = display_name.strip().partition(" ")
    return first, last.strip()


class AuthService:
    """Translates auth intents into identity provider calls.

    Every provider failure is re-raised as an ``AuthError`` carrying the
    client error code and the German message for the UI. Nothing is retried.
    """

    def __init__(self, identity_client: IdentityClient, profile_service: ProfileService):
        """Initialize auth service with the identity client and profile service."""
        self.identity = identity_client
        self.profiles = profile_service

    async def _call(self, operation: str, call: Callable[[], Awaitable[T]]) -> T:
        try:
            return await call()
        except IdentityProviderError as e:
            error = from_provider_code(e.provider_code)
            logger.info(
                "auth_operation_failed",
                operation=operation,
                provider_code=e.provider_code,
                code=error.code,
            )
            raise error from e

    async def login_with_email(self, email: str, password: str) -> Identity:
        """
        Sign in with e-mail and password.

        Args:
            email: Account e-mail
            password: Account password

        Returns:
            Signed-in identity

        Raises:
            AuthError: With a localized message, e.g. "Falsches Passwort."
        """
        identity = await self._call(
            "login_with_email",
            lambda: self.identity.sign_in_with_password(email, password),
        )
        logger.info("login_succeeded", uid=identity.uid, method="password")
        return identity

    async def register_with_email(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str = "",
        account_type: AccountType = AccountType.CUSTOMER,
    ) -> Identity:
        """
        Create an identity and its incomplete profile.

        The identity and the profile are two separate writes. If the profile
        write fails the identity is left without a profile; this is logged as
        ``orphaned_identity`` and surfaced as ``profile/create-failed``.

        Raises:
            AuthError: If the provider rejects the registration or the profile
                cannot be written
        """
        identity = await self._call(
            "register_with_email",
            lambda: self.identity.create_user(email, password),
        )

        try:
            await self.profiles.create_incomplete_profile(
                uid=identity.uid,
                email=identity.email or email,
                account_type=account_type,
                first_name=first_name,
                last_name=last_name,
                profile_picture_url=identity.photo_url,
            )
        except Exception as e:
            # TODO: decide between deleting the identity and re-provisioning on next login
            logger.error("orphaned_identity", uid=identity.uid, email=email, error=str(e))
            raise auth_error("profile/create-failed") from e

        # The names already live in the profile; the display name is best effort
        display_name = f"{first_name} {last_name}".strip()
        if display_name:
            try:
                identity = await self.identity.update_display_name(display_name)
            except IdentityProviderError as e:
                logger.warning(
                    "display_name_update_failed",
                    uid=identity.uid,
                    provider_code=e.provider_code,
                )

        logger.info("registration_succeeded", uid=identity.uid, account_type=account_type.value)
        return identity

    async def login_with_google(self, google_id_token: str) -> Identity:
        """Sign in with a Google ID token (popup strategy)."""
        identity = await self._call(
            "login_with_google",
            lambda: self.identity.sign_in_with_google_id_token(google_id_token),
        )
        await self.ensure_profile(identity)
        logger.info("login_succeeded", uid=identity.uid, method="google_popup")
        return identity

    async def start_google_redirect(self, continue_uri: str) -> GoogleRedirect:
        """Start a Google sign-in with the redirect strategy."""
        return await self._call(
            "start_google_redirect",
            lambda: self.identity.create_google_auth_uri(continue_uri),
        )

    async def complete_google_redirect(self, request_uri: str, session_id: str) -> Identity:
        """Finish a Google redirect sign-in from the redirect result."""
        identity = await self._call(
            "complete_google_redirect",
            lambda: self.identity.sign_in_with_redirect_result(request_uri, session_id),
        )
        await self.ensure_profile(identity)
        logger.info("login_succeeded", uid=identity.uid, method="google_redirect")
        return identity

    async def ensure_profile(self, identity: Identity) -> None:
        """Provision an incomplete customer profile for a first-time Google user."""
        if await self.profiles.get_profile(identity.uid) is not None:
            return

        first_name, last_name = split_display_name(identity)
        try:
            await self.profiles.create_incomplete_profile(
                uid=identity.uid,
                email=identity.email,
                account_type=AccountType.CUSTOMER,
                first_name=first_name,
                last_name=last_name,
                profile_picture_url=identity.photo_url,
            )
        except ConflictException:
            # Provisioned concurrently by another sign-in
            return
        except Exception as e:
            logger.error("orphaned_identity", uid=identity.uid, email=identity.email, error=str(e))
            raise auth_error("profile/create-failed") from e

    async def logout(self) -> None:
        """Sign out of the identity provider."""
        uid = self.identity.current_user.uid if self.identity.current_user else None
        await self.identity.sign_out()
        logger.info("logout_succeeded", uid=uid)

    async def send_password_reset(self, email: str) -> None:
        """
        Send a password reset e-mail.

        Unknown addresses are reported as success so the response never reveals
        whether an account exists.
        """
        try:
            await self._call(
                "send_password_reset",
                lambda: self.identity.send_password_reset(email),
            )
        except AuthError as e:
            if e.code != "auth/user-not-found":
                raise
        logger.info("password_reset_requested")
