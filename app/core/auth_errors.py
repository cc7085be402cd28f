"""Mapping of identity provider failures to user-facing auth errors.

The Identity Toolkit REST API reports failures as upper-case messages such as
``INVALID_PASSWORD`` or ``WEAK_PASSWORD : Password should be at least 6
characters``. They are translated to the client-style ``auth/*`` codes first
and then to the fixed German message shown in the UI.
"""

from app.core.exceptions import AuthError

DEFAULT_MESSAGE = "Ein Fehler ist aufgetreten. Bitte versuchen Sie es erneut."
PROFILE_NOT_FOUND_MESSAGE = "Profil nicht gefunden."
PROFILE_CREATE_FAILED_MESSAGE = "Profil konnte nicht angelegt werden."

PROVIDER_CODES: dict[str, str] = {
    "EMAIL_NOT_FOUND": "auth/user-not-found",
    "USER_NOT_FOUND": "auth/user-not-found",
    "INVALID_PASSWORD": "auth/wrong-password",
    "INVALID_EMAIL": "auth/invalid-email",
    "MISSING_EMAIL": "auth/invalid-email",
    "USER_DISABLED": "auth/user-disabled",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "auth/too-many-requests",
    "EMAIL_EXISTS": "auth/email-already-in-use",
    "WEAK_PASSWORD": "auth/weak-password",
    "MISSING_PASSWORD": "auth/missing-password",
    "INVALID_LOGIN_CREDENTIALS": "auth/invalid-credential",
    "INVALID_IDP_RESPONSE": "auth/invalid-credential",
    "OPERATION_NOT_ALLOWED": "auth/operation-not-allowed",
    "TOKEN_EXPIRED": "auth/user-token-expired",
    "INVALID_ID_TOKEN": "auth/invalid-user-token",
    "INVALID_REFRESH_TOKEN": "auth/invalid-user-token",
    "NETWORK_REQUEST_FAILED": "auth/network-request-failed",
}

MESSAGES: dict[str, str] = {
    "auth/user-not-found": "Benutzer nicht gefunden.",
    "auth/wrong-password": "Falsches Passwort.",
    "auth/email-already-in-use": "Diese E-Mail-Adresse wird bereits verwendet.",
    "auth/weak-password": "Das Passwort ist zu schwach.",
    "auth/invalid-email": "Ungültige E-Mail-Adresse.",
    "auth/user-disabled": "Dieses Konto wurde deaktiviert.",
    "auth/too-many-requests": "Zu viele Anfragen. Bitte versuchen Sie es später erneut.",
    "auth/network-request-failed": "Netzwerkfehler. Bitte überprüfen Sie Ihre Internetverbindung.",
    "auth/invalid-credential": "Ungültige Anmeldedaten.",
    "auth/popup-closed-by-user": "Das Popup-Fenster wurde geschlossen.",
    "auth/popup-blocked": "Popup wurde blockiert. Bitte erlauben Sie Popups für diese Seite.",
    "auth/cancelled-popup-request": "Login wurde abgebrochen.",
    "profile/not-found": PROFILE_NOT_FOUND_MESSAGE,
    "profile/create-failed": PROFILE_CREATE_FAILED_MESSAGE,
}

# HTTP status per client code; everything else is a 400
STATUS_CODES: dict[str, int] = {
    "auth/user-not-found": 401,
    "auth/wrong-password": 401,
    "auth/invalid-credential": 401,
    "auth/user-disabled": 403,
    "auth/email-already-in-use": 409,
    "auth/too-many-requests": 429,
    "auth/network-request-failed": 503,
    "profile/create-failed": 500,
    "auth/internal-error": 500,
}


def to_client_code(provider_code: str) -> str:
    """Translate an Identity Toolkit error message to an ``auth/*`` code."""
    # "WEAK_PASSWORD : Password should be at least 6 characters"
    key = provider_code.split(":", 1)[0].strip().upper()
    return PROVIDER_CODES.get(key, "auth/internal-error")


def get_auth_error_message(code: str) -> str:
    """Return the German message for a client error code."""
    return MESSAGES.get(code, DEFAULT_MESSAGE)


def auth_error(code: str) -> AuthError:
    """Build a typed auth error for a client code."""
    return AuthError(
        code=code,
        message=get_auth_error_message(code),
        status_code=STATUS_CODES.get(code, 400),
    )


def from_provider_code(provider_code: str) -> AuthError:
    """Build a typed auth error straight from an Identity Toolkit message."""
    return auth_error(to_client_code(provider_code))
