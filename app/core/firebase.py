"""Firebase Admin SDK initialization, Firestore access and token verification."""

import json
import os

import firebase_admin
from firebase_admin import auth, credentials, firestore_async
from google.cloud.firestore import AsyncClient
from structlog import get_logger

from app.config import settings

logger = get_logger(__name__)

_firebase_app: firebase_admin.App | None = None
_firestore_client: AsyncClient | None = None


def initialize_firebase(
    firebase_credentials_path: str | None = None, firebase_config_json: str | None = None
) -> None:
    """
    Initialize Firebase Admin SDK.

    Args:
        firebase_credentials_path: Optional path to service account JSON file.
        firebase_config_json: Optional raw JSON string of service account.

    Credentials are looked up in order: raw JSON string, file path, then
    Application Default Credentials.
    """
    global _firebase_app

    if _firebase_app is not None:
        logger.info("firebase_already_initialized")
        return

    try:
        cred = None

        if firebase_config_json:
            logger.info("firebase_credentials_from_json")
            cred = credentials.Certificate(json.loads(firebase_config_json))
        elif firebase_credentials_path and os.path.exists(firebase_credentials_path):
            logger.info("firebase_credentials_from_file", path=firebase_credentials_path)
            cred = credentials.Certificate(firebase_credentials_path)

        if cred:
            _firebase_app = firebase_admin.initialize_app(cred)
        else:
            _firebase_app = firebase_admin.initialize_app()
            logger.info("firebase_default_credentials")

    except Exception as e:
        logger.error("firebase_initialization_error", error=str(e))
        raise


def get_firebase_app() -> firebase_admin.App:
    """
    Get the Firebase app instance.

    Raises:
        RuntimeError: If Firebase is not initialized
    """
    if _firebase_app is None:
        raise RuntimeError("Firebase not initialized. Call initialize_firebase() first.")
    return _firebase_app


def get_firestore_client() -> AsyncClient:
    """Get the async Firestore client bound to the configured database."""
    global _firestore_client

    if _firestore_client is None:
        _firestore_client = firestore_async.client(
            app=get_firebase_app(),
            database_id=settings.firestore_database_id,
        )
        logger.info("firestore_client_created", database=settings.firestore_database_id)

    return _firestore_client


async def check_firestore_connection() -> bool:
    """Check if Firestore is reachable."""
    try:
        client = get_firestore_client()
        await client.collection("users").document("_healthcheck").get()
        return True
    except Exception:
        return False


async def verify_firebase_token(id_token: str) -> dict:
    """
    Verify a Firebase ID token.

    Args:
        id_token: Firebase ID token from the client or the session cookie

    Returns:
        Decoded token containing user claims

    Raises:
        ValueError: If token is invalid or expired
    """
    try:
        # clock_skew_seconds tolerates small clock differences with Google
        decoded_token = auth.verify_id_token(id_token, clock_skew_seconds=10)

        logger.info(
            "firebase_token_verified",
            uid=decoded_token.get("uid"),
            email=decoded_token.get("email"),
        )

        return decoded_token

    except auth.InvalidIdTokenError as e:
        logger.warning("firebase_token_invalid", error=str(e))
        raise ValueError(f"Invalid Firebase ID token: {e!s}")
    except Exception as e:
        logger.error("firebase_token_verification_failed", error=str(e))
        raise ValueError(f"Token verification failed: {e!s}")
