"""FastAPI dependencies."""

from typing import Annotated

import httpx
import redis
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from google.cloud.firestore import AsyncClient

from app.core.firebase import get_firestore_client, verify_firebase_token
from app.core.identity import IdentityClient, get_http_client
from app.core.redis_client import CacheManager, get_redis_client
from app.core.session_cookie import get_session_token
from app.repositories.job_repository import FirestoreJobRepository, JobRepository
from app.repositories.profile_repository import FirestoreProfileRepository, ProfileRepository
from app.services.auth_service import AuthService
from app.services.job_service import JobService
from app.services.profile_service import ProfileService

# Bearer is optional; browsers authenticate with the session cookie instead
security = HTTPBearer(auto_error=False)


def get_cache_manager(
    redis_client: Annotated[redis.Redis, Depends(get_redis_client)],
) -> CacheManager:
    """Get cache manager over the shared Redis client."""
    return CacheManager(redis_client)


def get_profile_repository(
    firestore: Annotated[AsyncClient, Depends(get_firestore_client)],
) -> ProfileRepository:
    return FirestoreProfileRepository(firestore)


def get_job_repository(
    firestore: Annotated[AsyncClient, Depends(get_firestore_client)],
) -> JobRepository:
    return FirestoreJobRepository(firestore)


def get_profile_service(
    repository: Annotated[ProfileRepository, Depends(get_profile_repository)],
    cache_manager: Annotated[CacheManager, Depends(get_cache_manager)],
) -> ProfileService:
    """Get profile service instance."""
    return ProfileService(repository, cache_manager)


def get_identity_client(
    http_client: Annotated[httpx.AsyncClient, Depends(get_http_client)],
) -> IdentityClient:
    """Fresh identity client per request; sign-in state never leaks between requests."""
    return IdentityClient(http_client)


def get_auth_service(
    identity_client: Annotated[IdentityClient, Depends(get_identity_client)],
    profile_service: Annotated[ProfileService, Depends(get_profile_service)],
) -> AuthService:
    """Get auth service instance."""
    return AuthService(identity_client, profile_service)


def get_job_service(
    repository: Annotated[JobRepository, Depends(get_job_repository)],
) -> JobService:
    return JobService(repository)


async def get_current_uid(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> str:
    """
    Verify the caller's Firebase ID token and return its uid.

    The token is taken from the Authorization header, falling back to the
    session cookie.

    Raises:
        HTTPException: If no token is present or it fails verification
    """
    token = credentials.credentials if credentials else get_session_token(request)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        decoded = await verify_firebase_token(token)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    uid = decoded.get("uid")
    if not uid or not isinstance(uid, str):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return uid


# Type aliases for dependency injection
CurrentUid = Annotated[str, Depends(get_current_uid)]
CacheManagerDep = Annotated[CacheManager, Depends(get_cache_manager)]
ProfileServiceDep = Annotated[ProfileService, Depends(get_profile_service)]
AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
JobServiceDep = Annotated[JobService, Depends(get_job_service)]
