"""Firestore access for profile documents."""

from typing import Any, Protocol

from google.api_core.exceptions import AlreadyExists, NotFound
from google.cloud.firestore import AsyncClient

from app.core.exceptions import ConflictException, NotFoundException

USERS_COLLECTION = "users"


class ProfileRepository(Protocol):
    """Keyed document store for profiles; the key is always the identity uid."""

    async def get(self, uid: str) -> dict[str, Any] | None:  # pragma: no cover - Protocol
        ...

    async def create(self, uid: str, data: dict[str, Any]) -> None:  # pragma: no cover - Protocol
        """Write a new document; raises ConflictException if one exists."""
        ...

    async def update(self, uid: str, data: dict[str, Any]) -> None:  # pragma: no cover - Protocol
        """Merge fields into an existing document; raises NotFoundException if missing."""
        ...


class FirestoreProfileRepository:
    """``users`` collection in Firestore."""

    def __init__(self, client: AsyncClient) -> None:
        self._col = client.collection(USERS_COLLECTION)

    async def get(self, uid: str) -> dict[str, Any] | None:
        snapshot = await self._col.document(uid).get()
        if not snapshot.exists:
            return None
        return {"uid": uid, **(snapshot.to_dict() or {})}

    async def create(self, uid: str, data: dict[str, Any]) -> None:
        try:
            await self._col.document(uid).create(data)
        except AlreadyExists as e:
            raise ConflictException(f"Profile for {uid} already exists") from e

    async def update(self, uid: str, data: dict[str, Any]) -> None:
        try:
            await self._col.document(uid).update(data)
        except NotFound as e:
            raise NotFoundException(f"Profile for {uid} not found") from e
