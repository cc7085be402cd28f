"""Profile service for registration and profile completion."""

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

import structlog

from app.config import settings
from app.core.exceptions import (
    BadRequestException,
    ConflictException,
    NotFoundException,
    ValidationException,
)
from app.core.redis_client import CacheManager
from app.repositories.profile_repository import ProfileRepository
from app.schemas.profiles import (
    PROVIDER_ONLY_FIELDS,
    AccountType,
    CustomerProfile,
    CustomerProfileCompletion,
    IncompleteProfile,
    Profile,
    ProfileUpdate,
    ProviderProfile,
    ProviderProfileCompletion,
    parse_profile,
)

logger = structlog.get_logger(__name__)

# Fields an incomplete profile may change before completion
INCOMPLETE_UPDATABLE_FIELDS = frozenset({"first_name", "last_name", "profile_picture_url"})


class ProfileService:
    """Service for profile documents.

    Writes are keyed by uid and last writer wins. Reads go through the Redis
    cache, which every write invalidates.
    """

    def __init__(
        self,
        repository: ProfileRepository,
        cache_manager: CacheManager | None = None,
        cache_ttl: int | None = None,
    ):
        """Initialize service with a profile repository and optional cache."""
        self.repository = repository
        self.cache = cache_manager
        self.cache_ttl = cache_ttl if cache_ttl is not None else settings.profile_cache_ttl

    @staticmethod
    def _get_profile_cache_key(uid: str) -> str:
        """Generate cache key for a profile."""
        return f"profile:{uid}"

    def _invalidate(self, uid: str) -> None:
        if self.cache:
            self.cache.delete(self._get_profile_cache_key(uid))

    async def get_profile(self, uid: str) -> Profile | None:
        """Get a profile by uid, or None if no document exists."""
        if self.cache:
            cached = self.cache.get_json(self._get_profile_cache_key(uid))
            if cached:
                return parse_profile(cached)

        document = await self.repository.get(uid)
        if document is None:
            return None

        profile = parse_profile(document)

        if self.cache:
            self.cache.set_json(
                self._get_profile_cache_key(uid), profile.to_document(), ttl=self.cache_ttl
            )

        return profile

    async def _require_profile(self, uid: str) -> Profile:
        profile = await self.get_profile(uid)
        if profile is None:
            raise NotFoundException(f"Profile for {uid} not found")
        return profile

    async def create_profile(self, profile: IncompleteProfile) -> IncompleteProfile:
        """Write a new incomplete profile under the identity uid."""
        await self.repository.create(profile.uid, profile.to_document())
        self._invalidate(profile.uid)

        logger.info(
            "profile_created",
            uid=profile.uid,
            account_type=profile.account_type.value,
        )
        return profile

    async def create_incomplete_profile(
        self,
        uid: str,
        email: str,
        account_type: AccountType,
        first_name: str,
        last_name: str = "",
        profile_picture_url: str | None = None,
    ) -> IncompleteProfile:
        """Build and store the profile written right after registration."""
        return await self.create_profile(
            IncompleteProfile(
                uid=uid,
                email=email,
                account_type=account_type,
                first_name=first_name,
                last_name=last_name,
                profile_picture_url=profile_picture_url,
            )
        )

    async def complete_customer_profile(
        self, uid: str, data: CustomerProfileCompletion
    ) -> CustomerProfile:
        """
        Turn a customer's profile into a complete CustomerProfile.

        Repeating the call keeps the assigned customer id and merges the new
        contact details.

        Raises:
            NotFoundException: If the uid has no profile
            ConflictException: If the profile belongs to a provider
        """
        existing = await self._require_profile(uid)

        match existing:
            case CustomerProfile(customer_id=customer_id):
                pass
            case IncompleteProfile(account_type=AccountType.CUSTOMER):
                customer_id = uuid4().hex
            case IncompleteProfile() | ProviderProfile():
                raise ConflictException("Account type is not customer")

        profile = CustomerProfile.model_validate(
            {
                **existing.model_dump(),
                **data.model_dump(exclude_none=True),
                "customer_id": customer_id,
                "is_profile_complete": True,
                "updated_at": datetime.now(UTC),
            }
        )
        await self._persist(profile)

        logger.info("customer_profile_completed", uid=uid, customer_id=customer_id)
        return profile

    async def complete_provider_profile(
        self, uid: str, data: ProviderProfileCompletion
    ) -> ProviderProfile:
        """
        Turn a provider's profile into a complete ProviderProfile.

        Raises:
            ValidationException: If services or service area are empty
            NotFoundException: If the uid has no profile
            ConflictException: If the profile belongs to a customer
        """
        # Checked before any read so a rejected form never touches the document
        if not data.services:
            raise ValidationException("At least one service is required")
        if not data.service_area:
            raise ValidationException("At least one service area is required")

        existing = await self._require_profile(uid)

        match existing:
            case ProviderProfile(provider_id=provider_id):
                pass
            case IncompleteProfile(account_type=AccountType.PROVIDER):
                provider_id = uuid4().hex
            case IncompleteProfile() | CustomerProfile():
                raise ConflictException("Account type is not provider")

        profile = ProviderProfile.model_validate(
            {
                **existing.model_dump(),
                **data.model_dump(exclude_none=True),
                "provider_id": provider_id,
                "service_count": len(data.services),
                "is_profile_complete": True,
                "updated_at": datetime.now(UTC),
            }
        )
        await self._persist(profile)

        logger.info("provider_profile_completed", uid=uid, provider_id=provider_id)
        return profile

    async def update_profile(self, uid: str, data: ProfileUpdate) -> Profile:
        """
        Merge a partial update into an existing profile.

        Raises:
            NotFoundException: If the uid has no profile
            BadRequestException: If a field does not apply to the profile variant
        """
        existing = await self._require_profile(uid)
        changes: dict[str, Any] = data.model_dump(exclude_none=True)
        if not changes:
            return existing

        match existing:
            case IncompleteProfile():
                rejected = set(changes) - INCOMPLETE_UPDATABLE_FIELDS
            case CustomerProfile():
                rejected = set(changes) & PROVIDER_ONLY_FIELDS
            case ProviderProfile():
                rejected = set()

        if rejected:
            raise BadRequestException(
                f"Fields not updatable for this profile: {', '.join(sorted(rejected))}"
            )

        if "services" in changes:
            changes["service_count"] = len(changes["services"])

        profile = type(existing).model_validate(
            {**existing.model_dump(), **changes, "updated_at": datetime.now(UTC)}
        )
        await self._persist(profile)

        logger.info("profile_updated", uid=uid, fields=sorted(changes))
        return profile

    async def _persist(self, profile: Profile) -> None:
        await self.repository.update(profile.uid, profile.to_document())
        self._invalidate(profile.uid)
