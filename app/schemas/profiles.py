"""Profile schemas.

A profile is one document per identity, keyed by the identity uid and stored
with camelCase field names. It is one of three variants:

* ``IncompleteProfile`` - written at registration, ``isProfileComplete`` false
* ``CustomerProfile`` - completed customer
* ``ProviderProfile`` - completed provider

``parse_profile`` picks the variant from ``isProfileComplete`` and
``accountType``; documents without the flag are treated as incomplete.
"""

from datetime import UTC, date, datetime
from enum import Enum
from typing import Annotated, Any, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    TypeAdapter,
    field_validator,
)
from pydantic.alias_generators import to_camel


class AccountType(str, Enum):
    """Account type chosen at registration."""

    CUSTOMER = "customer"
    PROVIDER = "provider"


class ProviderStatus(str, Enum):
    """Provider account status."""

    ACTIVE = "active"
    RESTRICTED = "restricted"
    DELETED = "deleted"


def utcnow() -> datetime:
    return datetime.now(UTC)


class DocumentModel(BaseModel):
    """Base for models persisted as camelCase documents."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict[str, Any]:
        """Serialize to a JSON-safe camelCase document."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ============================================================================
# Embedded values
# ============================================================================


class Address(DocumentModel):
    """Postal address."""

    street_and_number: str = Field(..., min_length=1, max_length=200)
    zip: str = Field(..., min_length=1, max_length=10)
    city: str = Field(..., min_length=1, max_length=100)


class Verification(DocumentModel):
    """Provider verification flags."""

    email_verified: bool = False
    id_verified: bool = False


class UserDocuments(DocumentModel):
    """References to uploaded provider documents."""

    id_url: str | None = None
    trade_license_url: str | None = None
    criminal_register_url: str | None = None
    tax_id: str | None = None


class WorkingHours(DocumentModel):
    """Daily working window, ``HH:MM`` on both ends."""

    start: str = Field(..., pattern=r"^\d{2}:\d{2}$")
    end: str = Field(..., pattern=r"^\d{2}:\d{2}$")


# ============================================================================
# Profile variants
# ============================================================================


class ProfileBase(DocumentModel):
    """Fields shared by every profile variant."""

    uid: str
    email: str
    account_type: AccountType
    first_name: str = ""
    last_name: str = ""
    profile_picture_url: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    is_profile_complete: bool = False

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class IncompleteProfile(ProfileBase):
    """Profile written at registration, before role details are collected."""

    is_profile_complete: bool = False

    @field_validator("is_profile_complete")
    @classmethod
    def validate_incomplete(cls, v: bool) -> bool:
        if v:
            raise ValueError("incomplete profile cannot be marked complete")
        return v


class CompleteProfileBase(ProfileBase):
    """Fields shared by completed profiles."""

    is_profile_complete: bool = True
    phone: str | None = Field(None, max_length=20)
    address: Address | None = None
    dob: date | None = None
    rating_avg: float = 0.0
    rating_count: int = 0
    order_count: int = 0

    @field_validator("is_profile_complete")
    @classmethod
    def validate_complete(cls, v: bool) -> bool:
        if not v:
            raise ValueError("complete profile must be marked complete")
        return v


class CustomerProfile(CompleteProfileBase):
    """Completed customer profile."""

    account_type: AccountType = AccountType.CUSTOMER
    customer_id: str

    @field_validator("account_type")
    @classmethod
    def validate_account_type(cls, v: AccountType) -> AccountType:
        if v != AccountType.CUSTOMER:
            raise ValueError("customer profile requires account type 'customer'")
        return v


class ProviderProfile(CompleteProfileBase):
    """Completed provider profile."""

    account_type: AccountType = AccountType.PROVIDER
    provider_id: str
    display_name: str | None = None
    bio: str | None = None
    status: ProviderStatus = ProviderStatus.ACTIVE
    verification: Verification = Field(default_factory=Verification)
    documents: UserDocuments = Field(default_factory=UserDocuments)
    business_name: str
    business_description: str = ""
    services: list[str] = Field(default_factory=list)
    service_area: list[str] = Field(default_factory=list)
    working_hours: WorkingHours | None = None
    service_count: int = 0

    @field_validator("account_type")
    @classmethod
    def validate_account_type(cls, v: AccountType) -> AccountType:
        if v != AccountType.PROVIDER:
            raise ValueError("provider profile requires account type 'provider'")
        return v


def _profile_tag(value: Any) -> str:
    if isinstance(value, dict):
        complete = value.get("isProfileComplete", value.get("is_profile_complete", False))
        account_type = value.get("accountType", value.get("account_type"))
    else:
        complete = getattr(value, "is_profile_complete", False)
        account_type = getattr(value, "account_type", None)

    if not complete:
        return "incomplete"
    return str(getattr(account_type, "value", account_type))


Profile = Annotated[
    Union[
        Annotated[IncompleteProfile, Tag("incomplete")],
        Annotated[CustomerProfile, Tag("customer")],
        Annotated[ProviderProfile, Tag("provider")],
    ],
    Discriminator(_profile_tag),
]

_profile_adapter: TypeAdapter[Profile] = TypeAdapter(Profile)


def parse_profile(data: dict[str, Any]) -> Profile:
    """Validate a stored document into its profile variant."""
    return _profile_adapter.validate_python(data)


# ============================================================================
# Requests
# ============================================================================


def _clean_list(values: list[str]) -> list[str]:
    cleaned = [v.strip() for v in values if v and v.strip()]
    if not cleaned:
        raise ValueError("at least one entry is required")
    # Keep order, drop duplicates
    return list(dict.fromkeys(cleaned))


class CustomerProfileCompletion(BaseModel):
    """Customer profile completion form."""

    phone: str | None = Field(None, max_length=20)
    address: Address | None = None
    dob: date | None = None


class ProviderProfileCompletion(BaseModel):
    """Provider profile completion form."""

    business_name: str = Field(..., min_length=1, max_length=200)
    business_description: str = Field("", max_length=2000)
    services: list[str] = Field(..., min_length=1)
    phone: str = Field(..., min_length=1, max_length=20)
    address: Address
    service_area: list[str] = Field(..., min_length=1)
    working_hours: WorkingHours | None = None

    @field_validator("services", "service_area")
    @classmethod
    def validate_non_empty(cls, v: list[str]) -> list[str]:
        return _clean_list(v)


PROVIDER_ONLY_FIELDS = frozenset(
    {
        "bio",
        "business_name",
        "business_description",
        "services",
        "service_area",
        "working_hours",
    }
)


class ProfileUpdate(BaseModel):
    """Partial profile update.

    Identity, account type and completion state are not updatable.
    """

    first_name: str | None = Field(None, min_length=1, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    phone: str | None = Field(None, max_length=20)
    address: Address | None = None
    dob: date | None = None
    profile_picture_url: str | None = None
    bio: str | None = Field(None, max_length=2000)
    business_name: str | None = Field(None, min_length=1, max_length=200)
    business_description: str | None = Field(None, max_length=2000)
    services: list[str] | None = None
    service_area: list[str] | None = None
    working_hours: WorkingHours | None = None

    @field_validator("services", "service_area")
    @classmethod
    def validate_non_empty(cls, v: list[str] | None) -> list[str] | None:
        if v is None:
            return v
        return _clean_list(v)
