"""Tests for profile creation, completion and updates."""

import json

import pytest
from pydantic import ValidationError

from app.core.exceptions import (
    BadRequestException,
    ConflictException,
    NotFoundException,
    ValidationException,
)
from app.schemas.profiles import (
    AccountType,
    CustomerProfile,
    CustomerProfileCompletion,
    IncompleteProfile,
    ProfileUpdate,
    ProviderProfile,
    ProviderProfileCompletion,
    parse_profile,
)


async def _register(profile_service, uid="uid-1", account_type=AccountType.CUSTOMER):
    return await profile_service.create_incomplete_profile(
        uid=uid,
        email=f"{uid}@example.com",
        account_type=account_type,
        first_name="Max",
        last_name="Mustermann",
    )


def test_parse_profile_without_flag_is_incomplete():
    """Test documents missing isProfileComplete are read as incomplete."""
    profile = parse_profile({"uid": "u1", "email": "a@b.com", "accountType": "provider"})

    assert isinstance(profile, IncompleteProfile)
    assert profile.is_profile_complete is False


def test_parse_profile_picks_variant():
    profile = parse_profile(
        {
            "uid": "u1",
            "email": "a@b.com",
            "accountType": "provider",
            "isProfileComplete": True,
            "providerId": "p-1",
            "businessName": "Max GmbH",
            "services": ["Gartenpflege"],
            "serviceArea": ["Berlin"],
        }
    )

    assert isinstance(profile, ProviderProfile)
    assert profile.service_area == ["Berlin"]


@pytest.mark.asyncio
async def test_create_duplicate_profile(profile_service):
    await _register(profile_service)

    with pytest.raises(ConflictException):
        await _register(profile_service)


@pytest.mark.asyncio
async def test_customer_completion_is_idempotent(profile_service, profile_repository):
    """Test completing twice keeps the customer id and stays complete."""
    await _register(profile_service)

    first = await profile_service.complete_customer_profile(
        "uid-1", CustomerProfileCompletion(phone="+49301234567")
    )
    second = await profile_service.complete_customer_profile(
        "uid-1",
        CustomerProfileCompletion(address={"street_and_number": "Hauptstr. 1", "zip": "10115", "city": "Berlin"}),
    )

    assert isinstance(second, CustomerProfile)
    assert second.is_profile_complete is True
    assert second.customer_id == first.customer_id
    assert second.phone == "+49301234567"
    assert second.address.city == "Berlin"
    assert profile_repository.documents["uid-1"]["customerId"] == first.customer_id


@pytest.mark.asyncio
async def test_provider_completion_is_idempotent(profile_service, provider_completion_data):
    await _register(profile_service, account_type=AccountType.PROVIDER)
    data = ProviderProfileCompletion(**provider_completion_data)

    first = await profile_service.complete_provider_profile("uid-1", data)
    second = await profile_service.complete_provider_profile("uid-1", data)

    assert second.provider_id == first.provider_id
    assert second.is_profile_complete is True
    assert second.uid == "uid-1"


@pytest.mark.asyncio
async def test_provider_completion_requires_services_before_write(profile_service, profile_repository):
    """Test empty services or service area are rejected without touching the store."""
    await _register(profile_service, account_type=AccountType.PROVIDER)
    reads, writes = profile_repository.reads, profile_repository.writes

    for services, service_area in ([[], ["Berlin"]], [["Gartenpflege"], []]):
        data = ProviderProfileCompletion.model_construct(
            business_name="Max GmbH",
            business_description="",
            services=services,
            phone="+49301234567",
            address=None,
            service_area=service_area,
            working_hours=None,
        )
        with pytest.raises(ValidationException):
            await profile_service.complete_provider_profile("uid-1", data)

    assert profile_repository.reads == reads
    assert profile_repository.writes == writes
    assert profile_repository.documents["uid-1"]["isProfileComplete"] is False


def test_provider_completion_form_rejects_empty_lists(provider_completion_data):
    with pytest.raises(ValidationError):
        ProviderProfileCompletion(**{**provider_completion_data, "services": []})
    with pytest.raises(ValidationError):
        ProviderProfileCompletion(**{**provider_completion_data, "service_area": ["  "]})


def test_provider_completion_form_cleans_lists(provider_completion_data):
    data = ProviderProfileCompletion(
        **{**provider_completion_data, "services": [" Gartenpflege ", "Gartenpflege", "Umzug"]}
    )

    assert data.services == ["Gartenpflege", "Umzug"]


@pytest.mark.asyncio
async def test_completion_with_wrong_account_type(profile_service, provider_completion_data):
    await _register(profile_service, uid="customer", account_type=AccountType.CUSTOMER)
    await _register(profile_service, uid="provider", account_type=AccountType.PROVIDER)

    with pytest.raises(ConflictException):
        await profile_service.complete_provider_profile(
            "customer", ProviderProfileCompletion(**provider_completion_data)
        )
    with pytest.raises(ConflictException):
        await profile_service.complete_customer_profile("provider", CustomerProfileCompletion())


@pytest.mark.asyncio
async def test_completion_without_profile(profile_service):
    with pytest.raises(NotFoundException):
        await profile_service.complete_customer_profile("missing", CustomerProfileCompletion())


@pytest.mark.asyncio
async def test_update_incomplete_profile_names_only(profile_service):
    """Test an incomplete profile only accepts name and picture changes."""
    await _register(profile_service)

    updated = await profile_service.update_profile("uid-1", ProfileUpdate(first_name="Moritz"))
    assert updated.first_name == "Moritz"
    assert isinstance(updated, IncompleteProfile)

    with pytest.raises(BadRequestException):
        await profile_service.update_profile("uid-1", ProfileUpdate(phone="+49301234567"))


@pytest.mark.asyncio
async def test_update_customer_rejects_provider_fields(profile_service):
    await _register(profile_service)
    await profile_service.complete_customer_profile("uid-1", CustomerProfileCompletion())

    with pytest.raises(BadRequestException):
        await profile_service.update_profile("uid-1", ProfileUpdate(services=["Gartenpflege"]))

    updated = await profile_service.update_profile("uid-1", ProfileUpdate(phone="+49301234567"))
    assert updated.phone == "+49301234567"
    assert isinstance(updated, CustomerProfile)


@pytest.mark.asyncio
async def test_update_provider_services_updates_count(profile_service, provider_completion_data):
    await _register(profile_service, account_type=AccountType.PROVIDER)
    await profile_service.complete_provider_profile(
        "uid-1", ProviderProfileCompletion(**provider_completion_data)
    )

    updated = await profile_service.update_profile(
        "uid-1", ProfileUpdate(services=["Gartenpflege", "Umzug"])
    )

    assert updated.services == ["Gartenpflege", "Umzug"]
    assert updated.service_count == 2


@pytest.mark.asyncio
async def test_get_profile_served_from_cache(profile_service, profile_repository, mock_redis):
    """Test a cached profile is returned without reading the store."""
    profile = await _register(profile_service)
    mock_redis.get.return_value = json.dumps(profile.to_document())
    reads = profile_repository.reads

    cached = await profile_service.get_profile("uid-1")

    assert cached == profile
    assert profile_repository.reads == reads
    mock_redis.get.assert_called_with("profile:uid-1")


@pytest.mark.asyncio
async def test_writes_invalidate_cache(profile_service, mock_redis):
    await _register(profile_service)
    mock_redis.delete.reset_mock()

    await profile_service.complete_customer_profile("uid-1", CustomerProfileCompletion())

    mock_redis.delete.assert_called_once_with("profile:uid-1")


@pytest.mark.asyncio
async def test_redis_outage_falls_back_to_store(profile_service, mock_redis):
    await _register(profile_service)
    mock_redis.get.side_effect = ConnectionError("redis down")
    mock_redis.setex.side_effect = ConnectionError("redis down")

    profile = await profile_service.get_profile("uid-1")

    assert profile.uid == "uid-1"
