"""Profile endpoints for the signed-in user."""

from fastapi import APIRouter, status

from app.core.exceptions import NotFoundException
from app.dependencies import CurrentUid, ProfileServiceDep
from app.schemas.profiles import (
    CustomerProfile,
    CustomerProfileCompletion,
    Profile,
    ProfileUpdate,
    ProviderProfile,
    ProviderProfileCompletion,
)

router = APIRouter()


@router.get(
    "/profiles/me",
    response_model=Profile,
    status_code=status.HTTP_200_OK,
    tags=["Profiles"],
    summary="Get own profile",
)
async def get_my_profile(uid: CurrentUid, profile_service: ProfileServiceDep) -> Profile:
    """
    Get the caller's profile document.

    Raises:
        NotFoundException: If the identity has no profile
    """
    profile = await profile_service.get_profile(uid)
    if profile is None:
        raise NotFoundException("Profile not found")
    return profile


@router.patch(
    "/profiles/me",
    response_model=Profile,
    status_code=status.HTTP_200_OK,
    tags=["Profiles"],
    summary="Update own profile",
)
async def update_my_profile(
    data: ProfileUpdate,
    uid: CurrentUid,
    profile_service: ProfileServiceDep,
) -> Profile:
    """
    Update the caller's profile.

    Only fields that apply to the profile's variant are accepted; completion
    state and account type never change here.
    """
    return await profile_service.update_profile(uid, data)


@router.post(
    "/profiles/me/complete/customer",
    response_model=CustomerProfile,
    status_code=status.HTTP_200_OK,
    tags=["Profiles"],
    summary="Complete a customer profile",
)
async def complete_customer_profile(
    data: CustomerProfileCompletion,
    uid: CurrentUid,
    profile_service: ProfileServiceDep,
) -> CustomerProfile:
    return await profile_service.complete_customer_profile(uid, data)


@router.post(
    "/profiles/me/complete/provider",
    response_model=ProviderProfile,
    status_code=status.HTTP_200_OK,
    tags=["Profiles"],
    summary="Complete a provider profile",
)
async def complete_provider_profile(
    data: ProviderProfileCompletion,
    uid: CurrentUid,
    profile_service: ProfileServiceDep,
) -> ProviderProfile:
    """
    Complete a provider profile with business details.

    At least one service and one service area are required. The profile keeps
    its document id and gains a ``providerId``.
    """
    return await profile_service.complete_provider_profile(uid, data)
