"""Authentication schemas."""

from pydantic import BaseModel, EmailStr, Field

from app.core.identity import Identity
from app.schemas.profiles import AccountType, Profile


class LoginRequest(BaseModel):
    """E-mail/password login request."""

    email: EmailStr
    password: str = Field(..., min_length=1)


class RegisterRequest(BaseModel):
    """E-mail/password registration request."""

    email: EmailStr
    password: str = Field(..., min_length=1)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field("", max_length=100)
    account_type: AccountType = AccountType.CUSTOMER


class GoogleAuthRequest(BaseModel):
    """Google sign-in with an ID token from the popup flow."""

    id_token: str = Field(..., min_length=1, description="Google ID token")


class GoogleRedirectResponse(BaseModel):
    """Pending Google redirect sign-in."""

    auth_uri: str
    session_id: str


class GoogleCallbackRequest(BaseModel):
    """Redirect result returned by Google."""

    request_uri: str = Field(..., min_length=1, description="Full callback URL")
    session_id: str = Field(..., min_length=1)


class PasswordResetRequest(BaseModel):
    """Password reset request."""

    email: EmailStr


class TokenRequest(BaseModel):
    """Identity token handed to the cookie bridge."""

    token: str | None = None


class SuccessResponse(BaseModel):
    """Generic acknowledgement."""

    success: bool = True


class IdentityResponse(BaseModel):
    """Public view of an identity."""

    uid: str
    email: str
    display_name: str | None = None
    email_verified: bool = False
    photo_url: str | None = None

    @classmethod
    def from_identity(cls, identity: Identity) -> "IdentityResponse":
        return cls(
            uid=identity.uid,
            email=identity.email,
            display_name=identity.display_name,
            email_verified=identity.email_verified,
            photo_url=identity.photo_url,
        )


class AuthResponse(BaseModel):
    """Identity plus its profile after a sign-in."""

    user: IdentityResponse
    profile: Profile | None = None
    is_profile_complete: bool = False
