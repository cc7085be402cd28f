"""Application configuration."""

from functools import lru_cache
from urllib.parse import quote

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """Settings read from the environment and ``.env``; keys are upper-case aliases."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_parse_none_str="null",
    )

    # Application
    app_name: str = Field(default="SideHustlers API", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    api_prefix: str = Field(default="/api", alias="API_PREFIX")
    api_v1_prefix: str = Field(default="/api/v1", alias="API_V1_PREFIX")

    # Server
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")
    reload: bool = Field(default=False, alias="RELOAD")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="json", alias="LOG_FORMAT")

    # Redis (profile cache)
    redis_host: str = Field(default="localhost", alias="REDIS_HOST")
    redis_port: int = Field(default=6379, alias="REDIS_PORT")
    redis_db: int = Field(default=0, alias="REDIS_DB")
    redis_username: str = Field(default="", alias="REDIS_USERNAME")
    redis_password: str = Field(default="", alias="REDIS_PASSWORD")
    redis_decode_responses: bool = Field(default=True, alias="REDIS_DECODE_RESPONSES")
    redis_socket_timeout: float = Field(default=2.0, alias="REDIS_SOCKET_TIMEOUT")
    profile_cache_ttl: int = Field(default=1800, alias="PROFILE_CACHE_TTL")

    # Firebase Admin SDK (Firestore, token verification)
    firebase_credentials_path: str | None = Field(
        default=None,
        alias="FIREBASE_CREDENTIALS_PATH",
        description="Path to Firebase service account JSON file",
    )
    firebase_config_json: str | None = Field(
        default=None,
        alias="FIREBASE_CONFIG_JSON",
        description="Raw JSON string of the Firebase service account",
    )
    firestore_database_id: str | None = Field(default="sidehustlers", alias="FIRESTORE_DATABASE_ID")

    # Identity Toolkit REST API (sign-in on behalf of the user)
    firebase_api_key: str = Field(
        default="",
        alias="FIREBASE_API_KEY",
        description="Web API key of the Firebase project",
    )
    identity_toolkit_url: str = Field(
        default="https://identitytoolkit.googleapis.com/v1",
        alias="IDENTITY_TOOLKIT_URL",
    )
    secure_token_url: str = Field(
        default="https://securetoken.googleapis.com/v1",
        alias="SECURE_TOKEN_URL",
    )
    identity_request_timeout: float = Field(default=10.0, alias="IDENTITY_REQUEST_TIMEOUT")

    # Session cookie; one lifetime for every endpoint that sets it
    session_cookie_name: str = Field(default="firebase-auth-token", alias="SESSION_COOKIE_NAME")
    session_cookie_max_age_days: int = Field(default=5, alias="SESSION_COOKIE_MAX_AGE_DAYS")
    token_refresh_interval_minutes: int = Field(default=50, alias="TOKEN_REFRESH_INTERVAL_MINUTES")

    # Route guard
    protected_prefixes_str: str = Field(
        default="/dashboard,/account,/orders,/chat,/admin",
        alias="PROTECTED_PREFIXES",
    )
    public_paths_str: str = Field(
        default="/,/login,/register,/services",
        alias="PUBLIC_PATHS",
    )
    login_path: str = Field(default="/login", alias="LOGIN_PATH")

    # CORS
    cors_origins_str: str = Field(default="http://localhost:3000", alias="CORS_ORIGINS")
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def redis_url(self) -> str:
        """Connection URL built from the individual Redis settings."""
        auth = ""
        if self.redis_password:
            auth = f"{quote(self.redis_username, safe='')}:{quote(self.redis_password, safe='')}@"
        return f"redis://{auth}{self.redis_host}:{self.redis_port}/{self.redis_db}"

    @property
    def session_cookie_max_age(self) -> int:
        """Session cookie lifetime in seconds."""
        return self.session_cookie_max_age_days * 24 * 60 * 60

    @property
    def cors_origins(self) -> list[str]:
        return _split_csv(self.cors_origins_str)

    @property
    def protected_prefixes(self) -> list[str]:
        """Path prefixes gated by the route guard."""
        return _split_csv(self.protected_prefixes_str)

    @property
    def public_paths(self) -> list[str]:
        """Paths (and their sub-paths) that never require a session."""
        return _split_csv(self.public_paths_str)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()  # type: ignore[call-arg]


settings = get_settings()
