"""
authx.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide strongly-typed, env-driven settings for the issuer, directory and API.
- Hide secrets from repr/logging (client secret, directory password).
- Offer a cached settings instance for dependency injection.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Env-driven configuration (prefix `AUTHX_`).

    List-valued fields (`activation_urls`, scopes...) are read from JSON arrays.
    """

    model_config = SettingsConfigDict(env_prefix="AUTHX_", case_sensitive=False)

    env: Literal["dev", "test", "prod"] = "dev"
    service_name: str = "authx"
    log_level: str = "INFO"

    api_host: str = "0.0.0.0"
    api_port: int = 8080

    # Issuer (OpenID provider)
    openid_token_endpoint: str = "http://localhost:8081/oxauth/restv1/token"
    openid_introspection_endpoint: str = "http://localhost:8081/oxauth/restv1/introspection"
    openid_client_id: str = "authx"
    openid_client_secret: str = Field(default="dev-secret-change-me", repr=False)
    openid_grant_scopes: list[str] = Field(
        default_factory=lambda: ["uma_protection", "openid", "profile"]
    )
    openid_default_scope: str = "user"
    openid_admin_scope: str = "admin"
    http_timeout: float = 10.0

    # Directory (SCIM)
    scim_base_url: str = "http://localhost:8081/identity/restv1/scim/v2"
    scim_username: str = "admin"
    scim_password: str = Field(default="admin", repr=False)
    directory_timeout: float = 10.0

    # Credential cache
    credential_refresh_skew_seconds: int = 5

    # Workflow tokens
    activation_urls: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000/activate/"]
    )
    password_reset_urls: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000/resetPassword/"]
    )
    # None keeps tokens valid until consumed. A TTL is stamped as a non-standard
    # `created` sub-attribute on the entitlement; the directory must store unknown
    # entitlement sub-attributes, or stamped tokens silently never expire.
    workflow_token_ttl_seconds: int | None = None

    # Notifications
    notification_webhook_url: str | None = None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Cache avoids re-parsing env vars for each request dependency.
    return Settings()


# --- Module Notes -----------------------------------------------------------
# Every component receives the Settings object explicitly; nothing reads the
# environment after startup.
