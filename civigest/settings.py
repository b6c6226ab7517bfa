from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    App settings.

    Notes:
    - `jwt_secret` has no default; the app refuses to start without one.
    - `token_ttl_seconds` is also the window during which a role or permission
      change does not reach an already issued credential.
    - Agent credentials are signed with `agent_jwt_secret`, which must differ
      from `jwt_secret` so neither kind of token verifies as the other.
    """

    model_config = SettingsConfigDict(env_prefix="CIVIGEST_", extra="ignore")

    db_url: str | None = None
    security_config_path: str | None = None
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000

    jwt_secret: str
    jwt_algorithm: str = "HS256"
    jwt_issuer: str = "civigest"
    token_ttl_seconds: int = 604800
    clock_skew_seconds: int = 30

    agent_jwt_secret: str
    agent_token_ttl_seconds: int = 28800

    unrestricted_role: str = "Super Administrador"
    default_role: str = "Usuario"
    refresh_scope_grants: bool = True

    # Declared permissions missing from storage are created at startup and
    # linked to these roles.
    provision_permissions: bool = True
    permission_admin_roles: list[str] = ["Super Administrador", "Administrador Estatal", "Administrador Municipal"]

    bcrypt_rounds: int = 12
    seed_demo_data: bool = True

    @field_validator("jwt_secret", "agent_jwt_secret")
    @classmethod
    def _secret_not_blank(cls, value: str, info) -> str:
        if not value.strip():
            raise ValueError(f"CIVIGEST_{info.field_name.upper()} must not be empty")
        return value

    @model_validator(mode="after")
    def _secrets_differ(self) -> Settings:
        if self.jwt_secret == self.agent_jwt_secret:
            raise ValueError("CIVIGEST_AGENT_JWT_SECRET must differ from CIVIGEST_JWT_SECRET")
        return self

    def resolved_db_url(self) -> str:
        if self.db_url:
            return self.db_url

        repo_root = Path(__file__).resolve().parents[1]
        db_path = repo_root / "civigest.db"
        return f"sqlite:///{db_path}"

    def resolved_security_config_path(self) -> Path:
        if self.security_config_path:
            return Path(self.security_config_path)

        repo_root = Path(__file__).resolve().parents[1]
        return repo_root / "config" / "security_config.yaml"


@lru_cache
def get_settings() -> Settings:
    return Settings()
