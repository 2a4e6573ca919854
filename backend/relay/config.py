"""Application configuration using pydantic-settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Relay settings loaded from environment variables.

    The identity-pool fields have no defaults: a process started without
    them fails at import time instead of accepting unverifiable tokens.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    log_level: str = "info"

    # Identity provider (Cognito user pool)
    aws_region: str
    user_pool_id: str
    client_id: str
    jwks_timeout_seconds: float = 5.0
    token_leeway_seconds: int = 0

    # MongoDB
    mongodb_uri: str = "mongodb://mongodb:27017"
    mongodb_database: str = "relay"
    connection_table: str = "MoveMatchConnections"
    message_table: str = "Messages"

    # Network listener
    host: str = "0.0.0.0"
    port: int = 3000
    ws_ping_interval: float = 20.0
    ws_ping_timeout: float = 20.0

    # CORS
    cors_origins: list[str] = ["*"]

    @property
    def issuer(self) -> str:
        return f"https://cognito-idp.{self.aws_region}.amazonaws.com/{self.user_pool_id}"

    @property
    def jwks_url(self) -> str:
        return f"{self.issuer}/.well-known/jwks.json"


settings = Settings()


def get_settings() -> Settings:
    """FastAPI dependency for injecting settings."""
    return settings
