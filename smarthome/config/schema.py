"""Configuration schema using Pydantic."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings


class StoreConfig(BaseModel):
    """Device store gateway configuration."""
    backend: str = "firestore"  # firestore | sqlite
    credentials_path: str = "~/.smarthome/smart-home-key.json"  # Service account JSON
    database_url: str = ""
    sqlite_path: str = "~/.smarthome/data/devices.db"


class EngineConfig(BaseModel):
    """Command execution engine behavior."""
    reject_unknown_commands: bool = True  # False keeps the legacy silent no-op
    default_access_token: str = "Bearer 123access"  # Used when a request carries no token


class ServerAuthConfig(BaseModel):
    """Admin API auth and rate limiting."""
    enabled: bool = False
    token: str = ""
    rate_limit_enabled: bool = True
    rate_limit_rpm: int = 600
    rate_limit_burst: int = 120


class ServerConfig(BaseModel):
    """HTTP fulfillment server."""
    host: str = "0.0.0.0"
    port: int = 3000
    max_body_bytes: int = 1024 * 1024
    request_timeout_seconds: float = 10.0
    auth: ServerAuthConfig = Field(default_factory=ServerAuthConfig)


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file: str = ""  # Optional extra sink, e.g. "~/.smarthome/logs/smarthome.log"


class Config(BaseSettings):
    """Root configuration for smarthome."""
    store: StoreConfig = Field(default_factory=StoreConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = ConfigDict(
        env_prefix="SMARTHOME_",
        env_nested_delimiter="__"
    )
