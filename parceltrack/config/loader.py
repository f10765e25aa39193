# parceltrack/config/loader.py
"""
Project configuration loader.
The single source of truth is config/config.json.
Secrets and deployment-specific values are overridden from environment variables.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings


# =============================================================================
# PATHS
# =============================================================================

def get_project_root() -> Path:
    """Returns the project root directory."""
    return Path(__file__).parent.parent.parent


def get_config_path() -> Path:
    """Returns the path to the configuration file."""
    return get_project_root() / "config" / "config.json"


def load_config_json() -> dict[str, Any]:
    """Loads config.json and returns it as a dict."""
    config_path = get_config_path()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        return json.load(f)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: list[str]) -> list[str]:
    value = os.getenv(name)
    if value is None:
        return [str(v) for v in default]
    return [item.strip() for item in value.split(",") if item.strip()]


# =============================================================================
# CONFIGURATION SECTIONS
# =============================================================================

class SystemSettings(BaseModel):
    """System settings."""
    PROJECT_NAME: str = "parceltrack"
    VERSION: str = "0.3.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"


class DeploymentSettings(BaseModel):
    """HTTP surface settings."""
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8080
    API_PREFIX: str = "/api"
    CORS_ORIGINS: list[str] = Field(default_factory=list)


class LoggingSettings(BaseModel):
    """Logging settings."""
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = False
    LOG_FILE_PATH: str = "logs/parceltrack.log"
    LOG_FORMAT: str = "colored"
    LOG_MAX_BYTES: int = 10485760
    LOG_BACKUP_COUNT: int = 5


class StorageSettings(BaseModel):
    """Storage backend selection."""
    STORAGE_BACKEND: str = "postgres"

    @field_validator("STORAGE_BACKEND")
    @classmethod
    def check_backend(cls, v: str) -> str:
        """Only postgres and memory backends exist."""
        v = v.lower()
        if v not in ("postgres", "memory"):
            raise ValueError(f"Unknown storage backend: {v}")
        return v


class DatabaseSettings(BaseModel):
    """PostgreSQL settings."""
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_NAME: str = "parceltrack"
    DB_USER: str = "postgres"
    DB_PASSWORD: str = ""
    DB_MIN_POOL_SIZE: int = 5
    DB_MAX_POOL_SIZE: int = 20
    DB_COMMAND_TIMEOUT: int = 30

    @field_validator("DB_PASSWORD", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Reads the password from the environment when not set."""
        if not v:
            return os.getenv("DB_PASSWORD", "")
        return v

    @property
    def dsn(self) -> str:
        """Returns the PostgreSQL DSN."""
        return (
            f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )


class RedisSettings(BaseModel):
    """Redis settings (realtime bridge)."""
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""
    REDIS_NAMESPACE: str = "parceltrack"
    REALTIME_REDIS_BRIDGE: bool = False

    @field_validator("REDIS_PASSWORD", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Reads the password from the environment when not set."""
        if not v:
            return os.getenv("REDIS_PASSWORD", "")
        return v

    @property
    def url(self) -> str:
        """Returns the Redis URL."""
        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


class AuthSettings(BaseModel):
    """Identity gate settings."""
    AUTH_TOKEN_SECRET: str = ""
    AUTH_TOKEN_TTL: int = 3600
    ADMIN_USER_IDS: list[str] = Field(default_factory=list)
    PUBLIC_SHIPMENT_READS: bool = True

    @field_validator("AUTH_TOKEN_SECRET", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Reads the signing secret from the environment when not set."""
        if not v:
            return os.getenv("AUTH_TOKEN_SECRET", "")
        return v


class ShipmentSettings(BaseModel):
    """Tracking number generation and listing limits."""
    TRACKING_PREFIX: str = "PKG"
    TRACKING_SUFFIX_LENGTH: int = Field(default=6, ge=4, le=16)
    TRACKING_MAX_ATTEMPTS: int = Field(default=5, ge=1)
    AVAILABLE_PACKAGES_DEFAULT_LIMIT: int = 50
    AVAILABLE_PACKAGES_MAX_LIMIT: int = 200

    @field_validator("TRACKING_PREFIX")
    @classmethod
    def check_prefix(cls, v: str) -> str:
        """The prefix must survive the public tracking-number alphabet."""
        v = v.upper()
        if not v or not all(c.isascii() and (c.isalnum() or c == "-") for c in v):
            raise ValueError("TRACKING_PREFIX must contain only A-Z, 0-9 and '-'")
        return v


class LocationSettings(BaseModel):
    """Server-side location ingest policy."""
    LOCATION_RATE_LIMIT_ENABLED: bool = False
    LOCATION_RATE_LIMIT_CAPACITY: int = Field(default=3, ge=1)
    LOCATION_RATE_LIMIT_REFILL_SECONDS: float = Field(default=10.0, gt=0)


# =============================================================================
# MAIN SETTINGS CLASS
# =============================================================================

class Settings(BaseSettings):
    """
    Application settings.
    Aggregates all configuration sections.
    """
    system: SystemSettings = Field(default_factory=SystemSettings)
    deployment: DeploymentSettings = Field(default_factory=DeploymentSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    shipments: ShipmentSettings = Field(default_factory=ShipmentSettings)
    location: LocationSettings = Field(default_factory=LocationSettings)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @classmethod
    def from_config_json(cls) -> "Settings":
        """
        Builds Settings from config.json.
        Secrets and deployment values are overridden from the environment.
        """
        config_data = load_config_json()

        # Drop comment keys (_comment_*)
        data = {k: v for k, v in config_data.items() if not k.startswith("_comment_")}

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Settings":
        """Maps the flat config dict onto the settings sections."""
        return cls(
            system=SystemSettings(
                PROJECT_NAME=data.get("PROJECT_NAME", "parceltrack"),
                VERSION=data.get("VERSION", "0.3.0"),
                DEBUG=_env_bool("DEBUG", data.get("DEBUG", False)),
                ENVIRONMENT=os.getenv("ENVIRONMENT", data.get("ENVIRONMENT", "development")),
            ),
            deployment=DeploymentSettings(
                API_HOST=os.getenv("API_HOST", data.get("API_HOST", "0.0.0.0")),
                API_PORT=int(os.getenv("API_PORT", data.get("API_PORT", 8080))),
                API_PREFIX=data.get("API_PREFIX", "/api"),
                CORS_ORIGINS=_env_list("CORS_ORIGINS", data.get("CORS_ORIGINS", [])),
            ),
            logging=LoggingSettings(
                LOG_LEVEL=os.getenv("LOG_LEVEL", data.get("LOG_LEVEL", "INFO")),
                LOG_TO_FILE=_env_bool("LOG_TO_FILE", data.get("LOG_TO_FILE", False)),
                LOG_FILE_PATH=data.get("LOG_FILE_PATH", "logs/parceltrack.log"),
                LOG_FORMAT=os.getenv("LOG_FORMAT", data.get("LOG_FORMAT", "colored")),
                LOG_MAX_BYTES=data.get("LOG_MAX_BYTES", 10485760),
                LOG_BACKUP_COUNT=data.get("LOG_BACKUP_COUNT", 5),
            ),
            storage=StorageSettings(
                STORAGE_BACKEND=os.getenv("STORAGE_BACKEND", data.get("STORAGE_BACKEND", "postgres")),
            ),
            database=DatabaseSettings(
                DB_HOST=os.getenv("DB_HOST", data.get("DB_HOST", "localhost")),
                DB_PORT=int(os.getenv("DB_PORT", data.get("DB_PORT", 5432))),
                DB_NAME=os.getenv("DB_NAME", data.get("DB_NAME", "parceltrack")),
                DB_USER=os.getenv("DB_USER", data.get("DB_USER", "postgres")),
                DB_PASSWORD=os.getenv("DB_PASSWORD", data.get("DB_PASSWORD", "")),
                DB_MIN_POOL_SIZE=data.get("DB_MIN_POOL_SIZE", 5),
                DB_MAX_POOL_SIZE=data.get("DB_MAX_POOL_SIZE", 20),
                DB_COMMAND_TIMEOUT=data.get("DB_COMMAND_TIMEOUT", 30),
            ),
            redis=RedisSettings(
                REDIS_HOST=os.getenv("REDIS_HOST", data.get("REDIS_HOST", "localhost")),
                REDIS_PORT=int(os.getenv("REDIS_PORT", data.get("REDIS_PORT", 6379))),
                REDIS_DB=data.get("REDIS_DB", 0),
                REDIS_PASSWORD=os.getenv("REDIS_PASSWORD", data.get("REDIS_PASSWORD", "")),
                REDIS_NAMESPACE=data.get("REDIS_NAMESPACE", "parceltrack"),
                REALTIME_REDIS_BRIDGE=_env_bool("REALTIME_REDIS_BRIDGE", data.get("REALTIME_REDIS_BRIDGE", False)),
            ),
            auth=AuthSettings(
                AUTH_TOKEN_SECRET=os.getenv("AUTH_TOKEN_SECRET", data.get("AUTH_TOKEN_SECRET", "")),
                AUTH_TOKEN_TTL=data.get("AUTH_TOKEN_TTL", 3600),
                ADMIN_USER_IDS=_env_list("ADMIN_USER_IDS", data.get("ADMIN_USER_IDS", [])),
                PUBLIC_SHIPMENT_READS=_env_bool("PUBLIC_SHIPMENT_READS", data.get("PUBLIC_SHIPMENT_READS", True)),
            ),
            shipments=ShipmentSettings(
                TRACKING_PREFIX=data.get("TRACKING_PREFIX", "PKG"),
                TRACKING_SUFFIX_LENGTH=data.get("TRACKING_SUFFIX_LENGTH", 6),
                TRACKING_MAX_ATTEMPTS=data.get("TRACKING_MAX_ATTEMPTS", 5),
                AVAILABLE_PACKAGES_DEFAULT_LIMIT=data.get("AVAILABLE_PACKAGES_DEFAULT_LIMIT", 50),
                AVAILABLE_PACKAGES_MAX_LIMIT=data.get("AVAILABLE_PACKAGES_MAX_LIMIT", 200),
            ),
            location=LocationSettings(
                LOCATION_RATE_LIMIT_ENABLED=_env_bool(
                    "LOCATION_RATE_LIMIT_ENABLED", data.get("LOCATION_RATE_LIMIT_ENABLED", False)
                ),
                LOCATION_RATE_LIMIT_CAPACITY=data.get("LOCATION_RATE_LIMIT_CAPACITY", 3),
                LOCATION_RATE_LIMIT_REFILL_SECONDS=data.get("LOCATION_RATE_LIMIT_REFILL_SECONDS", 10.0),
            ),
        )


@lru_cache()
def get_settings() -> Settings:
    """
    Returns the application settings singleton.
    Cached for performance.
    """
    from dotenv import load_dotenv

    env_path = get_project_root() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    return Settings.from_config_json()


# Singleton export for convenient imports
settings = get_settings()
