# File: src/fileshare_client/config.py

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional

MIB = 1024 * 1024


# --- PostgreSQL: the metadata store ---
class PostgresConfig(BaseModel):
    user: str = "postgres"
    password: str = "postgres"
    host: str = "localhost"
    port: int = 5432
    db: str = "fileshare"

    pool_size: int = 5
    max_overflow: int = 5
    pool_timeout: int = 30
    pool_recycle: int = 1800
    pool_pre_ping: bool = True
    application_name: str = "fileshare_client"

    def get_pg_dsn(self) -> str:
        """Builds the SQLAlchemy DSN from the fields of this object."""
        return f"postgresql+asyncpg://{self.user}:{self.password}@{self.host}:{self.port}/{self.db}"


# --- MinIO: the object store ---
class MinioConfig(BaseModel):
    endpoint: str = "localhost:9000"
    accesskey: str = "minioadmin"
    secretkey: str = "minioadmin"
    bucket: str = "files"
    secure: bool = False
    # Base for preview links, e.g. a CDN in front of the bucket.
    # When empty the link points straight at the MinIO endpoint.
    public_base_url: str | None = None


class UploadConfig(BaseModel):
    max_file_size: int = Field(50 * MIB, description="bytes")
    max_name_length: int = 255


class AuthConfig(BaseModel):
    admin_username: str = "admin"
    admin_password: str = "admin"
    secret_key: str = "change-me"
    algorithm: str = "HS256"
    session_minutes: int = 60 * 24
    cookie_name: str = "admin_session"
    cookie_secure: bool = False
    max_failed_attempts: int = 5
    lockout_minutes: int = 15


# --- Explicit configuration for create_fileshare_client() ---
class FileShareConfig(BaseModel):
    postgres: PostgresConfig = Field(default_factory=PostgresConfig)
    minio: MinioConfig = Field(default_factory=MinioConfig)
    upload: UploadConfig = Field(default_factory=UploadConfig)


# --- Settings read from the environment / .env ---
class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_nested_delimiter='_',
        # AUTH_ADMIN_USERNAME -> auth.admin_username, not auth.admin.username
        env_nested_max_split=1,
        extra='ignore'
    )

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    postgres: PostgresConfig = Field(default_factory=PostgresConfig)
    minio: MinioConfig = Field(default_factory=MinioConfig)
    upload: UploadConfig = Field(default_factory=UploadConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)

    # Seconds between backend reachability probes of the server's gate.
    probe_interval: float = Field(15.0, alias="PROBE_INTERVAL")


_cached_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Returns the settings singleton, building it on first use.
    Keeps validation errors away from import time.
    """
    global _cached_settings
    if _cached_settings is None:
        _cached_settings = Settings()
    return _cached_settings


def reset_settings() -> None:
    """Drops the cached settings so the next get_settings() rereads the environment."""
    global _cached_settings
    _cached_settings = None
