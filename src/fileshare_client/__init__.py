# File: src/fileshare_client/__init__.py

from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from .client import FileShareClient
from .config import get_settings, FileShareConfig, PostgresConfig, MinioConfig, UploadConfig, AuthConfig
from .ingest import ConnectivityGate
from .repositories.pg_repositoryFile import FileRepository
from .repositories.minio_repository import MinioRepository

from .exceptions import *


def create_fileshare_client(config: Optional[FileShareConfig] = None,
                            gate: Optional[ConnectivityGate] = None) -> FileShareClient:
    """
    Builds a FileShareClient wired to PostgreSQL and MinIO.

    :param config: explicit settings; when omitted they come from the environment / .env.
    :param gate: connectivity gate shared with a ConnectivityMonitor, if any.
    """
    if config is None:
        s = get_settings()
        config = FileShareConfig(postgres=s.postgres, minio=s.minio, upload=s.upload)

    engine = create_async_engine(
            config.postgres.get_pg_dsn(),
            pool_size=config.postgres.pool_size,
            max_overflow=config.postgres.max_overflow,
            pool_timeout=config.postgres.pool_timeout,
            pool_recycle=config.postgres.pool_recycle,
            pool_pre_ping=config.postgres.pool_pre_ping,
            connect_args={
                "server_settings": {
                    "application_name": config.postgres.application_name
                }
            }
        )

    session_factory = async_sessionmaker(bind=engine, expire_on_commit=False)

    return FileShareClient(
        file_repo=FileRepository(session_factory),
        minio_repo=MinioRepository(config.minio),
        gate=gate,
        upload_config=config.upload,
        engine=engine,
        session_factory=session_factory,
    )


__all__ = [
    "FileShareClient", "create_fileshare_client", "ConnectivityGate",
    "FileShareConfig", "PostgresConfig", "MinioConfig", "UploadConfig", "AuthConfig",
    "DataClientError", "DatabaseError", "MinioError", "NotFoundError", "FileRecordNotFoundError",
    "ObjectExistsError", "StorageNotReadyError", "ConnectivityError",
    "AuthError", "AccountLockedError", "InvalidCredentialsError",
]
