from .minio_repository import MinioRepository
from .pg_repositoryFile import FileRepository
from .pg_repositoryLoginAttempt import LoginAttemptRepository

__all__ = [
    "MinioRepository",
    "FileRepository",
    "LoginAttemptRepository",
]
