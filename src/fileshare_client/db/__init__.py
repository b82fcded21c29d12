# fileshare_client/db/__init__.py

from .base import Base, get_session

from .file_orm import FileORM
from .login_attempt_orm import LoginAttemptORM

from . import triggers


__all__ = [
    "Base",
    "get_session",
    "FileORM",
    "LoginAttemptORM",
    "triggers",
]
