class DataClientError(Exception):
    """Base class."""


class DatabaseError(DataClientError):
    pass


class NotFoundError(DataClientError):
    pass


class FileRecordNotFoundError(NotFoundError):
    pass


class MinioError(DataClientError):
    pass


class ObjectExistsError(MinioError):
    """put_object refused to overwrite an existing key."""


class StorageNotReadyError(DataClientError):
    """The bucket is missing; run the bootstrap (`fileshare init`) first."""


class ConnectivityError(DataClientError):
    """The connectivity gate reports no network path to the stores."""


class AuthError(DataClientError):
    pass


class InvalidCredentialsError(AuthError):
    def __init__(self, message: str, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts


class AccountLockedError(AuthError):
    def __init__(self, message: str, retry_after: int = 0):
        super().__init__(message)
        self.retry_after = retry_after
