from .auth import LoginAttempt
from .file import CandidateFile, FileRecordCreate, FileRecordInDB
from .outcome import (
    BatchOutcome,
    BatchSummary,
    FailedFile,
    FailureReason,
    FileOutcome,
    FileStatus,
    Notification,
    NotificationLevel,
    RejectedFile,
    RejectionReason,
    UploadReport,
)

__all__ = [
    "LoginAttempt",
    "CandidateFile", "FileRecordCreate", "FileRecordInDB",
    "BatchOutcome", "BatchSummary", "FailedFile", "FailureReason", "FileOutcome",
    "FileStatus", "Notification", "NotificationLevel", "RejectedFile", "RejectionReason", "UploadReport",
]
