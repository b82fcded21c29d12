from __future__ import annotations

import enum
from typing import List, Optional

from pydantic import BaseModel, Field

from .file import FileRecordInDB


class FileStatus(str, enum.Enum):
    success = "success"
    failed = "failed"
    # the batch was cancelled before this file's byte write started
    cancelled = "cancelled"


class FailureReason(str, enum.Enum):
    write_failed = "write-failed"
    metadata_failed = "metadata-failed"
    validation_failed = "validation-failed"


class RejectionReason(str, enum.Enum):
    size = "size"
    format = "format"
    name = "name"
    duplicate = "duplicate"


class RejectedFile(BaseModel):
    name: str
    size: int
    reasons: List[RejectionReason]


class FileOutcome(BaseModel):
    name: str
    status: FileStatus
    reason: Optional[FailureReason] = None
    detail: Optional[str] = None
    storage_key: Optional[str] = None
    record: Optional[FileRecordInDB] = None


class BatchOutcome(BaseModel):
    results: List[FileOutcome] = Field(default_factory=list)
    cancelled: bool = False

    def __len__(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> List[FileOutcome]:
        return [r for r in self.results if r.status == FileStatus.success]

    @property
    def failed(self) -> List[FileOutcome]:
        return [r for r in self.results if r.status == FileStatus.failed]


class FailedFile(BaseModel):
    name: str
    reason: FailureReason
    detail: Optional[str] = None


class BatchSummary(BaseModel):
    total: int
    succeeded: int
    failed: int
    cancelled: int = 0
    failures: List[FailedFile] = Field(default_factory=list)
    rejected: List[RejectedFile] = Field(default_factory=list)


class NotificationLevel(str, enum.Enum):
    success = "success"
    warning = "warning"
    error = "error"


class Notification(BaseModel):
    title: str
    description: str
    level: NotificationLevel


class UploadReport(BaseModel):
    outcome: BatchOutcome
    summary: BatchSummary
    notifications: List[Notification] = Field(default_factory=list)
