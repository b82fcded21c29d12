from typing import List, Sequence

from fileshare_client.config import MIB, UploadConfig
from fileshare_client.models import (
    BatchOutcome,
    BatchSummary,
    FailedFile,
    FileStatus,
    Notification,
    NotificationLevel,
    RejectedFile,
    RejectionReason,
)


def summarize(outcome: BatchOutcome, rejected: Sequence[RejectedFile] = ()) -> BatchSummary:
    """Counts per status; failures keep submission order."""
    failures = [
        FailedFile(name=r.name, reason=r.reason, detail=r.detail)
        for r in outcome.results
        if r.status == FileStatus.failed
    ]
    return BatchSummary(
        total=len(outcome.results),
        succeeded=sum(1 for r in outcome.results if r.status == FileStatus.success),
        failed=len(failures),
        cancelled=sum(1 for r in outcome.results if r.status == FileStatus.cancelled),
        failures=failures,
        rejected=list(rejected),
    )


def _rejection_notice(file: RejectedFile, reason: RejectionReason, limits: UploadConfig) -> Notification:
    if reason == RejectionReason.size:
        return Notification(
            title="File Too Large",
            description=f'"{file.name}" exceeds the {limits.max_file_size // MIB}MB limit',
            level=NotificationLevel.warning,
        )
    if reason == RejectionReason.format:
        return Notification(
            title="Unsupported File Format",
            description=f'"{file.name}" format is not supported',
            level=NotificationLevel.error,
        )
    if reason == RejectionReason.name:
        return Notification(
            title="File Name Too Long",
            description=f'"{file.name[:40]}..." exceeds {limits.max_name_length} characters',
            level=NotificationLevel.warning,
        )
    return Notification(
        title="Duplicate File",
        description=f'"{file.name}" already selected',
        level=NotificationLevel.warning,
    )


def notifications(summary: BatchSummary, limits: UploadConfig | None = None) -> List[Notification]:
    """
    User-facing messages: one per rejection reason, one aggregate success
    message, then one per failed file. Orphaned objects are never mentioned.
    """
    limits = limits or UploadConfig()
    notes: List[Notification] = []

    for file in summary.rejected:
        for reason in file.reasons:
            notes.append(_rejection_notice(file, reason, limits))

    if summary.succeeded:
        plural = "s" if summary.succeeded > 1 else ""
        notes.append(Notification(
            title="Upload Successful",
            description=f"{summary.succeeded} file{plural} uploaded successfully",
            level=NotificationLevel.success,
        ))

    for failure in summary.failures:
        notes.append(Notification(
            title="Upload Failed",
            description=f'Failed to upload "{failure.name}": {failure.reason.value}',
            level=NotificationLevel.error,
        ))

    if summary.cancelled:
        notes.append(Notification(
            title="Upload Cancelled",
            description=f"{summary.cancelled} file(s) were not uploaded",
            level=NotificationLevel.warning,
        ))
    return notes
