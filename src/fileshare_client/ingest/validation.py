"""
Admission rules for files entering an upload batch.

All rules are evaluated for every candidate, so a file can be rejected for
several reasons at once. Nothing here touches a store.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Sequence, Tuple

from fileshare_client.config import UploadConfig
from fileshare_client.models import CandidateFile, RejectedFile, RejectionReason

IMAGE_EXTS = ["jpg", "jpeg", "png", "gif", "webp", "svg", "bmp"]
DOCUMENT_EXTS = ["pdf", "doc", "docx", "txt", "rtf"]
SPREADSHEET_EXTS = ["xls", "xlsx", "csv"]
PRESENTATION_EXTS = ["ppt", "pptx"]
VIDEO_EXTS = ["mp4", "mov", "avi", "mkv", "webm"]
AUDIO_EXTS = ["mp3", "wav", "m4a", "aac", "ogg"]
ARCHIVE_EXTS = ["zip", "rar", "7z", "tar", "gz"]

CATEGORIES = {
    "image": IMAGE_EXTS,
    "document": DOCUMENT_EXTS,
    "spreadsheet": SPREADSHEET_EXTS,
    "presentation": PRESENTATION_EXTS,
    "video": VIDEO_EXTS,
    "audio": AUDIO_EXTS,
    "archive": ARCHIVE_EXTS,
}
SUPPORTED_EXTS = frozenset(ext for exts in CATEGORIES.values() for ext in exts)


def get_extension(file_name: str) -> str:
    # Text after the last dot; a name without a dot is its own "extension".
    return file_name.rsplit(".", 1)[-1].lower()


def is_format_supported(file_name: str) -> bool:
    ext = get_extension(file_name)
    return bool(ext) and ext in SUPPORTED_EXTS


def file_category(file_name: str) -> str:
    ext = get_extension(file_name)
    for category, exts in CATEGORIES.items():
        if ext in exts:
            return category
    return "unknown"


@dataclass(frozen=True)
class ValidationResult:
    reasons: List[RejectionReason] = field(default_factory=list)

    @property
    def admitted(self) -> bool:
        return not self.reasons


def validate_file(candidate: CandidateFile,
                  pending: Iterable[CandidateFile] = (),
                  limits: UploadConfig | None = None) -> ValidationResult:
    """
    Decides whether `candidate` may join a batch that already holds `pending`.
    Rules do not short-circuit: every applicable reason is reported once.
    """
    limits = limits or UploadConfig()
    reasons: List[RejectionReason] = []

    if candidate.size > limits.max_file_size:
        reasons.append(RejectionReason.size)
    if not is_format_supported(candidate.name):
        reasons.append(RejectionReason.format)
    # len() on str counts code points
    if len(candidate.name) > limits.max_name_length:
        reasons.append(RejectionReason.name)
    if any(candidate.same_file(p) for p in pending):
        reasons.append(RejectionReason.duplicate)

    return ValidationResult(reasons)


def prepare_batch(candidates: Sequence[CandidateFile],
                  limits: UploadConfig | None = None) -> Tuple[List[CandidateFile], List[RejectedFile]]:
    """
    Splits a selection into admitted files and rejections, in submission order.
    Only admitted files count toward duplicate detection.
    """
    admitted: List[CandidateFile] = []
    rejected: List[RejectedFile] = []
    for candidate in candidates:
        result = validate_file(candidate, admitted, limits)
        if result.admitted:
            admitted.append(candidate)
        else:
            rejected.append(RejectedFile(name=candidate.name, size=candidate.size, reasons=result.reasons))
    return admitted, rejected
