from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class CandidateFile(BaseModel):
    """
    A file picked for upload, before it has any identity.
    Two candidates are duplicates when name and size match.
    """
    name: str
    size: int = Field(..., ge=0)
    mime_type: str = "application/octet-stream"
    content: bytes = Field(default=b"", repr=False)

    @classmethod
    def from_bytes(cls, name: str, content: bytes, mime_type: str | None = None) -> "CandidateFile":
        return cls(
            name=name,
            size=len(content),
            mime_type=mime_type or "application/octet-stream",
            content=content,
        )

    def same_file(self, other: "CandidateFile") -> bool:
        return self.name == other.name and self.size == other.size


class FileRecordCreate(BaseModel):
    name: str
    size: int = Field(..., ge=0)
    type: str
    file_path: str
    preview_url: str


class FileRecordInDB(FileRecordCreate):
    id: UUID
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
