from uuid import UUID, uuid4

from sqlalchemy import BigInteger, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from fileshare_client.db.base import Base, CreatedAt, UpdatedAt
from fileshare_client.models.file import FileRecordInDB


class FileORM(Base):
    """
    One row per successfully ingested file.
    Every row must have an object at `file_path`; the reverse is not required.
    """
    __tablename__ = "files"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)  # original name, verbatim
    size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    type: Mapped[str] = mapped_column(String(255), nullable=False)
    file_path: Mapped[str] = mapped_column(Text, nullable=False, unique=True)  # storage key
    preview_url: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[CreatedAt]
    updated_at: Mapped[UpdatedAt]

    __table_args__ = (
        Index("idx_files_created_at", "created_at"),
    )

    def to_pydantic(self) -> FileRecordInDB:
        return FileRecordInDB.model_validate(self)
