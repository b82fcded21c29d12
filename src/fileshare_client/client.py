import asyncio
import logging
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from fileshare_client.config import UploadConfig
from fileshare_client.db.base import Base
from fileshare_client.exceptions import (
    DatabaseError,
    DataClientError,
    FileRecordNotFoundError,
    MinioError,
)
from fileshare_client.ingest import (
    ConnectivityGate,
    IngestionCoordinator,
    notifications,
    prepare_batch,
    summarize,
)
from fileshare_client.ingest.coordinator import ProgressCallback
from fileshare_client.models import (
    BatchOutcome,
    CandidateFile,
    FileRecordInDB,
    RejectedFile,
    UploadReport,
)
from fileshare_client.repositories import FileRepository, MinioRepository

logger = logging.getLogger(__name__)


class FileShareClient:
    """
    Single entry point for the upload, listing and delete flows.
    """

    def __init__(
        self,
        file_repo: FileRepository | None = None,
        minio_repo: MinioRepository | None = None,
        gate: ConnectivityGate | None = None,
        upload_config: UploadConfig | None = None,
        engine: AsyncEngine | None = None,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ):
        self.files = file_repo
        self.minio = minio_repo
        self.gate = gate or ConnectivityGate()
        self.upload_config = upload_config or UploadConfig()
        self._engine = engine
        self.session_factory = session_factory
        self.coordinator = IngestionCoordinator(self.minio, self.files, self.gate)

    async def aclose(self):
        if self._engine is not None:
            await self._engine.dispose()

    async def check_connections(self) -> dict[str, str]:
        """
        Checks that PostgreSQL and MinIO answer.
        Returns a status per service: "ok" or "failed: <reason>".
        """
        statuses = {}

        try:
            await self.files.check_connection()
            statuses["postgres"] = "ok"
        except DatabaseError as e:
            statuses["postgres"] = f"failed: {e}"

        try:
            await self.minio.check_connection()
            statuses["minio"] = "ok"
        except DataClientError as e:
            statuses["minio"] = f"failed: {e}"

        return statuses

    async def probe(self) -> bool:
        """Reachability probe for ConnectivityMonitor."""
        statuses = await self.check_connections()
        return all(s == "ok" for s in statuses.values())

    # ――― bootstrap ――― #

    async def storage_status(self) -> dict[str, bool]:
        """What the setup flow needs to know: is the bucket there, is the table there."""
        try:
            bucket = await self.minio.bucket_exists()
        except MinioError:
            bucket = False
        return {"bucket": bucket, "table": await self.files.table_exists()}

    async def bootstrap(self) -> dict[str, bool]:
        """
        Explicit setup: creates the tables and the public bucket if missing.
        Never called from the upload path.
        """
        if self._engine is None:
            raise DataClientError("bootstrap() needs the client's engine; build it with create_fileshare_client().")
        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except (SQLAlchemyError, OSError) as e:
            raise DatabaseError(f"Failed to create tables: {e}") from e
        bucket_created = await self.minio.ensure_bucket()
        logger.info(f"Bootstrap complete (bucket created: {bucket_created}).")
        return {"tables": True, "bucket_created": bucket_created}

    # ――― upload ――― #

    def prepare_batch(self, candidates: Sequence[CandidateFile]) -> tuple[List[CandidateFile], List[RejectedFile]]:
        return prepare_batch(candidates, self.upload_config)

    async def ingest(self,
                     batch: Sequence[CandidateFile],
                     cancel: Optional[asyncio.Event] = None,
                     on_progress: Optional[ProgressCallback] = None) -> BatchOutcome:
        return await self.coordinator.ingest(batch, cancel=cancel, on_progress=on_progress)

    async def upload(self,
                     candidates: Sequence[CandidateFile],
                     cancel: Optional[asyncio.Event] = None,
                     on_progress: Optional[ProgressCallback] = None) -> UploadReport:
        """
        Validate, ingest, summarise. Rejected files never reach the stores.
        Raises ConnectivityError / StorageNotReadyError before any write when
        the batch cannot start.
        """
        admitted, rejected = self.prepare_batch(candidates)
        for r in rejected:
            logger.info(f"Rejected '{r.name}': {', '.join(x.value for x in r.reasons)}")
        outcome = await self.ingest(admitted, cancel=cancel, on_progress=on_progress)
        summary = summarize(outcome, rejected)
        return UploadReport(
            outcome=outcome,
            summary=summary,
            notifications=notifications(summary, self.upload_config),
        )

    # ――― listing ――― #

    async def list_files(self, limit: int | None = None, offset: int = 0) -> List[FileRecordInDB]:
        """Rows are the source of truth; callers refetch this after every mutation."""
        return await self.files.list_all(limit, offset)

    async def get_file(self, record_id: UUID) -> FileRecordInDB:
        record = await self.files.get(record_id)
        if record is None:
            raise FileRecordNotFoundError(f"File record {record_id} not found.")
        return record

    async def get_file_content(self, record_id: UUID) -> bytes:
        record = await self.get_file(record_id)
        return await self.minio.get_object(record.file_path)

    # ――― delete ――― #

    async def delete_file(self, record: FileRecordInDB) -> bool:
        """
        Removes the object first, then the row. Safe to repeat: a missing
        object is not an error and a missing row just returns False.
        A failed object delete leaves the row in place, so the listing
        never points at bytes that are gone.
        """
        await self.minio.remove_object(record.file_path)
        deleted = await self.files.delete(record.id)
        if deleted:
            logger.info(f"Deleted file '{record.name}' ({record.id}).")
        else:
            logger.info(f"File record {record.id} was already absent.")
        return deleted

    async def delete_file_by_id(self, record_id: UUID) -> bool:
        record = await self.get_file(record_id)
        return await self.delete_file(record)
