"""
Two-store ingestion with compensation.

Each file is written to the object store first and to the metadata store
second. When the row insert fails and a lookup confirms the row is absent,
the object is deleted again, so a row never exists without its object. A
row found by that lookup makes the file a success. If the delete or the
lookup fails, the object is left behind as an orphan: it is logged and
nothing else reconciles it.
Listings are driven by rows, so orphans never show up to users.
"""
import asyncio
import logging
from typing import Callable, Optional, Protocol, Sequence

from fileshare_client.exceptions import ConnectivityError, DataClientError, StorageNotReadyError
from fileshare_client.ingest.connectivity import ConnectivityGate
from fileshare_client.ingest.keys import derive_storage_key
from fileshare_client.models import (
    BatchOutcome,
    CandidateFile,
    FailureReason,
    FileOutcome,
    FileRecordCreate,
    FileRecordInDB,
    FileStatus,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, FileOutcome], None]


class ObjectStore(Protocol):
    async def bucket_exists(self) -> bool: ...
    async def put_object(self, object_name: str, data: bytes, content_type: str | None = None,
                         overwrite: bool = False): ...
    async def remove_object(self, object_name: str): ...
    def public_url(self, object_name: str) -> str: ...


class MetadataStore(Protocol):
    async def insert(self, record: FileRecordCreate) -> FileRecordInDB: ...
    async def get_by_path(self, file_path: str) -> Optional[FileRecordInDB]: ...


class IngestionCoordinator:
    """
    Processes a batch strictly one file at a time: derive key, write bytes,
    insert row, compensate on insert failure, record the outcome, move on.
    """

    def __init__(self,
                 objects: ObjectStore,
                 records: MetadataStore,
                 gate: ConnectivityGate | None = None,
                 key_deriver: Callable[[str], str] = derive_storage_key):
        self._objects = objects
        self._records = records
        self._gate = gate or ConnectivityGate()
        self._derive_key = key_deriver

    async def check_preconditions(self) -> None:
        """Raises instead of starting when the batch cannot possibly succeed."""
        if not self._gate.is_reachable():
            raise ConnectivityError("No connection to the storage backends; upload not started.")
        try:
            exists = await self._objects.bucket_exists()
        except DataClientError as e:
            raise StorageNotReadyError(f"Storage bucket check failed: {e}") from e
        if not exists:
            # Creating the bucket is the bootstrap's job, never ingestion's.
            raise StorageNotReadyError("Storage bucket is not configured. Please complete setup first.")

    async def ingest(self,
                     batch: Sequence[CandidateFile],
                     cancel: Optional[asyncio.Event] = None,
                     on_progress: Optional[ProgressCallback] = None) -> BatchOutcome:
        """
        Uploads every admitted file of `batch` and returns one outcome per file,
        in submission order. Per-file failures never escape; only the
        preconditions (connectivity, bucket) raise, and only before any write.
        """
        outcome = BatchOutcome()
        if not batch:
            return outcome

        await self.check_preconditions()

        total = len(batch)
        logger.info(f"Starting upload batch of {total} file(s).")
        for index, candidate in enumerate(batch):
            if cancel is not None and cancel.is_set():
                outcome.cancelled = True
                outcome.results.extend(
                    FileOutcome(name=c.name, status=FileStatus.cancelled) for c in batch[index:]
                )
                logger.warning(f"Upload batch cancelled after {index} of {total} file(s).")
                break

            result = await self._ingest_one(candidate)
            outcome.results.append(result)
            self._report_progress(on_progress, index + 1, total, result)

        logger.info(
            f"Upload batch finished: {len(outcome.succeeded)} succeeded, "
            f"{len(outcome.failed)} failed, cancelled={outcome.cancelled}."
        )
        return outcome

    async def _ingest_one(self, candidate: CandidateFile) -> FileOutcome:
        key = self._derive_key(candidate.name)
        logger.info(f"Uploading '{candidate.name}' ({candidate.size} bytes) as '{key}'.")

        # Step 1: bytes. Nothing to undo if this fails.
        try:
            await self._objects.put_object(key, candidate.content, candidate.mime_type, overwrite=False)
        except Exception as e:
            logger.error(f"Object write failed for '{candidate.name}': {e}")
            return FileOutcome(
                name=candidate.name,
                status=FileStatus.failed,
                reason=FailureReason.write_failed,
                detail=str(e),
                storage_key=key,
            )

        # Step 2: the row. From here on a failure leaves an object to remove.
        try:
            record = await self._records.insert(FileRecordCreate(
                name=candidate.name,
                size=candidate.size,
                type=candidate.mime_type,
                file_path=key,
                preview_url=self._objects.public_url(key),
            ))
        except Exception as e:
            logger.error(f"Metadata insert failed for '{candidate.name}': {e}")
            record = await self._committed_row(key)
            if record is None:
                return FileOutcome(
                    name=candidate.name,
                    status=FileStatus.failed,
                    reason=FailureReason.metadata_failed,
                    detail=str(e),
                    storage_key=key,
                )
            logger.warning(f"Row for '{key}' was committed despite the error; keeping the object.")

        return FileOutcome(
            name=candidate.name,
            status=FileStatus.success,
            storage_key=key,
            record=record,
        )

    async def _committed_row(self, key: str) -> Optional[FileRecordInDB]:
        """
        Decides what a failed insert left behind. Returns the row when it exists.
        Otherwise the object is removed, unless the lookup itself fails: then the
        row's state is unknown and the object is kept as an orphan.
        """
        try:
            existing = await self._records.get_by_path(key)
        except Exception as e:
            logger.error(f"Cannot confirm the row for '{key}' is absent ({e}); orphan object left at '{key}'.")
            return None
        if existing is not None:
            return existing
        logger.info(f"Removing object '{key}'.")
        await self._compensate(key)
        return None

    async def _compensate(self, key: str) -> bool:
        try:
            await self._objects.remove_object(key)
            return True
        except Exception as e:
            # The caller still sees metadata-failed; the orphan is only logged.
            logger.error(f"Compensation failed, orphan object left at '{key}': {e}")
            return False

    @staticmethod
    def _report_progress(on_progress: Optional[ProgressCallback], done: int, total: int, result: FileOutcome):
        if on_progress is None:
            return
        try:
            on_progress(done, total, result)
        except Exception:
            logger.exception("Progress callback raised; continuing the batch.")

