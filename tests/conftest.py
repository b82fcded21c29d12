import os
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from fileshare_client.client import FileShareClient
from fileshare_client.db.base import Base
from fileshare_client.exceptions import DatabaseError, MinioError, ObjectExistsError, StorageNotReadyError
from fileshare_client.ingest import ConnectivityGate
from fileshare_client.models import CandidateFile, FileRecordCreate, FileRecordInDB

MIB = 1024 * 1024


class FakeObjectStore:
    """In-memory stand-in for MinioRepository with switchable faults."""

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.bucket = "files"
        self.has_bucket = True
        self.fail_put_when: Callable[[str], bool] = lambda key: False
        self.fail_remove = False
        self.calls: List[tuple] = []

    async def bucket_exists(self) -> bool:
        return self.has_bucket

    async def ensure_bucket(self) -> bool:
        created = not self.has_bucket
        self.has_bucket = True
        return created

    async def check_connection(self):
        if not self.has_bucket:
            raise StorageNotReadyError("bucket missing")

    async def put_object(self, object_name, data, content_type=None, overwrite=False):
        self.calls.append(("put", object_name))
        if self.fail_put_when(object_name):
            raise MinioError("simulated write fault")
        if not overwrite and object_name in self.objects:
            raise ObjectExistsError(f"Object '{object_name}' already exists.")
        self.objects[object_name] = data

    async def get_object(self, object_name):
        try:
            return self.objects[object_name]
        except KeyError:
            raise MinioError("NoSuchKey")

    async def remove_object(self, object_name):
        self.calls.append(("remove", object_name))
        if self.fail_remove:
            raise MinioError("simulated delete fault")
        self.objects.pop(object_name, None)

    def public_url(self, object_name):
        return f"http://minio.test/files/{object_name}"


class FakeMetadataStore:
    """In-memory stand-in for FileRepository."""

    def __init__(self, objects: Optional[FakeObjectStore] = None):
        self.rows: Dict[UUID, FileRecordInDB] = {}
        self.fail_insert_when: Callable[[FileRecordCreate], bool] = lambda record: False
        # the row is stored, then the error is raised anyway (lost commit acknowledgement)
        self.fail_after_commit = False
        self.fail_lookup = False
        self._objects = objects
        self._tick = 0

    async def check_connection(self):
        return None

    async def table_exists(self) -> bool:
        return True

    async def insert(self, record: FileRecordCreate) -> FileRecordInDB:
        if self._objects is not None:
            self._objects.calls.append(("insert", record.file_path))
        if self.fail_insert_when(record):
            raise DatabaseError("simulated insert fault")
        if any(r.file_path == record.file_path for r in self.rows.values()):
            raise DatabaseError("duplicate file_path")
        self._tick += 1
        now = datetime(2026, 1, 1, tzinfo=timezone.utc) + timedelta(seconds=self._tick)
        row = FileRecordInDB(id=uuid4(), created_at=now, updated_at=now, **record.model_dump())
        self.rows[row.id] = row
        if self.fail_after_commit:
            raise DatabaseError("simulated connection drop after commit")
        return row

    async def get(self, record_id: UUID) -> Optional[FileRecordInDB]:
        return self.rows.get(record_id)

    async def get_by_path(self, file_path: str) -> Optional[FileRecordInDB]:
        if self._objects is not None:
            self._objects.calls.append(("lookup", file_path))
        if self.fail_lookup:
            raise DatabaseError("simulated lookup fault")
        rows = self.by_path(file_path)
        return rows[0] if rows else None

    async def delete(self, record_id: UUID) -> bool:
        return self.rows.pop(record_id, None) is not None

    async def list_all(self, limit=None, offset=0) -> List[FileRecordInDB]:
        rows = sorted(self.rows.values(), key=lambda r: r.created_at, reverse=True)[offset:]
        return rows[:limit] if limit else rows

    def by_path(self, file_path: str) -> List[FileRecordInDB]:
        return [r for r in self.rows.values() if r.file_path == file_path]


def make_file(name: str, size: int, mime_type: str = "application/octet-stream") -> CandidateFile:
    """Candidate whose declared size is `size`; content stays tiny to keep tests light."""
    return CandidateFile(name=name, size=size, mime_type=mime_type, content=b"x" * min(size, 64))


@pytest.fixture
def object_store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def metadata_store(object_store) -> FakeMetadataStore:
    return FakeMetadataStore(object_store)


@pytest.fixture
def gate() -> ConnectivityGate:
    return ConnectivityGate(reachable=True)


@pytest.fixture
def fake_client(object_store, metadata_store, gate) -> FileShareClient:
    return FileShareClient(file_repo=metadata_store, minio_repo=object_store, gate=gate)


@pytest_asyncio.fixture
async def sqlite_session_factory(tmp_path):
    """Real SQL engine (SQLite) with all tables created; dropped after the test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'fileshare.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture(scope="session")
def containers():
    """
    Starts PostgreSQL and MinIO once per session and points the settings at them.
    Only integration tests request this; it skips when Docker is unavailable.
    """
    try:
        from testcontainers.postgres import PostgresContainer
        from testcontainers.minio import MinioContainer

        postgres = PostgresContainer("postgres:15")
        minio = MinioContainer("minio/minio:latest", access_key="minioadmin", secret_key="minioadmin")
        postgres.start()
    except Exception as e:
        pytest.skip(f"Docker is not available: {e}")
    try:
        minio.start()
    except Exception as e:
        postgres.stop()
        pytest.skip(f"Docker is not available: {e}")

    os.environ["POSTGRES_USER"] = postgres.username
    os.environ["POSTGRES_PASSWORD"] = postgres.password
    os.environ["POSTGRES_DB"] = postgres.dbname
    os.environ["POSTGRES_HOST"] = postgres.get_container_host_ip()
    os.environ["POSTGRES_PORT"] = str(postgres.get_exposed_port(5432))

    minio_config = minio.get_config()
    os.environ["MINIO_ENDPOINT"] = minio_config["endpoint"].replace("http://", "")
    os.environ["MINIO_ACCESSKEY"] = minio_config["access_key"]
    os.environ["MINIO_SECRETKEY"] = minio_config["secret_key"]
    os.environ["MINIO_SECURE"] = "False"
    os.environ["MINIO_BUCKET"] = "test-files"

    from fileshare_client.config import reset_settings
    reset_settings()
    yield
    postgres.stop()
    minio.stop()
    reset_settings()
