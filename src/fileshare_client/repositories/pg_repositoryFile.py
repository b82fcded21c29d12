import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, insert, update, delete, func, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker, AsyncSession

from fileshare_client.exceptions import DatabaseError
from fileshare_client.models.file import FileRecordCreate, FileRecordInDB
from fileshare_client.db.file_orm import FileORM
from fileshare_client.db.base import get_session

logger = logging.getLogger(__name__)

# asyncpg surfaces refused/reset connections as OSError, outside SQLAlchemy's hierarchy
_DB_ERRORS = (SQLAlchemyError, OSError)


class FileRepository:
    """Metadata store: the `files` table. Listings are driven by these rows only."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def check_connection(self):
        """Runs a trivial query to prove the database answers."""
        logger.debug("Checking PostgreSQL connection...")
        try:
            async with get_session(self._session_factory) as session:
                await session.execute(text("SELECT 1"))
            logger.debug("PostgreSQL connection successful.")
        except _DB_ERRORS as e:
            logger.error(f"PostgreSQL connection failed: {e}")
            raise DatabaseError("Failed to connect to the database.") from e

    async def table_exists(self) -> bool:
        """Bootstrap probe: selects one id from `files`."""
        try:
            async with get_session(self._session_factory) as session:
                await session.execute(select(FileORM.id).limit(1))
            return True
        except _DB_ERRORS:
            return False

    async def insert(self, record: FileRecordCreate) -> FileRecordInDB:
        """
        One INSERT ... RETURNING, converted before the commit. A failure raised
        here means the commit did not complete; whether it still landed on the
        server can only be told by looking the row up (see `get_by_path`).
        """
        stmt = insert(FileORM).values(**record.model_dump()).returning(FileORM)
        try:
            async with get_session(self._session_factory) as session:
                try:
                    res = await session.execute(stmt)
                    created = res.scalar_one().to_pydantic()
                    await session.commit()
                    return created
                except SQLAlchemyError:
                    await session.rollback()
                    raise
        except _DB_ERRORS as e:
            raise DatabaseError(f"Failed to insert file record '{record.name}': {e}") from e

    async def get(self, record_id: UUID) -> Optional[FileRecordInDB]:
        try:
            async with get_session(self._session_factory) as session:
                res = await session.execute(select(FileORM).where(FileORM.id == record_id))
                orm = res.scalar_one_or_none()
                return orm.to_pydantic() if orm else None
        except _DB_ERRORS as e:
            raise DatabaseError(str(e)) from e

    async def get_by_path(self, file_path: str) -> Optional[FileRecordInDB]:
        try:
            async with get_session(self._session_factory) as session:
                res = await session.execute(select(FileORM).where(FileORM.file_path == file_path))
                orm = res.scalar_one_or_none()
                return orm.to_pydantic() if orm else None
        except _DB_ERRORS as e:
            raise DatabaseError(str(e)) from e

    async def touch(self, record_id: UUID) -> Optional[FileRecordInDB]:
        """Refreshes `updated_at`; the only mutation a row ever gets."""
        try:
            async with get_session(self._session_factory) as session:
                await session.execute(
                    update(FileORM)
                    .where(FileORM.id == record_id)
                    .values(updated_at=func.now())
                )
                await session.commit()
                res = await session.execute(select(FileORM).where(FileORM.id == record_id))
                orm = res.scalar_one_or_none()
                return orm.to_pydantic() if orm else None
        except _DB_ERRORS as e:
            raise DatabaseError(str(e)) from e

    async def delete(self, record_id: UUID) -> bool:
        try:
            async with get_session(self._session_factory) as session:
                res = await session.execute(delete(FileORM).where(FileORM.id == record_id))
                await session.commit()
                return res.rowcount > 0
        except _DB_ERRORS as e:
            raise DatabaseError(f"Failed to delete file record {record_id}: {e}") from e

    async def list_all(self,
                       limit: int | None = None,
                       offset: int = 0) -> List[FileRecordInDB]:
        """Newest first. This is the listing the gallery and admin views render."""
        try:
            async with get_session(self._session_factory) as session:
                q = select(FileORM).order_by(FileORM.created_at.desc(), FileORM.id).offset(offset)
                if limit:
                    q = q.limit(limit)
                result = await session.execute(q)
                return [orm.to_pydantic() for orm in result.scalars().all()]
        except _DB_ERRORS as e:
            raise DatabaseError(str(e)) from e

    async def count(self) -> int:
        try:
            async with get_session(self._session_factory) as session:
                res = await session.execute(select(func.count()).select_from(FileORM))
                return int(res.scalar_one())
        except _DB_ERRORS as e:
            raise DatabaseError(str(e)) from e
