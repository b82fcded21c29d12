import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import case, delete
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker, AsyncSession

from fileshare_client.db.base import get_session
from fileshare_client.db.login_attempt_orm import LoginAttemptORM
from fileshare_client.exceptions import DatabaseError
from fileshare_client.models.auth import LoginAttempt

logger = logging.getLogger(__name__)

_DB_ERRORS = (SQLAlchemyError, OSError)

# both dialects offer INSERT ... ON CONFLICT DO UPDATE
_DIALECT_INSERTS = {"postgresql": pg_insert, "sqlite": sqlite_insert}


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone=True columns
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class LoginAttemptRepository:
    """
    Failed-login counters with expiry, kept in PostgreSQL so a lockout
    survives restarts and is shared by every server instance.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get(self, client_key: str, now: datetime) -> Optional[LoginAttempt]:
        try:
            async with get_session(self._session_factory) as session:
                orm = await session.get(LoginAttemptORM, client_key)
                if orm is None or _aware(orm.expires_at) <= now:
                    return None
                return LoginAttempt(count=orm.count, last_attempt=_aware(orm.last_attempt))
        except _DB_ERRORS as e:
            raise DatabaseError(str(e)) from e

    async def record_failure(self, client_key: str, now: datetime, ttl: timedelta) -> LoginAttempt:
        """
        Counts one failure with a single upsert, so concurrent failures on the
        same key are all counted. An expired counter restarts at 1. Expired
        rows of other keys are purged in the same transaction.
        """
        values = {"client_key": client_key, "count": 1, "last_attempt": now, "expires_at": now + ttl}
        try:
            async with get_session(self._session_factory) as session:
                upsert = _DIALECT_INSERTS[session.bind.dialect.name](LoginAttemptORM).values(values)
                stmt = upsert.on_conflict_do_update(
                    index_elements=[LoginAttemptORM.client_key],
                    set_={
                        "count": case(
                            (LoginAttemptORM.expires_at <= now, 1),
                            else_=LoginAttemptORM.count + 1,
                        ),
                        "last_attempt": upsert.excluded.last_attempt,
                        "expires_at": upsert.excluded.expires_at,
                    },
                ).returning(LoginAttemptORM.count)
                count = (await session.execute(stmt)).scalar_one()
                await self._purge(session, now)
                await session.commit()
                return LoginAttempt(count=count, last_attempt=now)
        except _DB_ERRORS as e:
            raise DatabaseError(str(e)) from e

    async def clear(self, client_key: str) -> None:
        try:
            async with get_session(self._session_factory) as session:
                await session.execute(delete(LoginAttemptORM).where(LoginAttemptORM.client_key == client_key))
                await session.commit()
        except _DB_ERRORS as e:
            raise DatabaseError(str(e)) from e

    @staticmethod
    async def _purge(session: AsyncSession, now: datetime) -> int:
        res = await session.execute(delete(LoginAttemptORM).where(LoginAttemptORM.expires_at <= now))
        return res.rowcount

    async def purge_expired(self, now: datetime) -> int:
        try:
            async with get_session(self._session_factory) as session:
                purged = await self._purge(session, now)
                await session.commit()
                return purged
        except _DB_ERRORS as e:
            raise DatabaseError(str(e)) from e
