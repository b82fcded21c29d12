from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from fileshare_client.db.base import Base


class LoginAttemptORM(Base):
    """Failed login counter per client key (e.g. 'admin_<username>')."""
    __tablename__ = "login_attempts"

    client_key: Mapped[str] = mapped_column(String(320), primary_key=True)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_attempt: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    # the row is dead after this moment and is treated as absent
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
