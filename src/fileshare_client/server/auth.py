import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Annotated, Callable, Dict, Optional, Protocol, Tuple

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError, jwt

from fileshare_client.config import AuthConfig
from fileshare_client.exceptions import AccountLockedError, AuthError, InvalidCredentialsError
from fileshare_client.models import LoginAttempt

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# --- 1. Failed-attempt stores ---
class AttemptStore(Protocol):
    async def get(self, client_key: str, now: datetime) -> Optional[LoginAttempt]: ...
    async def record_failure(self, client_key: str, now: datetime, ttl: timedelta) -> LoginAttempt: ...
    async def clear(self, client_key: str) -> None: ...


class InMemoryAttemptStore:
    """Keyed counters with expiry for a single process. Use LoginAttemptRepository when scaled out."""

    def __init__(self):
        self._entries: Dict[str, Tuple[LoginAttempt, datetime]] = {}

    async def get(self, client_key: str, now: datetime) -> Optional[LoginAttempt]:
        entry = self._entries.get(client_key)
        if entry is None:
            return None
        attempt, expires_at = entry
        if expires_at <= now:
            del self._entries[client_key]
            return None
        return attempt

    def __len__(self) -> int:
        return len(self._entries)

    async def record_failure(self, client_key: str, now: datetime, ttl: timedelta) -> LoginAttempt:
        # every write drops the expired counters of all keys
        for key in [k for k, (_, expires_at) in self._entries.items() if expires_at <= now]:
            del self._entries[key]
        entry = self._entries.get(client_key)
        attempt = LoginAttempt(count=(entry[0].count if entry else 0) + 1, last_attempt=now)
        self._entries[client_key] = (attempt, now + ttl)
        return attempt

    async def clear(self, client_key: str) -> None:
        self._entries.pop(client_key, None)


# --- 2. Session tokens ---
def create_session_token(username: str, config: AuthConfig, now: Optional[datetime] = None) -> str:
    now = now or _utcnow()
    payload = {
        "sub": username,
        "scope": "admin",
        "exp": now + timedelta(minutes=config.session_minutes),
    }
    return jwt.encode(payload, config.secret_key, algorithm=config.algorithm)


def verify_session_token(token: str, config: AuthConfig) -> str:
    """Returns the username in the token; raises AuthError if it is invalid or expired."""
    try:
        payload = jwt.decode(token, config.secret_key, algorithms=[config.algorithm])
    except JWTError as e:
        raise AuthError("Invalid session") from e
    if payload.get("scope") != "admin" or not payload.get("sub"):
        raise AuthError("Invalid session")
    return payload["sub"]


# --- 3. Login guard ---
class LoginGuard:
    """
    Credential check with lockout: after `max_failed_attempts` failures the
    key is locked for `lockout_minutes` counted from the last failure.
    """

    def __init__(self, store: AttemptStore, config: AuthConfig, clock: Clock = _utcnow):
        self._store = store
        self._config = config
        self._clock = clock

    @property
    def lockout(self) -> timedelta:
        return timedelta(minutes=self._config.lockout_minutes)

    async def login(self, username: str, password: str) -> str:
        client_key = f"admin_{username}"
        now = self._clock()

        attempts = await self._store.get(client_key, now)
        if attempts and attempts.count >= self._config.max_failed_attempts:
            elapsed = now - attempts.last_attempt
            if elapsed < self.lockout:
                retry_after = int((self.lockout - elapsed).total_seconds())
                logger.warning(f"Login refused for locked key '{client_key}'.")
                raise AccountLockedError(
                    "Account temporarily locked due to too many failed attempts",
                    retry_after=retry_after,
                )
            await self._store.clear(client_key)

        user_ok = secrets.compare_digest(username.encode(), self._config.admin_username.encode())
        password_ok = secrets.compare_digest(password.encode(), self._config.admin_password.encode())
        if not (user_ok and password_ok):
            failed = await self._store.record_failure(client_key, now, self.lockout)
            logger.warning(f"Failed login for '{client_key}' (attempt {failed.count}).")
            raise InvalidCredentialsError("Invalid username or password", attempts=failed.count)

        await self._store.clear(client_key)
        logger.info(f"Admin '{username}' logged in.")
        return create_session_token(username, self._config, now)


# --- 4. FastAPI dependency ---
def get_auth_config(request: Request) -> AuthConfig:
    return request.app.state.auth_config


async def get_current_admin(
    request: Request,
    config: Annotated[AuthConfig, Depends(get_auth_config)],
) -> str:
    """Guards admin routes: reads the session cookie and returns the admin's username."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
    )
    token = request.cookies.get(config.cookie_name)
    if not token:
        raise credentials_exception
    try:
        return verify_session_token(token, config)
    except AuthError:
        raise credentials_exception
