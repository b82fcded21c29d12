import re
import secrets
import string
import time
from random import Random
from typing import Optional

BASE36 = string.digits + string.ascii_lowercase
RANDOM_PART_LENGTH = 6

_DISALLOWED = re.compile(r"[^A-Za-z0-9.-]")
_UNDERSCORE_RUN = re.compile(r"_{2,}")


def sanitize_name(file_name: str) -> str:
    """'my photo (1).jpg' -> 'my_photo_1_.jpg'; underscores are trimmed only at the ends."""
    cleaned = _DISALLOWED.sub("_", file_name)
    cleaned = _UNDERSCORE_RUN.sub("_", cleaned)
    return cleaned.strip("_")


def _random_base36(rng: Optional[Random]) -> str:
    if rng is not None:
        return "".join(rng.choice(BASE36) for _ in range(RANDOM_PART_LENGTH))
    return "".join(secrets.choice(BASE36) for _ in range(RANDOM_PART_LENGTH))


def derive_storage_key(file_name: str, now_ms: Optional[int] = None, rng: Optional[Random] = None) -> str:
    """
    Storage key for one upload attempt: `{ms}_{base36 x6}_{sanitized name}`.

    The prefix is unconditional, so a name that sanitizes to nothing still
    gives a usable key. The original name is kept in metadata, not here.
    """
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    return f"{now_ms}_{_random_base36(rng)}_{sanitize_name(file_name)}"
