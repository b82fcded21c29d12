import asyncio
from functools import partial
from typing import Any, Callable, TypeVar

T = TypeVar("T")


async def run_io_bound(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Runs a blocking SDK call in the default executor so the event loop stays free."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, partial(func, *args, **kwargs))
