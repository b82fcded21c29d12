import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

logger = logging.getLogger(__name__)

Listener = Callable[[bool], None]


class ConnectivityGate:
    """
    Holds the last known reachability of the stores.

    The state only changes through `set_reachable`, which plays the role of
    an online/offline transition event. Readers get the cached value and
    never block.
    """

    def __init__(self, reachable: bool = True):
        self._reachable = reachable
        self._listeners: List[Listener] = []

    def is_reachable(self) -> bool:
        return self._reachable

    def set_reachable(self, reachable: bool) -> None:
        if reachable == self._reachable:
            return
        self._reachable = reachable
        if reachable:
            logger.info("Connectivity restored.")
        else:
            logger.warning("Connectivity lost; new upload batches are refused.")
        for listener in list(self._listeners):
            listener(reachable)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return _unsubscribe


class ConnectivityMonitor:
    """Feeds a gate from a periodic probe. `probe` returns True when the stores answer."""

    def __init__(self, gate: ConnectivityGate, probe: Callable[[], Awaitable[bool]], interval: float = 15.0):
        self._gate = gate
        self._probe = probe
        self._interval = interval
        self._task: Optional[asyncio.Task] = None

    async def check_once(self) -> bool:
        try:
            reachable = bool(await self._probe())
        except Exception as e:
            logger.warning(f"Connectivity probe failed: {e}")
            reachable = False
        self._gate.set_reachable(reachable)
        return reachable

    async def _run(self):
        while True:
            await self.check_once()
            await asyncio.sleep(self._interval)

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run(), name="connectivity-monitor")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
