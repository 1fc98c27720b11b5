import asyncio
import json
import logging
from typing import AsyncIterator, Awaitable, Callable, Dict, Optional, Set

from api.metrics import metrics
from monitoring.async_utils import wait_or_timeout
from state.models import Snapshot
from state.store import StateStore


logger = logging.getLogger(__name__)

SSE_HEADERS: Dict[str, str] = {
    'Cache-Control': 'no-cache',
    'Connection': 'keep-alive',
    'X-Accel-Buffering': 'no',
}


def format_event(payload: Dict) -> str:
    return f"data: {json.dumps(payload, default=str)}\n\n"


class StreamBroadcaster:
    """Server-push of the current stats to any number of subscribers.

    Each subscription owns its own timer: it emits once on connect, then every
    ``interval_s`` whether or not anything changed. A store replace wakes all
    subscriptions early. Nothing is buffered for clients that reconnect.
    """

    def __init__(self, store: StateStore, interval_s: float = 5.0):
        self.store = store
        self.interval_s = float(interval_s)
        self._wakeups: Set[asyncio.Event] = set()
        self._closed = False
        store.subscribe(self._on_replace)

    @property
    def active_count(self) -> int:
        return len(self._wakeups)

    def _on_replace(self, snapshot: Snapshot) -> None:
        for wake in list(self._wakeups):
            wake.set()

    async def subscribe(
        self,
        is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
    ) -> AsyncIterator[str]:
        wake = asyncio.Event()
        self._wakeups.add(wake)
        metrics.stream_opened()
        logger.debug("Stream subscriber connected (%d active)", self.active_count)
        try:
            while not self._closed:
                yield format_event(self.store.read().stats.to_dict())
                metrics.record_stream_event()
                await wait_or_timeout(wake, self.interval_s)
                wake.clear()
                if is_disconnected is not None and await is_disconnected():
                    break
        finally:
            self._wakeups.discard(wake)
            metrics.stream_closed()
            logger.debug("Stream subscriber released (%d active)", self.active_count)

    def close(self) -> None:
        self._closed = True
        self.store.unsubscribe(self._on_replace)
        for wake in list(self._wakeups):
            wake.set()
