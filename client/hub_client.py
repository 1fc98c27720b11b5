import argparse
import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import aiohttp

from analytics.csv_export import write_csv
from analytics.dashboard import build_dashboard_view
from client.cache import SnapshotCache
from config import config
from config.settings import active_states
from monitoring.logging_utils import setup_logging
from state.models import Snapshot


logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://127.0.0.1:8080"


class UpstreamUnreachable(Exception):
    """The hub could not be reached or answered with an error."""


@dataclass(frozen=True)
class DashboardFetch:
    snapshot: Snapshot
    offline: bool = False


class HubClient:
    """Read-only hub access with a cached-snapshot fallback."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        cache: Optional[SnapshotCache] = None,
        timeout_s: Optional[float] = None,
    ):
        client_cfg = config.section('client')
        self.base_url = (base_url or client_cfg.get('base_url') or DEFAULT_BASE_URL).rstrip("/")
        self.cache = cache or SnapshotCache(client_cfg.get('cache_path', 'cache/last_snapshot.json'))
        self.timeout = aiohttp.ClientTimeout(total=float(timeout_s or client_cfg.get('timeout_s', 10)))
        self._session: Optional[aiohttp.ClientSession] = None
        self._lock: Optional[asyncio.Lock] = None

    async def __aenter__(self) -> 'HubClient':
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _session_lock(self) -> asyncio.Lock:
        # created inside the running loop; dropped again on close
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    async def _get_session(self) -> aiohttp.ClientSession:
        async with self._session_lock():
            if self._session is None or self._session.closed:
                self._session = aiohttp.ClientSession(timeout=self.timeout)
            return self._session

    async def close(self):
        async with self._session_lock():
            if self._session and not self._session.closed:
                await self._session.close()
            self._session = None
        self._lock = None

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        session = await self._get_session()
        url = f"{self.base_url}{path}"
        try:
            async with session.get(url, params=params) as response:
                if response.status >= 400:
                    raise UpstreamUnreachable(f"HTTP {response.status} from {url}")
                return await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            raise UpstreamUnreachable(f"{url}: {exc}") from exc

    async def fetch_dashboard(self) -> DashboardFetch:
        """Fetch the full snapshot, falling back to the cached copy when offline."""
        try:
            payload = await self.get("/api/data")
            if not isinstance(payload, dict):
                raise UpstreamUnreachable("Hub returned a non-object snapshot")
        except UpstreamUnreachable as exc:
            logger.warning("Hub unreachable, using cached snapshot: %s", exc)
            cached = self.cache.load()
            if cached is None:
                raise
            return DashboardFetch(Snapshot.from_payload(cached), offline=True)

        if not payload.get('lastUpdated'):
            logger.warning("No data received from hub yet")
        else:
            self.cache.save(payload)
        return DashboardFetch(Snapshot.from_payload(payload), offline=False)

    async def fetch_health(self) -> Dict[str, Any]:
        return await self.get("/health")

    async def watch_dashboard(
        self,
        interval_s: float,
        on_fetch: Callable[[DashboardFetch], None],
        iterations: Optional[int] = None,
    ) -> int:
        """Re-fetch every ``interval_s`` seconds, handing each result to ``on_fetch``.

        A fetch with neither hub nor cache is logged and skipped; the loop keeps
        going. Runs until cancelled unless ``iterations`` is given. Returns the
        number of results delivered.
        """
        delivered = 0
        attempt = 0
        while iterations is None or attempt < iterations:
            if attempt:
                await asyncio.sleep(interval_s)
            attempt += 1
            try:
                result = await self.fetch_dashboard()
            except UpstreamUnreachable as exc:
                logger.error("Hub unreachable and no cached snapshot: %s", exc)
                continue
            on_fetch(result)
            delivered += 1
        return delivered


async def _run(args: argparse.Namespace) -> int:
    states = active_states(config)

    def render(result: DashboardFetch) -> None:
        view = build_dashboard_view(result.snapshot, offline=result.offline, active_states=states)
        print(json.dumps(view, indent=2, default=str), flush=True)
        if args.csv:
            path = write_csv(result.snapshot, args.csv)
            logger.info("History exported to %s", path)

    async with HubClient(base_url=args.url) as client:
        if args.watch:
            await client.watch_dashboard(args.watch, render)
            return 0
        try:
            result = await client.fetch_dashboard()
        except UpstreamUnreachable as exc:
            logger.error("Hub unreachable and no cached snapshot: %s", exc)
            return 1
    render(result)
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Fetch the hub snapshot and print the derived dashboard view")
    parser.add_argument("--url", help="hub base URL, e.g. http://localhost:8080")
    parser.add_argument("--csv", help="also export history and trades to this CSV file")
    parser.add_argument("--watch", type=float, metavar="SECONDS",
                        help="keep re-fetching at this interval (the dashboard refreshes every 60)")
    args = parser.parse_args()
    setup_logging(config.section('monitoring').get('log_level', 'INFO'))
    try:
        return asyncio.run(_run(args))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
