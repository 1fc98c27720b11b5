"""Producer-side push of a snapshot payload to the hub.

Gathering the payload from the producer's own store is outside this module;
callers hand over a ready ``{system, stats, history, trades}`` mapping. A
failed push is logged and alerted, never raised.
"""
import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import aiohttp

from api.alerts import AlertWebhook, alert_webhook
from api.metrics import metrics
from config import config
from config.settings import clean_secret
from monitoring.logging_utils import setup_logging


logger = logging.getLogger(__name__)


class SyncPushError(Exception):
    def __init__(self, message: str, status: int, body: str):
        self.status = status
        self.body = body
        super().__init__(message)


class CloudSyncClient:
    def __init__(
        self,
        sync_url: Optional[str] = None,
        secret: Optional[str] = None,
        alerts: Optional[AlertWebhook] = None,
        timeout_s: Optional[float] = None,
    ):
        producer_cfg = config.section('producer')
        self.sync_url = sync_url or clean_secret(producer_cfg.get('sync_url'))
        self.secret = secret or clean_secret(producer_cfg.get('secret'))
        self.header = str(config.section('sync').get('header') or 'x-sync-secret')
        self.alerts = alerts or alert_webhook
        self.timeout = aiohttp.ClientTimeout(total=float(timeout_s or producer_cfg.get('timeout_s', 15)))

    @property
    def configured(self) -> bool:
        return bool(self.sync_url and self.secret)

    async def push(self, payload: Dict[str, Any]) -> bool:
        if not self.configured:
            logger.error("Missing hub sync URL or secret; not pushing")
            return False

        logger.info("Pushing snapshot to %s", self.sync_url)
        status: Optional[int] = None
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(
                    self.sync_url,
                    json=payload,
                    headers={self.header: self.secret},
                ) as response:
                    status = response.status
                    body = await response.text()
                    if status >= 400:
                        raise SyncPushError(f"HTTP {status}", status, body)
                    logger.info("Sync successful (%s)", body[:200])
        except (SyncPushError, aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.error("Sync failed: %s", exc)
            if isinstance(exc, SyncPushError):
                logger.error("   Server response: %s %s", exc.status, exc.body[:200])
            metrics.record_producer_push(False)
            await self.alerts.sync_failed_alert(str(exc) or exc.__class__.__name__, status)
            return False

        metrics.record_producer_push(True)
        return True


async def _run(args: argparse.Namespace) -> int:
    payload = json.loads(Path(args.payload).read_text(encoding='utf-8'))
    client = CloudSyncClient(sync_url=args.url)
    ok = await client.push(payload)
    return 0 if ok else 1


def main() -> int:
    parser = argparse.ArgumentParser(description="Push a snapshot payload file to the hub")
    parser.add_argument("payload", help="JSON file holding the snapshot payload")
    parser.add_argument("--url", help="override the hub /api/sync URL")
    args = parser.parse_args()
    setup_logging(config.section('monitoring').get('log_level', 'INFO'))
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
