import asyncio
import logging
import time
from typing import Any, Dict, Optional

import aiohttp

from config import config


logger = logging.getLogger(__name__)

ALERT_TIMEOUT = aiohttp.ClientTimeout(total=5)


def _webhook_url(value: Any) -> Optional[str]:
    text = str(value or '').strip()
    # empty, unexpanded or sample URLs disable the webhook
    if not text or text.startswith('${') or 'your-webhook-url' in text:
        return None
    return text


class AlertWebhook:
    """Posts operational alerts for the hub and the producer push.

    Without a webhook URL every alert is only logged.
    """

    def __init__(self, url: Optional[str] = None, source: Optional[str] = None):
        monitoring = config.section('monitoring')
        self.webhook_url = _webhook_url(url if url is not None else monitoring.get('alert_webhook'))
        self.source = source or config.section('service').get('name', 'CCE Cloud')

    @property
    def enabled(self) -> bool:
        return self.webhook_url is not None

    async def send_alert(self, alert_type: str, message: str, severity: str = 'warning',
                         metadata: Optional[Dict[str, Any]] = None) -> bool:
        if not self.enabled:
            logger.warning("[Alert] %s: %s - %s", severity.upper(), alert_type, message)
            return False

        payload = {
            'source': self.source,
            'type': alert_type,
            'message': message,
            'severity': severity,
            'timestamp': time.time(),
            'metadata': metadata or {},
        }
        try:
            async with aiohttp.ClientSession(timeout=ALERT_TIMEOUT) as session:
                async with session.post(self.webhook_url, json=payload) as response:
                    if response.status >= 300:
                        logger.error("[Alert] Webhook for %s failed with status %s", alert_type, response.status)
                        return False
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.error("[Alert] Webhook error for %s: %s", alert_type, exc)
            return False
        return True

    async def sync_failed_alert(self, error: str, status: Optional[int] = None) -> bool:
        return await self.send_alert(
            'sync_failed',
            f'Cloud sync failed: {error}',
            'critical',
            {'error': error, 'status': status},
        )

    async def misconfiguration_alert(self, detail: str) -> bool:
        return await self.send_alert(
            'hub_misconfigured',
            f'Hub misconfigured: {detail}',
            'critical',
            {'detail': detail},
        )


alert_webhook = AlertWebhook()
