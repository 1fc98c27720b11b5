import asyncio
import sys

sys.path.insert(0, '.')

from aiohttp import test_utils, web

from api.alerts import AlertWebhook
from producer.cloud_sync import CloudSyncClient
from tests.helpers import SECRET, sync_payload


class RecordingAlerts:
    def __init__(self):
        self.failures = []

    async def sync_failed_alert(self, error, status=None):
        self.failures.append((error, status))
        return True


def _sync_app(received):
    async def sync(request):
        if request.headers.get('x-sync-secret') != SECRET:
            return web.json_response({'error': 'Forbidden'}, status=403)
        received.append(await request.json())
        return web.json_response({'success': True, 'received_at': '2024-01-01T00:00:00.000Z'})

    app = web.Application()
    app.router.add_post('/api/sync', sync)
    return app


async def _push(secret, payload, alerts, received):
    server = test_utils.TestServer(_sync_app(received))
    await server.start_server()
    try:
        client = CloudSyncClient(
            sync_url=str(server.make_url('/api/sync')),
            secret=secret,
            alerts=alerts,
            timeout_s=5,
        )
        return await client.push(payload)
    finally:
        await server.close()


def test_push_delivers_payload_with_secret_header():
    alerts, received = RecordingAlerts(), []
    payload = sync_payload()
    assert asyncio.run(_push(SECRET, payload, alerts, received)) is True
    assert received == [payload]
    assert alerts.failures == []


def test_rejected_push_alerts_and_returns_false():
    alerts, received = RecordingAlerts(), []
    assert asyncio.run(_push('wrong', sync_payload(), alerts, received)) is False
    assert received == []
    assert len(alerts.failures) == 1
    assert alerts.failures[0][1] == 403


def test_unreachable_hub_alerts_without_status():
    alerts = RecordingAlerts()
    client = CloudSyncClient(sync_url='http://127.0.0.1:1/api/sync', secret=SECRET, alerts=alerts, timeout_s=2)
    assert asyncio.run(client.push(sync_payload())) is False
    assert alerts.failures[0][1] is None


def test_unconfigured_client_does_not_push():
    alerts = RecordingAlerts()
    client = CloudSyncClient(sync_url='http://127.0.0.1:1/api/sync', secret=SECRET, alerts=alerts)
    client.secret = None
    assert client.configured is False
    assert asyncio.run(client.push(sync_payload())) is False
    assert alerts.failures == []


def test_webhook_without_url_only_logs():
    for url in ('', '${ALERT_WEBHOOK_URL}', 'https://hooks.example/your-webhook-url'):
        webhook = AlertWebhook(url=url)
        assert webhook.enabled is False
        assert asyncio.run(webhook.sync_failed_alert('boom', 500)) is False
