import asyncio
import json
import sys
import time

sys.path.insert(0, '.')

from api.streaming import StreamBroadcaster, format_event
from state.models import Snapshot
from state.store import StateStore
from tests.helpers import sync_payload


def _decode(event: str) -> dict:
    assert event.startswith('data: ')
    assert event.endswith('\n\n')
    return json.loads(event[len('data: '):])


def test_format_event_is_single_sse_data_frame():
    event = format_event({'current_state': 'IGNITION'})
    assert event == 'data: {"current_state": "IGNITION"}\n\n'


def test_emits_immediately_then_on_each_tick():
    async def _run():
        store = StateStore()
        broadcaster = StreamBroadcaster(store, interval_s=0.2)
        stream = broadcaster.subscribe()

        started = time.monotonic()
        first = await asyncio.wait_for(stream.__anext__(), timeout=0.5)
        assert time.monotonic() - started < 0.1
        assert _decode(first)['current_state'] == 'WAITING'

        second = await asyncio.wait_for(stream.__anext__(), timeout=1.0)
        assert time.monotonic() - started >= 0.15
        assert _decode(second)['current_state'] == 'WAITING'
        await stream.aclose()

    asyncio.run(_run())


def test_replace_is_pushed_before_next_tick():
    async def _run():
        store = StateStore()
        broadcaster = StreamBroadcaster(store, interval_s=30.0)
        stream = broadcaster.subscribe()
        await stream.__anext__()

        store.replace(Snapshot.from_payload(sync_payload('CASCADE_1')))
        event = await asyncio.wait_for(stream.__anext__(), timeout=1.0)
        assert _decode(event)['current_state'] == 'CASCADE_1'
        await stream.aclose()

    asyncio.run(_run())


def test_disconnect_releases_subscription():
    async def _run():
        store = StateStore()
        broadcaster = StreamBroadcaster(store, interval_s=0.01)
        for _ in range(50):
            stream = broadcaster.subscribe()
            await stream.__anext__()
            assert broadcaster.active_count == 1
            await stream.aclose()
        assert broadcaster.active_count == 0

    asyncio.run(_run())


def test_cancelled_consumer_releases_subscription():
    async def _run():
        store = StateStore()
        broadcaster = StreamBroadcaster(store, interval_s=0.01)

        async def consume():
            async for _ in broadcaster.subscribe():
                pass

        tasks = [asyncio.create_task(consume()) for _ in range(10)]
        await asyncio.sleep(0.05)
        assert broadcaster.active_count == 10
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        assert broadcaster.active_count == 0

    asyncio.run(_run())


def test_disconnect_probe_ends_stream():
    async def _run():
        store = StateStore()
        broadcaster = StreamBroadcaster(store, interval_s=0.01)
        calls = []

        async def is_disconnected():
            calls.append(1)
            return True

        events = [event async for event in broadcaster.subscribe(is_disconnected)]
        assert len(events) == 1
        assert calls == [1]
        assert broadcaster.active_count == 0

    asyncio.run(_run())


def test_close_ends_all_subscribers():
    async def _run():
        store = StateStore()
        broadcaster = StreamBroadcaster(store, interval_s=30.0)

        async def consume():
            return [event async for event in broadcaster.subscribe()]

        tasks = [asyncio.create_task(consume()) for _ in range(3)]
        await asyncio.sleep(0.05)
        broadcaster.close()
        results = await asyncio.wait_for(asyncio.gather(*tasks), timeout=1.0)
        assert all(len(events) == 1 for events in results)
        assert broadcaster.active_count == 0

    asyncio.run(_run())
