from typing import Optional, TYPE_CHECKING

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, generate_latest

if TYPE_CHECKING:
    from state.models import Snapshot


class MetricsCollector:
    def __init__(self):
        self.sync_requests = Counter('hub_sync_requests_total', 'Sync requests by outcome', ['outcome'])
        self.last_sync = Gauge('hub_last_sync_timestamp_seconds', 'Unix time of the last accepted sync')
        self.history_size = Gauge('hub_snapshot_entries', 'Entries held per snapshot sequence', ['sequence'])
        self.portfolio_value = Gauge('hub_portfolio_value', 'Portfolio value from the latest snapshot')

        self.stream_subscribers = Gauge('hub_stream_subscribers', 'Open server-push connections')
        self.stream_events = Counter('hub_stream_events_total', 'Server-push events written')

        self.rate_limited = Counter('hub_rate_limited_total', 'Requests refused by the rate limiter')
        self.producer_pushes = Counter('producer_sync_pushes_total', 'Producer pushes by result', ['result'])

    def record_sync(self, outcome: str, snapshot: Optional['Snapshot'] = None):
        self.sync_requests.labels(outcome=outcome).inc()
        if snapshot is None:
            return
        self.last_sync.set_to_current_time()
        self.portfolio_value.set(snapshot.stats.portfolio_value)
        for name in ('history', 'trades', 'transitions', 'reports'):
            self.history_size.labels(sequence=name).set(len(snapshot.sequence(name)))

    def stream_opened(self):
        self.stream_subscribers.inc()

    def stream_closed(self):
        self.stream_subscribers.dec()

    def record_stream_event(self):
        self.stream_events.inc()

    def record_rate_limited(self):
        self.rate_limited.inc()

    def record_producer_push(self, ok: bool):
        self.producer_pushes.labels(result='ok' if ok else 'failed').inc()


def render_latest() -> tuple:
    return generate_latest(), CONTENT_TYPE_LATEST


metrics = MetricsCollector()
