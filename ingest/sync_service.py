import logging
from dataclasses import dataclass
from typing import Any, Optional

from api.metrics import metrics
from ingest.validator import RejectReason, validate_snapshot
from state.store import StateStore


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncOutcome:
    success: bool
    received_at: Optional[str] = None
    reason: Optional[RejectReason] = None


class SyncService:
    """Authenticated single-writer ingestion in front of the state store."""

    def __init__(self, store: StateStore, secret: Optional[str]):
        self.store = store
        self.secret = secret or None

    @property
    def configured(self) -> bool:
        return self.secret is not None

    def ingest(self, payload: Any, credential: Optional[str]) -> SyncOutcome:
        result = validate_snapshot(payload, credential, self.secret)
        if not result.accepted:
            self._log_rejection(result.reason)
            metrics.record_sync(result.reason.value)
            return SyncOutcome(success=False, reason=result.reason)

        stored = self.store.replace(result.snapshot)
        metrics.record_sync('accepted', stored)
        logger.info("Snapshot synced at %s", stored.last_updated)
        logger.info(
            "State: %s | Value: $%s",
            stored.stats.current_state,
            stored.stats.portfolio_value,
        )
        return SyncOutcome(success=True, received_at=stored.last_updated)

    def _log_rejection(self, reason: RejectReason) -> None:
        if reason is RejectReason.MISCONFIGURATION:
            logger.error("Sync secret not set on server; rejecting sync")
        elif reason is RejectReason.UNAUTHORIZED:
            logger.warning("Unauthorized sync attempt")
        else:
            logger.warning("Rejected sync with invalid payload")
