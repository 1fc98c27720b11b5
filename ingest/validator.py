import hmac
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from state.models import Snapshot


class RejectReason(Enum):
    UNAUTHORIZED = "unauthorized"
    INVALID_PAYLOAD = "invalid_payload"
    MISCONFIGURATION = "misconfiguration"


@dataclass(frozen=True)
class ValidationResult:
    snapshot: Optional[Snapshot] = None
    reason: Optional[RejectReason] = None

    @property
    def accepted(self) -> bool:
        return self.reason is None and self.snapshot is not None

    @classmethod
    def accept(cls, snapshot: Snapshot) -> 'ValidationResult':
        return cls(snapshot=snapshot)

    @classmethod
    def reject(cls, reason: RejectReason) -> 'ValidationResult':
        return cls(reason=reason)


def credentials_match(presented: Optional[str], secret: str) -> bool:
    if presented is None:
        return False
    return hmac.compare_digest(str(presented).encode('utf-8'), secret.encode('utf-8'))


def validate_snapshot(payload: Any, credential: Optional[str], secret: Optional[str]) -> ValidationResult:
    """Check an inbound sync payload. Pure; the caller performs the replace.

    Only structure is enforced: the payload must be an object carrying a
    ``stats`` object. Everything else is optional and normalized by
    ``Snapshot.from_payload``.
    """
    if not secret:
        return ValidationResult.reject(RejectReason.MISCONFIGURATION)
    if not credentials_match(credential, secret):
        return ValidationResult.reject(RejectReason.UNAUTHORIZED)
    if not isinstance(payload, Mapping) or not isinstance(payload.get('stats'), Mapping):
        return ValidationResult.reject(RejectReason.INVALID_PAYLOAD)
    return ValidationResult.accept(Snapshot.from_payload(payload))
