"""Single-use clearance tokens gating sensitive create operations.

A token moves Issued -> Consumed (used by the gated create) or
Issued -> Expired (unused past its validity window). Expiry is checked
lazily against an injectable clock; there are no timers.
"""

import secrets
import time
from dataclasses import dataclass
from typing import Callable

from .client.responses import log_event
from .models import EMAIL_CONTENT_TYPE

# Validity window for an unused token (seconds)
CLEARANCE_TTL = 30 * 60

# Content types that require a clearance token before creation
GATED_CONTENT_TYPES = frozenset({EMAIL_CONTENT_TYPE})


def requires_clearance(content_type: str) -> bool:
    return content_type in GATED_CONTENT_TYPES


@dataclass(frozen=True)
class ClearanceToken:
    token: str
    operation_class: str
    created_at: float
    expires_at: float


class ClearanceRegistry:
    """Process-local registry of outstanding clearance tokens."""

    def __init__(self, ttl: float = CLEARANCE_TTL, clock: Callable[[], float] = time.time) -> None:
        self.ttl = ttl
        self._clock = clock
        self._tokens: dict[str, ClearanceToken] = {}

    def __len__(self) -> int:
        self._evict_expired()
        return len(self._tokens)

    def _evict_expired(self) -> None:
        now = self._clock()
        expired = [key for key, entry in self._tokens.items() if now >= entry.expires_at]
        for key in expired:
            entry = self._tokens.pop(key)
            log_event(f"Clearance token for {entry.operation_class} expired unused", "CLEARANCE")

    def issue(self, operation_class: str) -> ClearanceToken:
        """Register a new token for ``operation_class``."""
        self._evict_expired()
        now = self._clock()
        value = f"{operation_class}-{int(now * 1000)}-{secrets.token_hex(8)}"
        entry = ClearanceToken(
            token=value,
            operation_class=operation_class,
            created_at=now,
            expires_at=now + self.ttl,
        )
        self._tokens[value] = entry
        log_event(f"Issued clearance token for {operation_class}", "CLEARANCE")
        return entry

    def check(self, token: str | None) -> bool:
        """True iff ``token`` is registered and unexpired."""
        self._evict_expired()
        return bool(token) and token in self._tokens

    def consume(self, token: str | None, operation_class: str) -> bool:
        """Remove ``token`` if it is valid for ``operation_class``.

        Returns False, leaving the registry unchanged, when the token is
        absent, expired, or issued for a different operation class.
        """
        if not self.check(token):
            return False
        entry = self._tokens[token]  # type: ignore[index]
        if entry.operation_class != operation_class:
            return False
        del self._tokens[token]  # type: ignore[arg-type]
        log_event(f"Consumed clearance token for {operation_class}", "CLEARANCE")
        return True
