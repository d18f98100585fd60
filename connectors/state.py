"""
OAuth ``state`` values (CSRF protection).

Each authorization URL gets a fresh, unguessable state bound to the
tenant, provider and the authenticated subject that asked for it.  A
state can be consumed once; replays, expired states and states issued
for another tenant/provider/subject are all rejected.
"""

from __future__ import annotations

import hmac
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict

from connectors.catalog import Provider


@dataclass(frozen=True)
class _PendingState:
    tenant_id: str
    provider: Provider
    subject: str
    expires: float


class OAuthStateStore:
    def __init__(self, ttl_seconds: float = 600, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._pending: Dict[str, _PendingState] = {}
        self._lock = threading.Lock()

    def issue(self, tenant_id: str, provider: Provider, subject: str = "") -> str:
        state = secrets.token_urlsafe(32)
        with self._lock:
            self._purge()
            self._pending[state] = _PendingState(
                tenant_id=tenant_id,
                provider=provider,
                subject=subject,
                expires=self._clock() + self._ttl,
            )
        return state

    def consume(self, state: str, tenant_id: str, provider: Provider, subject: str = "") -> bool:
        """True only for a live state issued for exactly this tenant/provider/subject."""
        if not state:
            return False
        with self._lock:
            pending = self._pending.pop(state, None)
        if pending is None or pending.expires <= self._clock():
            return False
        return (
            hmac.compare_digest(pending.tenant_id.encode(), tenant_id.encode())
            and pending.provider is provider
            and hmac.compare_digest(pending.subject.encode(), subject.encode())
        )

    def _purge(self) -> None:
        # caller holds self._lock
        now = self._clock()
        for key in [k for k, v in self._pending.items() if v.expires <= now]:
            del self._pending[key]

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)
