"""Per-user sync lease.

At most one ingestion run per user holds a lease at any time. A lease that
outlives its TTL is considered abandoned and may be taken over.
"""

from __future__ import annotations

import threading
import time
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass

import structlog

from auramail.exceptions import SyncInProgressError

logger = structlog.get_logger()


@dataclass(frozen=True)
class _Lease:
    token: str
    acquired_at: float


class SyncLeaseManager:
    """In-process keyed lease with expiry."""

    def __init__(self, ttl_seconds: float = 900, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._leases: dict[str, _Lease] = {}
        self._lock = threading.Lock()

    def acquire(self, user_id: str) -> str:
        """Take the lease for ``user_id`` and return its token.

        Raises:
            SyncInProgressError: If a live lease is already held.
        """
        with self._lock:
            now = self._clock()
            current = self._leases.get(user_id)
            if current is not None:
                if now - current.acquired_at < self.ttl_seconds:
                    raise SyncInProgressError(f"Sync already in progress for user {user_id}")
                logger.warning(
                    "sync_lease_taken_over",
                    user_id=user_id,
                    age_seconds=round(now - current.acquired_at, 1),
                )

            lease = _Lease(token=uuid.uuid4().hex, acquired_at=now)
            self._leases[user_id] = lease
            return lease.token

    def release(self, user_id: str, token: str) -> bool:
        """Release the lease if ``token`` still owns it."""
        with self._lock:
            current = self._leases.get(user_id)
            if current is None or current.token != token:
                return False
            del self._leases[user_id]
            return True

    def is_held(self, user_id: str) -> bool:
        with self._lock:
            current = self._leases.get(user_id)
            return current is not None and self._clock() - current.acquired_at < self.ttl_seconds

    @contextmanager
    def hold(self, user_id: str) -> Iterator[str]:
        token = self.acquire(user_id)
        try:
            yield token
        finally:
            self.release(user_id, token)
