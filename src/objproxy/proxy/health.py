"""Rate-limited backend liveness probe."""

from __future__ import annotations

import asyncio
import time
from typing import Callable, Optional

import structlog
from opentelemetry import trace

from .storage import ObjectFetchError, ObjectStore


LOGGER = structlog.get_logger("objproxy.health")
TRACER = trace.get_tracer("objproxy.health")


class HealthProber:
    """Checks that the sentinel object is readable, at most once per interval.

    Only successful probes extend the cache window, so a failure is retried on
    the next request. The lock is held across the probe: callers arriving
    while a probe is in flight wait for it and then reuse its result.
    """

    def __init__(
        self,
        store: ObjectStore,
        bucket: str,
        sentinel_key: str,
        interval_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._store = store
        self._bucket = bucket
        self._sentinel_key = sentinel_key
        self._interval = interval_seconds
        self._clock = clock
        self._lock = asyncio.Lock()
        self._last_checked_at: Optional[float] = None

    @property
    def last_checked_at(self) -> Optional[float]:
        return self._last_checked_at

    def _is_fresh(self, now: float) -> bool:
        if self._last_checked_at is None:
            return False
        return now - self._last_checked_at <= self._interval

    async def check(self) -> None:
        """Return when the backend is deemed reachable, raise ObjectFetchError otherwise."""

        async with self._lock:
            now = self._clock()
            if self._is_fresh(now):
                return
            LOGGER.info("health_check_started", bucket=self._bucket, key=self._sentinel_key)
            with TRACER.start_as_current_span(
                "proxy.health_check",
                attributes={"objproxy.bucket": self._bucket, "objproxy.key": self._sentinel_key},
            ):
                try:
                    body = await self._store.get_object(self._bucket, self._sentinel_key)
                except ObjectFetchError as exc:
                    LOGGER.error(
                        "health_check_failed",
                        bucket=self._bucket,
                        key=self._sentinel_key,
                        error=exc.reason,
                    )
                    raise
            body.close()
            if self._last_checked_at is None or now > self._last_checked_at:
                self._last_checked_at = now
            LOGGER.info("health_check_passed", bucket=self._bucket, key=self._sentinel_key)
