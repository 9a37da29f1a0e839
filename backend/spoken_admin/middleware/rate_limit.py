"""
Spoken Admin API — Per-Route Rate Limiter
===========================================

What:  Fixed-window request counter per client key.
Why:   Rejects abusive clients before authentication or validation does any work.
How:   One RateLimitRecord per client key; the first request opens a window of
       `window_ms`, later requests increment the count until `max_requests`
       is reached, and the first request after the window closes opens a new one.
Who:   Owned by an ApiPipeline instance; consulted once per request on routes
       whose RouteConfig sets `rate_limit`.

Algorithm: Fixed Window Counter
    1. Unknown key          → count = 1, reset_at = now + window; admit
    2. now > reset_at       → count = 1, reset_at = now + window; admit
    3. count < max_requests → count += 1; admit
    4. otherwise            → reject (count unchanged)

Thread Safety:
    The read-check-increment sequence runs under a lock, so concurrent callers
    sharing a key can never be admitted more than `max_requests` times per
    window, whether they run on the event loop or in worker threads.

Known Limitations:
    - Single process only. Multiple workers or instances each keep their own
      counts. To share limits, pass ApiPipeline any object exposing the same
      `check_and_consume(client_key, window_ms, max_requests) -> bool`
      (e.g. one backed by Redis INCR + PEXPIRE).
    - Records are never evicted; the map grows with the number of distinct
      client keys for the life of the process. Acceptable for a single
      low-traffic admin instance.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict

from starlette.requests import Request

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class RateLimitRecord:
    count: int
    reset_at_ms: int


class RateLimiter:
    """
    In-memory fixed-window limiter.

    Args:
        clock: Returns the current time in epoch milliseconds. Tests inject a
               fake clock to move across window boundaries deterministically.
    """

    def __init__(self, clock: Callable[[], int] = _now_ms):
        self._clock = clock
        self._records: Dict[str, RateLimitRecord] = {}
        self._lock = threading.Lock()

    def check_and_consume(self, client_key: str, window_ms: int, max_requests: int) -> bool:
        """
        Decide whether one more request from `client_key` is admitted.

        Returns True and consumes one slot when admitted; returns False (and
        consumes nothing) when the window's budget is spent. Never raises.
        """
        with self._lock:
            now = self._clock()
            record = self._records.get(client_key)

            if record is None or now > record.reset_at_ms:
                self._records[client_key] = RateLimitRecord(count=1, reset_at_ms=now + window_ms)
                return True

            if record.count >= max_requests:
                logger.warning(
                    "Rate limit exceeded for %s: %d requests in %dms window",
                    client_key,
                    record.count,
                    window_ms,
                )
                return False

            record.count += 1
            return True

    def get_record(self, client_key: str) -> RateLimitRecord | None:
        """Snapshot of the current record for `client_key` (None if never seen)."""
        with self._lock:
            record = self._records.get(client_key)
            if record is None:
                return None
            return RateLimitRecord(count=record.count, reset_at_ms=record.reset_at_ms)

    def tracked_keys(self) -> int:
        """Number of client keys with a record."""
        with self._lock:
            return len(self._records)


def client_key_from_request(request: Request) -> str:
    """
    Derive the rate-limit bucket for a request.

    Order: first hop of X-Forwarded-For, then X-Real-IP, then the socket peer,
    then "unknown".

    Caveat: forwarding headers are client-controlled unless a trusted proxy
    overwrites them. Deploy behind one that does.
    """
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first_hop = forwarded_for.split(",")[0].strip()
        if first_hop:
            return first_hop

    real_ip = request.headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    if request.client and request.client.host:
        return request.client.host

    return "unknown"
