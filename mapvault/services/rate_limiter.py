#  Map Vault - Per-Subject Rate Limiter
#
#  Sliding-window admission control backed by the request_logs table.
#  A check counts a subject's log entries for an endpoint inside the
#  trailing window; no per-user counters are kept in memory.
#
#  Store failures fail open. Log writes are best-effort and can be
#  scheduled fire-and-forget so they never hold up the request.
#
#  Depends on: mapvault/db/connection.py, mapvault/config.py
#  Used by:    container.py, edge/handler.py, routes/base_maps.py, routes/admin.py

import asyncio
import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from mapvault.config import REQUEST_LOG_RETENTION_SECONDS
from mapvault.db.connection import Database

logger = logging.getLogger("mapvault.rate_limiter")

# Reported when no policy applies or the store is unreachable
UNLIMITED_REMAINING = 999


@dataclass(frozen=True)
class RateLimitPolicy:
    requests: int
    window: int  # seconds


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int


def build_policy_table(raw: Mapping[str, Mapping]) -> Mapping[str, RateLimitPolicy]:
    """Freeze a {endpoint: {requests, window}} table into an immutable mapping."""
    table = {}
    for endpoint, entry in raw.items():
        requests = int(entry["requests"])
        window = int(entry["window"])
        if requests <= 0 or window <= 0:
            raise ValueError(f"Rate limit for {endpoint!r} must have positive requests and window")
        table[endpoint] = RateLimitPolicy(requests=requests, window=window)
    return MappingProxyType(table)


class RateLimiter:
    """Counts request_logs rows in a trailing window per (subject, endpoint)."""

    def __init__(
        self,
        db: Database,
        policies: Mapping[str, RateLimitPolicy],
        clock: Callable[[], float] = time.time,
        retention_seconds: float = REQUEST_LOG_RETENTION_SECONDS,
    ):
        self._db = db
        self._policies = policies
        self._clock = clock
        self._retention = retention_seconds
        self._pending: set[asyncio.Task] = set()

    @property
    def policies(self) -> Mapping[str, RateLimitPolicy]:
        return self._policies

    def policy_for(self, endpoint: str) -> RateLimitPolicy | None:
        return self._policies.get(endpoint)

    # ------------------------------------------------------------------
    # Admission
    # ------------------------------------------------------------------

    async def check_rate_limit(self, subject_id: str, endpoint: str) -> RateLimitResult:
        """Return whether the subject may make another request to endpoint."""
        policy = self._policies.get(endpoint)
        if policy is None:
            return RateLimitResult(allowed=True, remaining=UNLIMITED_REMAINING)

        window_start = self._clock() - policy.window
        try:
            row = await self._db.fetchone(
                "SELECT COUNT(*) AS cnt FROM request_logs "
                "WHERE user_id = ? AND endpoint = ? AND created_at >= ?",
                (subject_id, endpoint, window_start),
            )
        except Exception as e:
            logger.error("Rate limit lookup failed for %s: %s", endpoint, type(e).__name__)
            return RateLimitResult(allowed=True, remaining=UNLIMITED_REMAINING)

        count = row["cnt"] if row else 0
        return RateLimitResult(
            allowed=count < policy.requests,
            remaining=max(0, policy.requests - count),
        )

    # ------------------------------------------------------------------
    # Request log
    # ------------------------------------------------------------------

    async def log_request(
        self,
        subject_id: str,
        endpoint: str,
        response_time_ms: int | None = None,
    ) -> None:
        """Append one log entry, then sweep expired ones. Never raises."""
        try:
            await self._db.execute_write(
                "INSERT INTO request_logs (user_id, endpoint, created_at, response_time_ms) "
                "VALUES (?, ?, ?, ?)",
                (subject_id, endpoint, self._clock(), response_time_ms),
            )
        except Exception as e:
            logger.error("Failed to log request for %s: %s", endpoint, type(e).__name__)
            return

        try:
            await self.sweep_expired()
        except Exception as e:
            logger.warning("Request log sweep failed: %s", type(e).__name__)

    def submit_log_request(
        self,
        subject_id: str,
        endpoint: str,
        response_time_ms: int | None = None,
    ) -> asyncio.Task:
        """Schedule log_request without awaiting it."""
        task = asyncio.create_task(self.log_request(subject_id, endpoint, response_time_ms))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for every scheduled log write to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def sweep_expired(self) -> int:
        """Delete entries older than the retention window. Returns rows removed."""
        cutoff = self._clock() - self._retention
        cursor = await self._db.execute_write(
            "DELETE FROM request_logs WHERE created_at < ?", (cutoff,)
        )
        return cursor.rowcount if cursor.rowcount and cursor.rowcount > 0 else 0
