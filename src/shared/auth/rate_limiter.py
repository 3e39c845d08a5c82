"""Rate limiting for the auth API.

Fixed-window counting per client identity (source IP). The in-memory
backend keeps one entry per client and purges expired entries inline on
every call, so memory stays bounded without a background timer. A
DynamoDB backend is available for deployments that need limits shared
across concurrently running Lambda instances.

Admission rules for a (client, window, max) check:
- no entry, or the entry's window has passed: start a new window with
  count=1 and admit
- count < max: increment and admit
- otherwise reject, reporting seconds until the window resets
"""

import logging
import math
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def _now_ms() -> float:
    return time.time() * 1000


def _seconds_until(reset_at_ms: float, now_ms: float) -> int:
    return max(1, math.ceil((reset_at_ms - now_ms) / 1000))


@dataclass(frozen=True)
class RateLimitPolicy:
    """Per-route admission thresholds."""

    window_ms: int
    max_requests: int

    def __post_init__(self):
        if int(self.window_ms) <= 0:
            raise ValueError(f"window_ms must be positive, got {self.window_ms}")
        if int(self.max_requests) <= 0:
            raise ValueError(f"max_requests must be positive, got {self.max_requests}")


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a single rate limit check."""

    allowed: bool
    count: int
    retry_after: int = 0


@dataclass
class RateLimitEntry:
    count: int
    reset_at: float


class RateLimitBackend(ABC):
    """Abstract base class for rate limit storage backends."""

    @abstractmethod
    def check_and_increment(
        self,
        key: str,
        window_ms: int,
        max_requests: int
    ) -> RateLimitDecision:
        """Atomically check the key's window and count the request if admitted.

        Args:
            key: Client identity (source IP)
            window_ms: Window length in milliseconds
            max_requests: Maximum admitted requests per window

        Returns:
            RateLimitDecision for this request
        """
        pass


class InMemoryRateLimitBackend(RateLimitBackend):
    """Process-local fixed-window store.

    Check-and-increment runs under a single lock so two concurrent
    requests for the same client can never both take the last slot.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self._entries: Dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()
        self._clock = clock or _now_ms

    def check_and_increment(
        self,
        key: str,
        window_ms: int,
        max_requests: int
    ) -> RateLimitDecision:
        with self._lock:
            now = self._clock()
            self._purge_expired(now)

            entry = self._entries.get(key)

            if entry is None or entry.reset_at <= now:
                if max_requests < 1:
                    return RateLimitDecision(False, 0, _seconds_until(now + window_ms, now))
                self._entries[key] = RateLimitEntry(count=1, reset_at=now + window_ms)
                return RateLimitDecision(True, 1)

            if entry.count < max_requests:
                entry.count += 1
                return RateLimitDecision(True, entry.count)

            return RateLimitDecision(False, entry.count, _seconds_until(entry.reset_at, now))

    def _purge_expired(self, now: float) -> None:
        expired = [key for key, entry in self._entries.items() if entry.reset_at <= now]
        for key in expired:
            del self._entries[key]

    def get_entry(self, key: str) -> Optional[RateLimitEntry]:
        """Copy of the current entry for a key (for inspection in tests and logs)."""
        with self._lock:
            entry = self._entries.get(key)
            return RateLimitEntry(entry.count, entry.reset_at) if entry else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class DynamoDBRateLimitBackend(RateLimitBackend):
    """DynamoDB-backed fixed-window limiter shared across Lambda instances.

    One item per client (``pk`` = client identity) holding ``request_count``
    and ``reset_at`` (epoch ms). A window starts at the client's first
    request and ends ``window_ms`` later, exactly like the in-memory
    backend. Items carry a TTL attribute, so no sweep is needed.

    Each step is a single conditional update, so concurrent instances
    cannot both take the last slot:
    1. start a new window if there is none or it has passed
    2. otherwise increment while the count is below max
    3. otherwise read the item to report the retry hint
    """

    MAX_ATTEMPTS = 3

    def __init__(self, table_name: str, clock: Optional[Clock] = None, dynamodb=None):
        if dynamodb is None:
            import boto3
            dynamodb = boto3.resource("dynamodb")
        self.table_name = table_name
        self.table = dynamodb.Table(table_name)
        self._clock = clock or _now_ms

    def check_and_increment(
        self,
        key: str,
        window_ms: int,
        max_requests: int
    ) -> RateLimitDecision:
        now = self._clock()

        if max_requests < 1:
            return RateLimitDecision(False, 0, _seconds_until(now + window_ms, now))

        # A window can expire between steps; start over when it does
        for _ in range(self.MAX_ATTEMPTS):
            decision = self._start_window(key, window_ms, now)
            if decision is not None:
                return decision

            decision = self._increment(key, max_requests, now)
            if decision is not None:
                return decision

            item = self.table.get_item(Key={"pk": key}, ConsistentRead=True).get("Item")
            if item and int(item["reset_at"]) > now:
                return RateLimitDecision(
                    False, int(item["request_count"]), _seconds_until(int(item["reset_at"]), now)
                )

        logger.warning(f"Rate limit window for {key} kept changing; rejecting request")
        return RateLimitDecision(False, max_requests, _seconds_until(now + window_ms, now))

    def _start_window(self, key: str, window_ms: int, now: float) -> Optional[RateLimitDecision]:
        reset_at = int(now + window_ms)
        ttl = int(reset_at / 1000) + 60  # buffer for DynamoDB TTL lag

        try:
            self.table.update_item(
                Key={"pk": key},
                UpdateExpression="SET request_count = :one, #reset = :reset, #ttl = :ttl",
                ExpressionAttributeNames={"#reset": "reset_at", "#ttl": "ttl"},
                ExpressionAttributeValues={":one": 1, ":reset": reset_at, ":ttl": ttl, ":now": int(now)},
                ConditionExpression="attribute_not_exists(pk) OR #reset <= :now",
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                return None
            raise
        return RateLimitDecision(True, 1)

    def _increment(self, key: str, max_requests: int, now: float) -> Optional[RateLimitDecision]:
        try:
            response = self.table.update_item(
                Key={"pk": key},
                UpdateExpression="SET request_count = request_count + :inc",
                ExpressionAttributeNames={"#reset": "reset_at"},
                ExpressionAttributeValues={":inc": 1, ":max": max_requests, ":now": int(now)},
                ConditionExpression="#reset > :now AND request_count < :max",
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                return None
            raise
        return RateLimitDecision(True, int(response["Attributes"]["request_count"]))


class RateLimiter:
    """Applies a RateLimitPolicy to a client identity."""

    def __init__(self, backend: Optional[RateLimitBackend] = None):
        # Backends define __len__, so an empty one is falsy
        self.backend = backend if backend is not None else InMemoryRateLimitBackend()

    def check(self, client_id: str, policy: RateLimitPolicy) -> RateLimitDecision:
        decision = self.backend.check_and_increment(
            client_id, policy.window_ms, policy.max_requests
        )
        if not decision.allowed:
            logger.warning(
                f"Rate limit exceeded: client={client_id} count={decision.count} "
                f"max={policy.max_requests} retry_after={decision.retry_after}s"
            )
        return decision


def get_rate_limiter(backend: str = "memory", table_name: Optional[str] = None) -> RateLimiter:
    """Get a rate limiter for the configured backend.

    Args:
        backend: 'memory' or 'dynamodb'
        table_name: DynamoDB table for the 'dynamodb' backend

    Returns:
        Configured RateLimiter instance
    """
    if backend == "dynamodb":
        try:
            return RateLimiter(DynamoDBRateLimitBackend(table_name or "user-auth-rate-limits"))
        except Exception as e:
            logger.warning(f"Failed to init DynamoDB backend, using memory: {e}")

    return RateLimiter(InMemoryRateLimitBackend())
