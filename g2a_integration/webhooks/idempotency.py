# g2a_integration/webhooks/idempotency.py
"""
Processing records for inbound webhook events, kept for 24 hours.

Backed by ``redis.asyncio`` when a client is supplied; a Redis failure
drops to the in-memory map for the rest of the store's life.
"""

import json
import time
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

import redis.asyncio as redis
from redis.exceptions import RedisError

from g2a_integration.utils.enhanced_logging import get_logger

KEY_PREFIX = "idempotency"
IDEMPOTENCY_TTL_SECONDS = 24 * 60 * 60
PROCESSING_TIMEOUT_SECONDS = 60


class ProcessingStatus(str, Enum):
    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class IdempotencyRecord:
    key: str
    status: ProcessingStatus
    attempts: int = 1
    last_error: Optional[str] = None
    updated_at: float = 0.0

    def to_json(self) -> str:
        data = asdict(self)
        data["status"] = self.status.value
        return json.dumps(data)

    @classmethod
    def from_json(cls, raw: str) -> "IdempotencyRecord":
        data = json.loads(raw)
        data["status"] = ProcessingStatus(data["status"])
        return cls(**data)


class IdempotencyStore:
    def __init__(self, redis_client: Optional[redis.Redis] = None,
                 ttl_seconds: int = IDEMPOTENCY_TTL_SECONDS,
                 processing_timeout_seconds: float = PROCESSING_TIMEOUT_SECONDS,
                 clock: Callable[[], float] = time.time):
        self._redis = redis_client
        self.ttl_seconds = ttl_seconds
        self.processing_timeout_seconds = processing_timeout_seconds
        self._clock = clock
        self._memory: Dict[str, Tuple[float, IdempotencyRecord]] = {}
        self.logger = get_logger("webhooks.idempotency")

    @staticmethod
    def redis_key(key: str) -> str:
        return f"{KEY_PREFIX}:{key}"

    def in_flight(self, record: IdempotencyRecord) -> bool:
        """A PROCESSING record counts as in flight until it is older than the processing timeout."""
        return (record.status == ProcessingStatus.PROCESSING
                and self._clock() - record.updated_at < self.processing_timeout_seconds)

    def _drop_redis(self, error: Exception, action: str):
        self.logger.warning(f"Redis unavailable during {action}, using in-memory idempotency store", error=str(error))
        self._redis = None

    async def get(self, key: str) -> Optional[IdempotencyRecord]:
        if self._redis is not None:
            try:
                raw = await self._redis.get(self.redis_key(key))
                return IdempotencyRecord.from_json(raw) if raw else None
            except (RedisError, OSError) as e:
                self._drop_redis(e, "read")

        entry = self._memory.get(key)
        if entry is None:
            return None
        expires_at, record = entry
        if expires_at <= self._clock():
            del self._memory[key]
            return None
        return record

    async def _put(self, record: IdempotencyRecord):
        if self._redis is not None:
            try:
                await self._redis.setex(self.redis_key(record.key), self.ttl_seconds, record.to_json())
                return
            except (RedisError, OSError) as e:
                self._drop_redis(e, "write")
        self._memory[record.key] = (self._clock() + self.ttl_seconds, record)

    async def mark(self, key: str, status: ProcessingStatus, error: Optional[str] = None) -> IdempotencyRecord:
        """Store ``status`` for ``key``. Each new PROCESSING mark counts as one more attempt."""
        existing = await self.get(key)
        attempts = existing.attempts if existing else 0
        if status == ProcessingStatus.PROCESSING or attempts == 0:
            attempts += 1

        record = IdempotencyRecord(
            key=key,
            status=status,
            attempts=attempts,
            last_error=error,
            updated_at=self._clock(),
        )
        await self._put(record)
        return record
