# g2a_integration/auth/token_manager.py
"""
OAuth2 token cache for the Import API.

Tokens live in Redis when a connection is available and always in process
memory as a fallback. Concurrent callers share a single in-flight fetch.
"""

import asyncio
import json
import time
from dataclasses import dataclass, asdict
from typing import Any, Awaitable, Callable, Dict, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from g2a_integration.exceptions import G2AError, G2AErrorCode
from g2a_integration.utils.enhanced_logging import get_logger

logger = get_logger(__name__)

CACHE_KEY_PREFIX = "g2a:oauth2:token"
REFRESH_THRESHOLD_SECONDS = 5 * 60


@dataclass
class CachedToken:
    token: str
    expires_at: float  # epoch seconds

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, raw: str) -> "CachedToken":
        data = json.loads(raw)
        return cls(token=data["token"], expires_at=float(data["expires_at"]))


TokenFetcher = Callable[[], Awaitable[Dict[str, Any]]]


class TokenManager:
    def __init__(self, redis_url: Optional[str] = None, redis_client: Optional[redis.Redis] = None,
                 refresh_threshold_seconds: float = REFRESH_THRESHOLD_SECONDS,
                 clock: Callable[[], float] = time.time):
        self.redis_url = redis_url
        self._redis: Optional[redis.Redis] = redis_client
        self._memory: Dict[str, CachedToken] = {}
        self.refresh_threshold_seconds = refresh_threshold_seconds
        self._clock = clock
        self._lock = asyncio.Lock()
        self.logger = get_logger("auth.token_manager")

    async def initialize(self):
        """Connect to Redis if configured. Failure leaves the manager in memory-only mode."""
        if self._redis is not None:
            return
        if not self.redis_url:
            self.logger.warning("Redis URL not provided, using in-memory token cache only")
            return

        client = redis.from_url(
            self.redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
        )
        try:
            await client.ping()
        except (RedisError, OSError) as e:
            self.logger.warning(
                "Failed to connect to Redis, falling back to in-memory token cache",
                error=str(e)
            )
            await client.aclose()
            return

        self._redis = client
        self.logger.info("Redis connected for token caching")

    @staticmethod
    def cache_key(env: str) -> str:
        return f"{CACHE_KEY_PREFIX}:{env}"

    async def _drop_redis(self, error: Exception, action: str):
        self.logger.warning(f"Redis unavailable during {action}, using in-memory cache", error=str(error))
        client, self._redis = self._redis, None
        if client is not None:
            try:
                await client.aclose()
            except (RedisError, OSError) as close_error:
                self.logger.debug("Error closing Redis connection", error=str(close_error))

    async def _get_from_cache(self, env: str) -> Optional[CachedToken]:
        if self._redis is not None:
            try:
                raw = await self._redis.get(self.cache_key(env))
                if raw:
                    return CachedToken.from_json(raw)
            except (RedisError, OSError) as e:
                await self._drop_redis(e, "read")
            except (ValueError, KeyError) as e:
                self.logger.warning("Discarding malformed cached token", error=str(e))

        return self._memory.get(env)

    async def _store_in_cache(self, env: str, token: CachedToken):
        ttl_seconds = int(token.expires_at - self._clock())
        if self._redis is not None and ttl_seconds > 0:
            try:
                await self._redis.setex(self.cache_key(env), ttl_seconds, token.to_json())
                self.logger.debug("Token stored in Redis cache", ttl_seconds=ttl_seconds)
            except (RedisError, OSError) as e:
                await self._drop_redis(e, "write")

        self._memory[env] = token

    def needs_refresh(self, token: CachedToken) -> bool:
        return token.expires_at - self._clock() < self.refresh_threshold_seconds

    async def get_token(self, env: str, fetch_token: TokenFetcher) -> str:
        """
        Return a token valid for at least the refresh threshold, fetching one if needed.

        Raises:
            G2AError: AUTH_FAILED when the token endpoint cannot produce a token
        """
        cached = await self._get_from_cache(env)
        if cached and not self.needs_refresh(cached):
            return cached.token

        async with self._lock:
            # another caller may have refreshed while we waited
            cached = await self._get_from_cache(env)
            if cached and not self.needs_refresh(cached):
                return cached.token
            if cached:
                self.logger.info(
                    "OAuth2 token expires soon, refreshing",
                    expires_in=int(cached.expires_at - self._clock())
                )

            self.logger.info("Fetching new OAuth2 token")
            try:
                response = await fetch_token()
                token = CachedToken(
                    token=response["access_token"],
                    expires_at=self._clock() + float(response.get("expires_in", 3600)),
                )
            except (G2AError, KeyError, TypeError, ValueError) as e:
                self.logger.error("Failed to fetch OAuth2 token", error=str(e))
                raise G2AError(
                    G2AErrorCode.AUTH_FAILED,
                    "Failed to obtain OAuth2 token for Import API",
                    retryable=True,
                    context={"error": str(e)},
                    original_exception=e,
                ) from e

            await self._store_in_cache(env, token)
            self.logger.info(
                "OAuth2 token obtained",
                expires_in=response.get("expires_in"),
                token_type=response.get("token_type")
            )
            return token.token

    async def refresh_token(self, env: str, fetch_token: TokenFetcher) -> str:
        await self.invalidate_token(env)
        return await self.get_token(env, fetch_token)

    async def invalidate_token(self, env: str):
        if self._redis is not None:
            try:
                await self._redis.delete(self.cache_key(env))
            except (RedisError, OSError) as e:
                await self._drop_redis(e, "invalidation")
        self._memory.pop(env, None)
        self.logger.info("OAuth2 token invalidated", env=env)

    async def close(self):
        if self._redis is not None:
            client, self._redis = self._redis, None
            try:
                await client.aclose()
            except (RedisError, OSError) as e:
                self.logger.debug("Error closing Redis connection", error=str(e))
