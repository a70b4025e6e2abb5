# g2a_integration/clients/http_transport.py
from typing import Optional

import httpx

from g2a_integration.config import G2AConfig, HttpPoolSettings


def build_limits(pool: HttpPoolSettings) -> httpx.Limits:
    """Connection pool limits for one partner surface."""
    return httpx.Limits(
        max_connections=pool.max_connections,
        max_keepalive_connections=pool.max_keepalive_connections if pool.keep_alive else 0,
        keepalive_expiry=pool.keep_alive_ms / 1000 if pool.keep_alive else None,
    )


def create_http_client(config: G2AConfig, auth: Optional[httpx.Auth] = None,
                       transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """
    Create the pooled async client for one API surface.

    ``transport`` replaces the network layer (``httpx.MockTransport`` in tests).
    """
    return httpx.AsyncClient(
        base_url=config.base_url,
        timeout=httpx.Timeout(config.timeout_ms / 1000),
        limits=build_limits(config.http_pool),
        auth=auth,
        transport=transport,
        headers={"Accept": "application/json"},
    )
