"""Optional Redis client used for rate limiting and readiness checks.

The service runs without Redis: when no URL is configured the client stays
unset, ``redis_enabled()`` is False and callers skip Redis-backed features.
"""

import redis.asyncio as redis

_client: redis.Redis | None = None


async def init_redis(url: str, max_connections: int = 20) -> None:
    """Create the shared client. An empty URL leaves Redis disabled."""
    global _client  # noqa: PLW0603
    if not url:
        return
    _client = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        decode_responses=True,
        max_connections=max_connections,
        health_check_interval=30,
    )


async def close_redis() -> None:
    """Release the client's connections."""
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.aclose()
        _client = None


def redis_enabled() -> bool:
    return _client is not None


def get_redis() -> redis.Redis:
    """Shared client. Raises RuntimeError when Redis is not configured."""
    if _client is None:
        msg = "Redis is not configured (SHARKBAND_REDIS_URL is empty)"
        raise RuntimeError(msg)
    return _client
