from typing import Optional

import redis.asyncio as redis_async

from verlic.config import settings
from verlic.logging_config import get_logger

logger = get_logger("cache_service")

_redis_client = None
_redis_url = None


def get_redis_client(redis_url: Optional[str] = None, socket_timeout_seconds: Optional[float] = None):
    """Lazily create the shared Redis client. Returns None when Redis is not configured."""
    global _redis_client, _redis_url

    redis_url = redis_url or settings.redis_url
    if not redis_url:
        return None

    timeout = (
        socket_timeout_seconds if socket_timeout_seconds is not None else settings.redis_socket_timeout_seconds
    )
    if _redis_client is None or _redis_url != redis_url:
        _redis_url = redis_url
        _redis_client = redis_async.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=timeout,
            socket_timeout=timeout,
        )

    return _redis_client


async def close_redis_client() -> None:
    global _redis_client, _redis_url

    if _redis_client is None:
        return
    try:
        await _redis_client.aclose()
    except Exception as e:
        logger.warning("Failed to close redis client", extra={"context": {"error": str(e)}})
    finally:
        _redis_client = None
        _redis_url = None
