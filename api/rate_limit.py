"""
Rate limiting for HOUSECALL API using Redis and SlowAPI.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request
import redis
import logging

from api.config import settings

logger = logging.getLogger(__name__)

# Initialize Redis client
redis_client = None
if settings.redis_enabled:
    try:
        redis_client = redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=5
        )
        redis_client.ping()
        logger.info("Redis connection established")
    except redis.RedisError as e:
        logger.error(f"Redis connection failed: {e}")
        logger.warning("Rate limiting will not work without Redis")
        redis_client = None


def get_api_key_identifier(request: Request) -> str:
    """
    Get identifier for rate limiting.
    Uses API key if present, otherwise falls back to IP address.
    """
    api_key = request.headers.get(settings.api_key_header)
    if api_key:
        # First 8 characters are enough to tell keys apart
        return f"key:{api_key[:8]}"

    return f"ip:{get_remote_address(request)}"


limiter = Limiter(
    key_func=get_api_key_identifier,
    enabled=settings.rate_limit_enabled and redis_client is not None,
    storage_uri=settings.redis_url if redis_client else None,
    strategy="fixed-window"
)


def get_rate_limit_string() -> str:
    """
    Get rate limit string for use with @limiter.limit() decorator.

    Returns:
        str: Rate limit string (e.g., "60/minute")
    """
    return f"{settings.rate_limit_per_minute}/minute"
