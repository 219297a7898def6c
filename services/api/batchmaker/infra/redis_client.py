from redis.asyncio import Redis as AsyncRedis


def create_redis(url: str) -> AsyncRedis:
    """Build an async client. Ownership stays with the caller (the app lifespan)."""
    return AsyncRedis.from_url(url, decode_responses=True)


async def ping(redis: AsyncRedis | None) -> bool:
    if redis is None:
        return False
    try:
        return bool(await redis.ping())
    except Exception:
        return False
