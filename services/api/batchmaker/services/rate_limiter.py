"""Per-user parse rate limiting.

Every parse attempt that reaches the model is appended to a log; the limiter
counts log entries in the trailing hour and day. Failed attempts count too,
so a user retrying a broken paste cannot hammer the model. That is a policy
choice (see DESIGN.md) and the thresholds are configurable.
"""
import asyncio
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol

from redis.asyncio import Redis as AsyncRedis
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..models import RecipeParseLog

logger = logging.getLogger("batchmaker.ratelimit")

HOUR = timedelta(hours=1)
DAY = timedelta(days=1)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RateLimitStore(Protocol):
    async def count_events_since(self, user_id: str, since: datetime) -> int: ...

    async def append_event(self, user_id: str, success: bool, at: datetime) -> None: ...


class SqlRateLimitStore:
    """Stores attempts in the ``recipe_parse_logs`` table.

    Queries are blocking, so they run on the default executor.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def _count(self, user_id: str, since: datetime) -> int:
        with self.session_factory() as db:
            stmt = (
                select(func.count(RecipeParseLog.id))
                .where(RecipeParseLog.user_id == user_id)
                .where(RecipeParseLog.created_at >= since)
            )
            return int(db.scalar(stmt) or 0)

    def _append(self, user_id: str, success: bool, at: datetime) -> None:
        with self.session_factory() as db:
            db.add(RecipeParseLog(user_id=user_id, success=success, created_at=at))
            db.commit()

    async def count_events_since(self, user_id: str, since: datetime) -> int:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._count, user_id, since)

    async def append_event(self, user_id: str, success: bool, at: datetime) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._append, user_id, success, at)


class RedisRateLimitStore:
    """One sorted set per user, scored by attempt time (epoch seconds)."""

    KEY_TTL_SEC = 60 * 60 * 24 * 2

    def __init__(self, redis: AsyncRedis, prefix: str = "batchmaker:parse_attempts"):
        self.redis = redis
        self.prefix = prefix

    def _key(self, user_id: str) -> str:
        return f"{self.prefix}:{user_id}"

    async def count_events_since(self, user_id: str, since: datetime) -> int:
        return int(await self.redis.zcount(self._key(user_id), since.timestamp(), "+inf"))

    async def append_event(self, user_id: str, success: bool, at: datetime) -> None:
        key = self._key(user_id)
        member = f"{at.timestamp():.6f}:{int(success)}:{uuid.uuid4().hex[:8]}"
        await self.redis.zadd(key, {member: at.timestamp()})
        # Entries older than a day can never be counted again
        await self.redis.expire(key, self.KEY_TTL_SEC)


class RateLimiter:
    def __init__(
        self,
        store: RateLimitStore,
        per_hour: int = 5,
        per_day: int = 15,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.store = store
        self.per_hour = per_hour
        self.per_day = per_day
        self.clock = clock

    async def _count_since(self, user_id: str, window: timedelta) -> Optional[int]:
        try:
            return await self.store.count_events_since(user_id, self.clock() - window)
        except Exception as e:
            # Fail open: an unreachable store must not lock users out
            logger.error(f"Rate limit count failed for user={user_id} window={window}: {e}")
            return None

    async def check_limit(self, user_id: str) -> Optional[str]:
        """Return a user-facing violation message, or None if the user may parse."""
        hour_count = await self._count_since(user_id, HOUR)
        if hour_count is not None and hour_count >= self.per_hour:
            return (
                f"You've parsed {self.per_hour} recipes in the last hour. "
                "Please wait a bit before trying again."
            )

        day_count = await self._count_since(user_id, DAY)
        if day_count is not None and day_count >= self.per_day:
            return f"You've reached the daily limit of {self.per_day} recipe parses. Try again tomorrow."

        return None

    async def record_attempt(self, user_id: str, success: bool) -> None:
        try:
            await self.store.append_event(user_id, success, self.clock())
        except Exception as e:
            logger.error(f"Failed to record parse attempt for user={user_id}: {e}")
