import threading
from datetime import timedelta

import pytest

from batchmaker.models import RecipeParseLog
from batchmaker.services.rate_limiter import RateLimiter, RedisRateLimitStore, SqlRateLimitStore

from conftest import TestingSessionLocal


class BrokenStore:
    async def count_events_since(self, user_id, since):
        raise ConnectionError("db down")

    async def append_event(self, user_id, success, at):
        raise ConnectionError("db down")


def _seed(db_session, clock, user_id, count, minutes_ago=30, success=True):
    for _ in range(count):
        db_session.add(RecipeParseLog(
            user_id=user_id,
            success=success,
            created_at=clock.now - timedelta(minutes=minutes_ago),
        ))
    db_session.commit()


@pytest.mark.asyncio
async def test_four_attempts_allowed(rate_limiter, db_session, clock):
    _seed(db_session, clock, "user-1", 4)
    assert await rate_limiter.check_limit("user-1") is None


@pytest.mark.asyncio
async def test_fifth_attempt_in_hour_blocks_sixth(rate_limiter, db_session, clock):
    _seed(db_session, clock, "user-1", 3, minutes_ago=59)
    _seed(db_session, clock, "user-1", 2, minutes_ago=5, success=False)

    message = await rate_limiter.check_limit("user-1")
    assert message is not None
    assert "in the last hour" in message


@pytest.mark.asyncio
async def test_old_attempts_do_not_count_for_hour(rate_limiter, db_session, clock):
    _seed(db_session, clock, "user-1", 5, minutes_ago=61)
    assert await rate_limiter.check_limit("user-1") is None


@pytest.mark.asyncio
async def test_daily_limit(rate_limiter, db_session, clock):
    _seed(db_session, clock, "user-1", 15, minutes_ago=180)
    message = await rate_limiter.check_limit("user-1")
    assert message == "You've reached the daily limit of 15 recipe parses. Try again tomorrow."


@pytest.mark.asyncio
async def test_limits_are_per_user(rate_limiter, db_session, clock):
    _seed(db_session, clock, "someone-else", 10)
    assert await rate_limiter.check_limit("user-1") is None


@pytest.mark.asyncio
async def test_record_attempt_appends(rate_limiter, db_session):
    await rate_limiter.record_attempt("user-1", True)
    await rate_limiter.record_attempt("user-1", False)

    rows = db_session.query(RecipeParseLog).filter(RecipeParseLog.user_id == "user-1").all()
    assert sorted(r.success for r in rows) == [False, True]


@pytest.mark.asyncio
async def test_store_failure_fails_open():
    limiter = RateLimiter(BrokenStore())
    assert await limiter.check_limit("user-1") is None
    # Recording errors are logged, not raised
    await limiter.record_attempt("user-1", True)


@pytest.mark.asyncio
async def test_redis_store_boundary(fake_redis, clock):
    limiter = RateLimiter(RedisRateLimitStore(fake_redis), clock=clock)

    for _ in range(4):
        await limiter.record_attempt("user-1", True)
    assert await limiter.check_limit("user-1") is None

    await limiter.record_attempt("user-1", False)
    assert "in the last hour" in await limiter.check_limit("user-1")


@pytest.mark.asyncio
async def test_redis_store_window(fake_redis, clock):
    store = RedisRateLimitStore(fake_redis)
    await store.append_event("user-1", True, clock.now - timedelta(hours=2))
    await store.append_event("user-1", True, clock.now - timedelta(minutes=10))

    assert await store.count_events_since("user-1", clock.now - timedelta(hours=1)) == 1
    assert await store.count_events_since("user-1", clock.now - timedelta(days=1)) == 2
    assert await fake_redis.ttl("batchmaker:parse_attempts:user-1") > 0


@pytest.mark.asyncio
async def test_sql_store_queries_off_the_event_loop(clock):
    loop_thread = threading.get_ident()
    threads = []

    def session_factory():
        threads.append(threading.get_ident())
        return TestingSessionLocal()

    store = SqlRateLimitStore(session_factory)
    await store.append_event("user-1", True, clock.now)
    assert await store.count_events_since("user-1", clock.now - timedelta(hours=1)) == 1

    assert len(threads) == 2
    assert loop_thread not in threads
