from redis import Redis
from typing import Optional
from redis.lock import Lock

from fleet.src import exceptions
from fleet.src.constants import (
    REDIS_HOST,
    REDIS_PORT,
    REDIS_PASSWORD,
    MUTEX_LOCK_TIMEOUT,
    MUTEX_LOCK_MAX_WAIT_TIME,
)

redisClient = Redis(
    host=REDIS_HOST,
    port=REDIS_PORT,
    password=REDIS_PASSWORD,
    decode_responses=True,
)


def acquireLock(
    tableName: str,
    pk: Optional[int] = None,
    timeOut: int = MUTEX_LOCK_TIMEOUT,
    blockingTimeOut: int = MUTEX_LOCK_MAX_WAIT_TIME,
) -> Lock:
    """
    Take the mutex `lock:<tableName>` or, with a primary key, `lock:<tableName>:<pk>`.

    The lock expires after `timeOut` seconds. Waiting longer than
    `blockingTimeOut` seconds raises `LockAcquireTimeout`.
    """
    try:
        lockName = f"lock:{tableName}" if pk is None else f"lock:{tableName}:{pk}"
        lock = redisClient.lock(lockName, timeout=timeOut)
        if lock.acquire(blocking=True, blocking_timeout=blockingTimeOut):
            return lock
        raise exceptions.LockAcquireTimeout()
    except Exception as e:
        exceptions.handle(e)


def releaseLock(lock: Optional[Lock]) -> None:
    """Release a lock taken by `acquireLock`, if this process still holds it."""
    if lock and lock.locked() and lock.owned():
        lock.release()


def rateLimit(scope: str, identifier: str, limit: int, window: int) -> int:
    """
    Count a request against a fixed-window rate limit.

    The counter key expires `window` seconds after the first request of the
    window, which starts a new window.

    Args:
        scope (str): Name of the limited action, such as `bootstrap`.
        identifier (str): Caller identity, usually the client IP.
        limit (int): Maximum number of requests per window.
        window (int): Window length in seconds.

    Returns:
        int: Number of requests counted in the current window.

    Raises:
        exceptions.TooManyRequests: If the caller exceeded the limit.
    """
    try:
        key = f"ratelimit:{scope}:{identifier}"
        count = redisClient.incr(key)
        if count == 1:
            redisClient.expire(key, window)
        if count > limit:
            raise exceptions.TooManyRequests()
        return count
    except Exception as e:
        exceptions.handle(e)
