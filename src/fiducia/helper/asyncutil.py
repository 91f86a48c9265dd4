import asyncio
import random

from contextlib import asynccontextmanager

from fiducia import logger


class KeyedLock(object):
    ''' A set of asyncio locks, one per key. A lock is dropped as soon
        as nobody holds or waits for it, so the table does not grow with
        the number of keys ever seen.
    '''

    def __init__(self):
        self._locks = {}
        self._waiters = {}

    def locked(self, key):
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def __len__(self):
        return len(self._locks)

    @asynccontextmanager
    async def acquire(self, *keys):
        # Sorted to avoid deadlocks when a caller holds more than one key
        ordered = sorted(set(keys), key=str)
        acquired = []
        try:
            for key in ordered:
                lock = self._locks.setdefault(key, asyncio.Lock())
                self._waiters[key] = self._waiters.get(key, 0) + 1
                try:
                    await lock.acquire()
                except BaseException:
                    self._release_waiter(key)
                    raise

                acquired.append(key)

            yield tuple(ordered)
        finally:
            for key in reversed(acquired):
                self._locks[key].release()
                self._release_waiter(key)

    def _release_waiter(self, key):
        self._waiters[key] -= 1
        if self._waiters[key] == 0:
            self._waiters.pop(key)
            self._locks.pop(key)


def backoff_delay(attempt, base, cap, jitter=True):
    ''' Exponential backoff: base * 2^attempt, bounded by cap '''
    delay = min(cap, base * (2 ** attempt))
    if jitter:
        return random.uniform(delay / 2, delay)

    return delay


async def retry_async(func, *, attempts, base, cap, retry_on, sleep=asyncio.sleep, label=None):
    ''' Call `func` until it succeeds or `attempts` calls have failed with one of
        the `retry_on` exceptions. The last exception is re-raised.
    '''
    if attempts < 1:
        raise ValueError(f"Invalid number of attempts: {attempts}")

    for attempt in range(attempts):
        try:
            return await func()
        except retry_on as e:
            if attempt + 1 >= attempts:
                raise

            delay = backoff_delay(attempt, base, cap)
            logger.warning('[RETRY] %s failed (attempt %d/%d): %s. Retry in %.3fs',
                           label or func, attempt + 1, attempts, e, delay)
            await sleep(delay)
