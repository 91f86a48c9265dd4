import asyncio
import pytest

from datetime import timedelta
from types import SimpleNamespace

from fiducia.error import ConflictError, FiduciaException
from fiducia.helper import KeyedLock, camel_to_lower, retry_async
from fiducia.helper.asyncutil import backoff_delay
from fiducia.helper.timeutil import as_timedelta


class Flaky(FiduciaException):
    pass


def test_setup_module():
    from fiducia import setupModule

    defaults = SimpleNamespace(TEST_CONFIG_KEY='sample-value', TEST_LIMIT=10)
    config, logger = setupModule('test_setupModule', defaults)
    assert config.TEST_CONFIG_KEY == 'sample-value'
    assert config.TEST_LIMIT == 10
    assert config.get('NOT_DEFINED', 'fallback') == 'fallback'

    with pytest.raises(AttributeError):
        config.NOT_DEFINED


def test_exception_content():
    error = ConflictError("T99.409", "Already taken", {"key": "abc"})
    assert error.status_code == 409
    assert error.content == {"errcode": "T99.409", "message": "Already taken", "details": {"key": "abc"}}
    assert str(error) == "T99.409 [409] >> Already taken >> {'key': 'abc'}"

    plain = FiduciaException("T99.500", "Boom")
    assert plain.content == {"errcode": "T99.500", "message": "Boom"}


def test_camel_to_lower():
    assert camel_to_lower('TransferInitiated') == 'transfer-initiated'
    assert camel_to_lower('ProcessRefund') == 'process-refund'
    assert camel_to_lower('HTTPRequest') == 'http-request'


def test_as_timedelta():
    assert as_timedelta(2) == timedelta(hours=2)
    assert as_timedelta(timedelta(minutes=5)) == timedelta(minutes=5)

    for value in ('72', None, True):
        with pytest.raises(ValueError):
            as_timedelta(value)


def test_backoff_delay_is_bounded():
    assert backoff_delay(0, 0.05, 2.0, jitter=False) == 0.05
    assert backoff_delay(3, 0.05, 2.0, jitter=False) == 0.4
    assert backoff_delay(10, 0.05, 2.0, jitter=False) == 2.0

    for attempt in range(10):
        assert 0 < backoff_delay(attempt, 0.05, 2.0) <= 2.0


@pytest.mark.asyncio
async def test_keyed_lock_serializes_same_key():
    locks = KeyedLock()
    trace = []

    async def worker(key, name):
        async with locks.acquire(key):
            trace.append(f'{name}:start')
            await asyncio.sleep(0)
            await asyncio.sleep(0)
            trace.append(f'{name}:end')

    await asyncio.gather(worker('a', 'w1'), worker('a', 'w2'))
    assert trace == ['w1:start', 'w1:end', 'w2:start', 'w2:end']

    # Locks are dropped when nobody holds them anymore
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_keyed_lock_different_keys_interleave():
    locks = KeyedLock()
    trace = []

    async def worker(key):
        async with locks.acquire(key):
            trace.append(f'{key}:start')
            await asyncio.sleep(0)
            trace.append(f'{key}:end')

    await asyncio.gather(worker('a'), worker('b'))
    assert trace.index('b:start') < trace.index('a:end')
    assert not locks.locked('a')


@pytest.mark.asyncio
async def test_retry_async_recovers():
    calls, delays = [], []

    async def func():
        calls.append(1)
        if len(calls) < 3:
            raise Flaky("T99.503", "not yet")
        return 'done'

    async def sleep(delay):
        delays.append(delay)

    result = await retry_async(func, attempts=4, base=0.01, cap=1.0, retry_on=(Flaky,), sleep=sleep)
    assert result == 'done'
    assert len(calls) == 3
    assert len(delays) == 2


@pytest.mark.asyncio
async def test_retry_async_reraises_last_error():
    calls = []

    async def func():
        calls.append(1)
        raise Flaky("T99.503", f"attempt {len(calls)}")

    async def sleep(delay):
        pass

    with pytest.raises(Flaky) as excinfo:
        await retry_async(func, attempts=3, base=0.01, cap=1.0, retry_on=(Flaky,), sleep=sleep)

    assert excinfo.value.message == "attempt 3"
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_retry_async_does_not_retry_other_errors():
    calls = []

    async def func():
        calls.append(1)
        raise KeyError('missing')

    with pytest.raises(KeyError):
        await retry_async(func, attempts=3, base=0.01, cap=1.0, retry_on=(Flaky,))

    assert len(calls) == 1


def test_config_overrides_from_environment(monkeypatch):
    from fiducia.conf import getConfig

    monkeypatch.setenv('FIDUCIA__TEST_ENV_MODULE__RETRIES', '7')
    monkeypatch.setenv('FIDUCIA__TEST_ENV_MODULE__ENABLED', 'yes')
    monkeypatch.setenv('FIDUCIA__TEST_ENV_MODULE__CURRENCIES', '["USD", "EUR"]')

    defaults = SimpleNamespace(RETRIES=3, ENABLED=False, CURRENCIES=[], NAME='sample')
    config = getConfig('test-env-module', defaults)

    assert config.RETRIES == 7
    assert config.ENABLED is True
    assert config.CURRENCIES == ['USD', 'EUR']
    assert config.NAME == 'sample'
    assert config.origin('RETRIES') == 'FIDUCIA__TEST_ENV_MODULE__RETRIES'


def test_config_rejects_invalid_values(monkeypatch):
    from fiducia.conf import getConfig

    monkeypatch.setenv('FIDUCIA__TEST_INVALID_MODULE__RETRIES', 'many')

    with pytest.raises(ValueError):
        getConfig('test-invalid-module', SimpleNamespace(RETRIES=3))


@pytest.mark.parametrize('colored', [True, False])
def test_logger_writes_each_record_once(colored):
    from fiducia.conf import getConfig
    from fiducia.logs import getLogger

    name = f'test-logger-colored-{str(colored).lower()}'
    config = getConfig(name, SimpleNamespace(
        LOG_LEVEL='info',
        LOG_OUTPUT=['stderr'],
        LOG_FORMATTER='%(levelname)s %(message)s',
        LOG_DATEFMT=None,
        LOG_COLORED=colored,
    ))

    logger = getLogger(name, config)
    assert len(logger.handlers) == 1
    assert getLogger(name) is logger
