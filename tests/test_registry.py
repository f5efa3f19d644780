import asyncio
import logging

import pytest
from unittest.mock import Mock

from speech_translation_harness.exceptions import RegistrationError
from speech_translation_harness.registry import ResourceRegistry


class AsyncClosable:
    def __init__(self, delay: float = 0.0, error: Exception = None):
        self.delay = delay
        self.error = error
        self.close_calls = 0
        self.closed = False

    async def close(self):
        self.close_calls += 1
        await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        self.closed = True


def test_register_returns_object_and_tracks_order():
    registry = ResourceRegistry()
    first, second = Mock(), Mock()

    assert registry.register(first) is first
    registry.register(second)

    assert len(registry) == 2
    assert registry.registered == (first, second)


def test_register_object_without_close_rejected():
    registry = ResourceRegistry()

    with pytest.raises(TypeError):
        registry.register(object())

    assert len(registry) == 0


def test_register_same_object_twice_rejected():
    registry = ResourceRegistry()
    obj = Mock()
    registry.register(obj)

    with pytest.raises(RegistrationError):
        registry.register(obj)

    assert len(registry) == 1


@pytest.mark.asyncio
async def test_close_all_closes_sync_and_async_objects():
    registry = ResourceRegistry()
    sync_obj = Mock()
    async_obj = registry.register(AsyncClosable(delay=0.05))
    registry.register(sync_obj)

    failures = await registry.close_all()

    assert failures == []
    sync_obj.close.assert_called_once()
    assert async_obj.closed  # awaited before close_all returned
    assert registry.is_closed


@pytest.mark.asyncio
async def test_close_failure_reported_not_raised(caplog):
    registry = ResourceRegistry()
    broken = registry.register(AsyncClosable(error=RuntimeError("socket already gone")))
    healthy = registry.register(AsyncClosable())

    with caplog.at_level(logging.ERROR, logger="speech_translation_harness.registry"):
        failures = await registry.close_all()

    assert len(failures) == 1
    assert failures[0].obj is broken
    assert isinstance(failures[0].error, RuntimeError)
    assert healthy.closed
    assert "socket already gone" in caplog.text


@pytest.mark.asyncio
async def test_slow_close_times_out_without_blocking_others():
    registry = ResourceRegistry(close_timeout_s=0.05)
    slow = registry.register(AsyncClosable(delay=5.0))
    fast = registry.register(AsyncClosable())

    failures = await registry.close_all()

    assert [f.obj for f in failures] == [slow]
    assert isinstance(failures[0].error, asyncio.TimeoutError)
    assert fast.closed


@pytest.mark.asyncio
async def test_close_all_is_idempotent():
    registry = ResourceRegistry()
    obj = registry.register(AsyncClosable())

    await registry.close_all()
    second = await registry.close_all()

    assert second == []
    assert obj.close_calls == 1
    assert registry.close_all_calls == 2


@pytest.mark.asyncio
async def test_register_after_close_rejected():
    registry = ResourceRegistry()
    await registry.close_all()

    with pytest.raises(RegistrationError):
        registry.register(Mock())


@pytest.mark.asyncio
async def test_registry_fixture_closes_on_teardown(registry):
    obj = registry.register(AsyncClosable())
    assert not obj.closed
    assert not registry.is_closed


def test_zero_close_timeout_is_kept():
    assert ResourceRegistry(close_timeout_s=0).close_timeout_s == 0
