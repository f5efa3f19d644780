import asyncio

import pytest

from speech_translation_harness.completion import TestCompletion
from speech_translation_harness.exceptions import OperationFailedError, WaitTimeoutError


def test_done_without_running_loop():
    completion = TestCompletion("sync")
    completion.done()

    assert completion.settled
    assert completion.passed
    assert completion.error is None


def test_first_settlement_wins():
    completion = TestCompletion("first-wins")
    completion.fail(AssertionError("reason mismatch"))
    completion.done()
    completion.fail(RuntimeError("late"))

    assert not completion.passed
    assert isinstance(completion.error, AssertionError)


def test_fail_with_string_wraps_operation_failure():
    completion = TestCompletion("string-failure")
    completion.fail("Recognizer is closed")

    assert isinstance(completion.error, OperationFailedError)
    assert completion.error.contains("closed")


def test_guard_routes_exceptions_to_fail():
    completion = TestCompletion("guarded")

    def on_recognized(sender, e):
        assert e == "expected"

    guarded = completion.guard(on_recognized)
    result = guarded(None, "unexpected")

    assert result is None
    assert isinstance(completion.error, AssertionError)
    assert guarded.__name__ == "on_recognized"


def test_guard_passes_return_value_through():
    completion = TestCompletion("guarded-ok")
    guarded = completion.guard(lambda value: value * 2)

    assert guarded(21) == 42
    assert not completion.settled


@pytest.mark.asyncio
async def test_wait_returns_when_done_from_callback():
    completion = TestCompletion("callback")
    asyncio.get_running_loop().call_later(0.02, completion.done)

    await completion.wait(timeout_s=1.0)

    assert completion.passed


@pytest.mark.asyncio
async def test_wait_raises_recorded_failure():
    completion = TestCompletion("failure")
    completion.fail(AssertionError("canceled before recognized"))

    with pytest.raises(AssertionError, match="canceled before recognized"):
        await completion.wait(timeout_s=1.0)


@pytest.mark.asyncio
async def test_wait_timeout_fails_the_test():
    completion = TestCompletion("silent")

    with pytest.raises(WaitTimeoutError):
        await completion.wait(timeout_s=0.05)

    assert isinstance(completion.error, WaitTimeoutError)
    completion.done()
    assert not completion.passed


@pytest.mark.asyncio
async def test_wait_blocks_until_settled():
    completion = TestCompletion("pending")
    waiting = asyncio.get_running_loop().create_task(completion.wait(timeout_s=1.0))

    await asyncio.sleep(0.05)
    assert not waiting.done()
    assert not completion.settled

    completion.fail(AssertionError("result callback failed"))

    with pytest.raises(AssertionError, match="result callback failed"):
        await waiting
