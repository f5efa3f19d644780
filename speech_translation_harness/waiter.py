"""
Polling wait on a predicate, for tests that need more than one independent
signal before they are done (e.g. a ``canceled`` event *and* the primary
result callback, which may arrive in either order).
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .config import settings
from .exceptions import WaitTimeoutError

logger = logging.getLogger(__name__)


@dataclass
class WaitOutcome:
    """Result of one wait_until call."""
    satisfied: bool
    elapsed_s: float
    polls: int
    timeout_s: float
    error: Optional[BaseException] = None

    @property
    def timed_out(self) -> bool:
        return not self.satisfied and self.error is None

    def raise_for_timeout(self) -> None:
        if self.error is not None:
            raise self.error
        if not self.satisfied:
            raise WaitTimeoutError(self.timeout_s, self.elapsed_s)


class CompletionCounter:
    """Monotonic count of independent sub-completions."""

    def __init__(self, target: int):
        if target < 1:
            raise ValueError("target must be at least 1")
        self.target = target
        self._count = 0

    @property
    def count(self) -> int:
        return self._count

    def increment(self) -> int:
        self._count += 1
        logger.debug(f"Completion counter {self._count}/{self.target}")
        return self._count

    def reached(self) -> bool:
        return self._count >= self.target


class ConditionWaiter:
    """
    Evaluates a predicate every ``poll_interval_s`` on the running event loop
    until it holds or ``timeout_s`` elapses. No threads are started.
    """

    def __init__(self, poll_interval_s: Optional[float] = None, timeout_s: Optional[float] = None):
        self.poll_interval_s = poll_interval_s if poll_interval_s is not None else settings.WAIT_POLL_INTERVAL_S
        self.timeout_s = timeout_s if timeout_s is not None else settings.WAIT_TIMEOUT_S

    async def wait_until(self,
                         predicate: Callable[[], bool],
                         on_settled: Optional[Callable[[WaitOutcome], None]] = None,
                         poll_interval_s: Optional[float] = None,
                         timeout_s: Optional[float] = None) -> WaitOutcome:
        interval = poll_interval_s if poll_interval_s is not None else self.poll_interval_s
        timeout = timeout_s if timeout_s is not None else self.timeout_s
        started = time.monotonic()
        deadline = started + timeout
        polls = 0
        error = None

        while True:
            polls += 1
            try:
                satisfied = bool(predicate())
            except Exception as e:
                logger.error(f"Wait predicate raised {type(e).__name__}: {e}")
                satisfied, error = False, e
                break
            if satisfied or time.monotonic() >= deadline:
                break
            await asyncio.sleep(min(interval, max(deadline - time.monotonic(), 0)))

        outcome = WaitOutcome(
            satisfied=satisfied,
            elapsed_s=time.monotonic() - started,
            polls=polls,
            timeout_s=timeout,
            error=error,
        )
        if outcome.timed_out:
            logger.warning(f"Condition not met after {outcome.elapsed_s:.2f}s ({polls} polls)")
        if on_settled is not None:
            on_settled(outcome)
        return outcome


def wait_for_condition(predicate: Callable[[], bool],
                       completion,
                       poll_interval_s: Optional[float] = None,
                       timeout_s: Optional[float] = None) -> asyncio.Task:
    """
    Settle ``completion`` once ``predicate`` holds: done() when it does,
    fail(WaitTimeoutError) when the timeout passes first.
    """

    def _settle(outcome: WaitOutcome) -> None:
        if outcome.satisfied:
            completion.done()
        elif outcome.error is not None:
            completion.fail(outcome.error)
        else:
            completion.fail(WaitTimeoutError(outcome.timeout_s, outcome.elapsed_s))

    waiter = ConditionWaiter(poll_interval_s, timeout_s)
    return asyncio.get_running_loop().create_task(waiter.wait_until(predicate, _settle))
