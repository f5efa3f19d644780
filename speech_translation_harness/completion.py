"""
The terminal pass/fail channel of one asynchronous test.

Callbacks run outside the test's own call stack, so an ``assert`` failing in
a handler would otherwise be logged and dropped by the recognizer. Wrapping
handlers with ``TestCompletion.guard`` sends those exceptions here instead.
"""
import asyncio
import functools
import logging
from typing import Callable, Optional, Union

from .exceptions import OperationFailedError, WaitTimeoutError

logger = logging.getLogger(__name__)


class TestCompletion:
    """First settlement wins; later done()/fail() calls are ignored."""

    __test__ = False  # not a pytest test class

    def __init__(self, name: str = "test"):
        self.name = name
        self._future: Optional[asyncio.Future] = None
        self._error: Optional[BaseException] = None
        self._passed = False

    @property
    def settled(self) -> bool:
        return self._passed or self._error is not None

    @property
    def passed(self) -> bool:
        return self._passed

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    def done(self) -> None:
        if self.settled:
            logger.debug(f"[{self.name}] done() ignored, already settled")
            return
        self._passed = True
        self._resolve()

    def fail(self, error: Union[BaseException, str]) -> None:
        if not isinstance(error, BaseException):
            error = OperationFailedError(str(error))
        if self.settled:
            logger.debug(f"[{self.name}] fail({error!r}) ignored, already settled")
            return
        self._error = error
        logger.error(f"[{self.name}] failed: {type(error).__name__}: {error}")
        self._resolve()

    def _resolve(self) -> None:
        future = self._future
        if not self.settled or future is None or future.done():
            return
        if self._error is not None:
            future.set_exception(self._error)
        else:
            future.set_result(None)

    def guard(self, handler: Callable) -> Callable:
        """Wrap a callback so anything it raises fails the test."""

        @functools.wraps(handler)
        def guarded(*args, **kwargs):
            try:
                return handler(*args, **kwargs)
            except Exception as e:
                self.fail(e)
            return None

        return guarded

    async def wait(self, timeout_s: float) -> None:
        """
        Wait for settlement.

        Raises:
            WaitTimeoutError: nothing settled the test within ``timeout_s``
            the failure passed to fail(), when the test failed
        """
        if self._future is None:
            self._future = asyncio.get_running_loop().create_future()
            self._resolve()
        try:
            await asyncio.wait_for(asyncio.shield(self._future), timeout=timeout_s)
        except asyncio.TimeoutError:
            if self.settled:
                raise
            error = WaitTimeoutError(timeout_s, what=f"test '{self.name}' to complete")
            self.fail(error)
            raise error from None
