import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

from .config import settings
from .exceptions import RegistrationError

logger = logging.getLogger(__name__)


@dataclass
class CloseFailure:
    """A registered object whose close() raised or did not finish in time."""
    obj: object
    error: BaseException

    @property
    def description(self) -> str:
        return f"{type(self.obj).__name__}: {type(self.error).__name__}: {self.error}"


class ResourceRegistry:
    """
    Tracks every object with an explicit close() created during one test and
    closes all of them at teardown.

    One registry per test; pass it to the helpers that build objects instead
    of keeping it in module state.
    """

    def __init__(self, close_timeout_s: Optional[float] = None):
        self.close_timeout_s = close_timeout_s if close_timeout_s is not None else settings.CLOSE_TIMEOUT_S
        self._objects: List[object] = []
        self._closed = False
        self.close_all_calls = 0

    def register(self, obj):
        """
        Add an object to the teardown list and return it.

        Raises:
            TypeError: when the object has no close()
            RegistrationError: on a second registration of the same object or
                once teardown has started
        """
        if not callable(getattr(obj, "close", None)):
            raise TypeError(f"{type(obj).__name__} has no close() and cannot be registered")
        if self._closed:
            raise RegistrationError(f"Cannot register {type(obj).__name__}: registry already closed")
        if any(existing is obj for existing in self._objects):
            raise RegistrationError(f"{type(obj).__name__} is already registered")

        self._objects.append(obj)
        logger.debug(f"Registered {type(obj).__name__} (total: {len(self._objects)})")
        return obj

    @property
    def registered(self) -> Tuple[object, ...]:
        return tuple(self._objects)

    @property
    def is_closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        return len(self._objects)

    def __iter__(self) -> Iterator[object]:
        return iter(list(self._objects))

    async def _close_one(self, obj) -> None:
        outcome = obj.close()
        if inspect.isawaitable(outcome):
            await asyncio.wait_for(outcome, timeout=self.close_timeout_s)

    async def close_all(self) -> List[CloseFailure]:
        """
        Close every registered object and wait for all of them.

        Failures are logged and returned, never raised, so they cannot mask
        the outcome of the test itself. A second call is a no-op.
        """
        self.close_all_calls += 1
        if self._closed:
            logger.warning("close_all() called again, objects were already closed")
            return []
        self._closed = True

        objects = list(self._objects)
        outcomes = await asyncio.gather(
            *(self._close_one(obj) for obj in objects), return_exceptions=True
        )

        failures = []
        for obj, outcome in zip(objects, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                failure = CloseFailure(obj, outcome)
                logger.error(f"Close failed for {failure.description}")
                failures.append(failure)

        logger.info(f"Closed {len(objects) - len(failures)}/{len(objects)} objects")
        return failures
