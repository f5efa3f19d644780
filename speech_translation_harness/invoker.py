import asyncio
import logging
from enum import Enum
from typing import Callable, Optional

from .completion import TestCompletion
from .exceptions import WaitTimeoutError

logger = logging.getLogger(__name__)


class CompletionChannel(Enum):
    """Which terminal callback settled an invocation."""
    SUCCESS = "success"
    FAILURE = "failure"


class OperationInvocation:
    """
    Tracks one primary operation. The first terminal callback wins; any later
    one is logged, counted and dropped.
    """

    def __init__(self, name: str = "recognize_once"):
        self.name = name
        self.channel: Optional[CompletionChannel] = None
        self.result = None
        self.error_description: Optional[str] = None
        self.duplicate_completions = 0
        self._settled_event = asyncio.Event()

    @property
    def settled(self) -> bool:
        return self.channel is not None

    def _accept(self, channel: CompletionChannel) -> bool:
        if self.channel is not None:
            self.duplicate_completions += 1
            logger.error(
                f"{self.name}: {channel.value} callback after {self.channel.value} "
                f"already completed the operation (ignored)"
            )
            return False
        self.channel = channel
        self._settled_event.set()
        return True

    async def wait(self, timeout_s: float) -> "OperationInvocation":
        try:
            await asyncio.wait_for(self._settled_event.wait(), timeout=timeout_s)
        except asyncio.TimeoutError:
            raise WaitTimeoutError(timeout_s, what=f"{self.name} to complete") from None
        return self


class AsyncOperationInvoker:
    """Starts exactly one primary operation per call and never retries it."""

    def __init__(self, completion: Optional[TestCompletion] = None):
        self.completion = completion

    def _protect(self, callback: Optional[Callable]) -> Optional[Callable]:
        if callback is None or self.completion is None:
            return callback
        return self.completion.guard(callback)

    def invoke_once(self,
                    client,
                    on_success: Optional[Callable] = None,
                    on_failure: Optional[Callable[[str], None]] = None) -> OperationInvocation:
        invocation = OperationInvocation()
        success = self._protect(on_success)
        failure = self._protect(on_failure)

        def _on_success(result) -> None:
            if not invocation._accept(CompletionChannel.SUCCESS):
                return
            invocation.result = result
            if success is not None:
                success(result)

        def _on_failure(description: str) -> None:
            if not invocation._accept(CompletionChannel.FAILURE):
                return
            invocation.error_description = description
            if failure is not None:
                failure(description)

        logger.info(f"Starting {invocation.name} on {type(client).__name__}")
        client.recognize_once_async(_on_success, _on_failure)
        return invocation
