"""
Exception taxonomy for the harness.

Every failure ends up in one terminal "test failed" signal; these types let
the diagnostic say which kind of failure it was.
"""
from typing import Optional


class HarnessError(Exception):
    """Base class for all harness errors."""


class SetupError(HarnessError):
    """A dependency object (config, audio input, recognizer) could not be built."""

    def __init__(self, what: str, cause: Optional[BaseException] = None):
        self.what = what
        self.cause = cause
        message = f"Setup failed while building {what}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class RegistrationError(HarnessError):
    """An object was registered twice, or after teardown started."""


class HarnessStateError(HarnessError):
    """The orchestrator was asked to make a transition it does not allow."""


class UnknownSlotError(HarnessError):
    """A handler was bound to a callback slot the client does not expose."""

    def __init__(self, client: object, slot: str):
        self.slot = slot
        super().__init__(f"{type(client).__name__} has no callback slot '{slot}'")


class WaitTimeoutError(HarnessError):
    """A wait condition did not become true within its bound."""

    def __init__(self, timeout_s: float, elapsed_s: Optional[float] = None, what: str = "condition"):
        self.timeout_s = timeout_s
        self.elapsed_s = elapsed_s
        message = f"Timed out after {timeout_s:.2f}s waiting for {what}"
        if elapsed_s is not None:
            message = f"{message} (elapsed {elapsed_s:.2f}s)"
        super().__init__(message)


class OperationFailedError(HarnessError):
    """The primary operation reported failure through its error channel."""

    def __init__(self, description: str):
        self.description = description
        super().__init__(description)

    def contains(self, token: str) -> bool:
        """Substring match on the description; status codes are matched this way."""
        return token in (self.description or "")
