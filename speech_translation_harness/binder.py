import logging
from typing import Callable, List, Optional

from .completion import TestCompletion
from .exceptions import UnknownSlotError
from .recognizer import slot_names

logger = logging.getLogger(__name__)


class EventCallbackBinder:
    """
    Assigns handlers to the named callback slots of a client.

    Handlers are wrapped with the test's completion guard, so an assertion
    failing inside a handler fails the test instead of being swallowed by
    the client's event dispatch.
    """

    def __init__(self, completion: Optional[TestCompletion] = None):
        self.completion = completion

    def available_slots(self, client: object) -> List[str]:
        return slot_names(client)

    def _check_slot(self, client: object, slot: str) -> None:
        names = slot_names(client)
        if names:
            if slot not in names:
                raise UnknownSlotError(client, slot)
        elif not hasattr(client, slot):
            raise UnknownSlotError(client, slot)

    def bind(self, client: object, slot: str, handler: Callable) -> Callable:
        """Replace whatever handler the slot holds; returns the installed (guarded) handler."""
        self._check_slot(client, slot)
        if not callable(handler):
            raise TypeError(f"Handler for '{slot}' must be callable")

        installed = self.completion.guard(handler) if self.completion is not None else handler
        if getattr(client, slot, None) is not None:
            logger.debug(f"Replacing handler on slot '{slot}'")
        setattr(client, slot, installed)
        return installed

    def unbind(self, client: object, slot: str) -> None:
        self._check_slot(client, slot)
        setattr(client, slot, None)

    def bound_slots(self, client: object) -> List[str]:
        return [name for name in slot_names(client) if getattr(client, name) is not None]
