from types import SimpleNamespace

import pytest
from unittest.mock import Mock

from speech_translation_harness.binder import EventCallbackBinder
from speech_translation_harness.completion import TestCompletion
from speech_translation_harness.exceptions import UnknownSlotError
from speech_translation_harness.recognizer import Recognizer, TranslationRecognizer
from speech_translation_harness.results import PropertyCollection


@pytest.fixture
def recognizer():
    return Recognizer(PropertyCollection())


def test_available_slots_lists_event_slots():
    binder = EventCallbackBinder()
    client = Recognizer(PropertyCollection())

    assert binder.available_slots(client) == [
        "session_started", "session_stopped", "recognizing", "recognized", "canceled",
    ]


def test_translation_recognizer_exposes_synthesizing_slot():
    assert "synthesizing" in EventCallbackBinder().available_slots(
        TranslationRecognizer.__new__(TranslationRecognizer)
    )


def test_bind_replaces_previous_handler(recognizer):
    binder = EventCallbackBinder()
    first, second = Mock(), Mock()

    binder.bind(recognizer, "canceled", first)
    binder.bind(recognizer, "canceled", second)
    recognizer._emit("canceled", "event")

    first.assert_not_called()
    second.assert_called_once_with(recognizer, "event")


def test_bind_unknown_slot_rejected(recognizer):
    binder = EventCallbackBinder()

    with pytest.raises(UnknownSlotError) as exc_info:
        binder.bind(recognizer, "synthesizing", Mock())

    assert exc_info.value.slot == "synthesizing"


def test_bind_non_callable_rejected(recognizer):
    with pytest.raises(TypeError):
        EventCallbackBinder().bind(recognizer, "recognized", "not a handler")


def test_guarded_handler_failure_reaches_completion(recognizer):
    completion = TestCompletion("binder")
    binder = EventCallbackBinder(completion)

    def on_canceled(sender, e):
        assert e == "expected"

    binder.bind(recognizer, "canceled", on_canceled)
    recognizer._emit("canceled", "actual")

    assert isinstance(completion.error, AssertionError)


def test_unguarded_handler_failure_is_swallowed(recognizer):
    binder = EventCallbackBinder()
    binder.bind(recognizer, "canceled", Mock(side_effect=AssertionError("lost")))

    recognizer._emit("canceled", "event")  # logged by the recognizer, not raised


def test_bound_slots_and_unbind(recognizer):
    binder = EventCallbackBinder()
    binder.bind(recognizer, "recognizing", Mock())
    binder.bind(recognizer, "canceled", Mock())

    assert binder.bound_slots(recognizer) == ["recognizing", "canceled"]

    binder.unbind(recognizer, "recognizing")
    assert binder.bound_slots(recognizer) == ["canceled"]


def test_slots_are_per_instance():
    binder = EventCallbackBinder()
    first, second = Recognizer(PropertyCollection()), Recognizer(PropertyCollection())
    binder.bind(first, "recognized", Mock())

    assert second.recognized is None


def test_plain_attribute_client_supported():
    binder = EventCallbackBinder()
    client = SimpleNamespace(on_message=None)
    handler = Mock()

    installed = binder.bind(client, "on_message", handler)

    assert client.on_message is installed
    with pytest.raises(UnknownSlotError):
        binder.bind(client, "on_close", handler)


@pytest.mark.asyncio
async def test_close_clears_bound_handlers(recognizer):
    binder = EventCallbackBinder()
    binder.bind(recognizer, "recognized", Mock())

    await recognizer.close()

    assert binder.bound_slots(recognizer) == []
