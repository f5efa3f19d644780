import os

import pytest

from speech_translation_harness.config import settings
from speech_translation_harness.orchestrator import HarnessState, TestOrchestrator
from speech_translation_harness.results import CancellationDetails, CancellationErrorCode, ResultReason
from speech_translation_harness.waiter import CompletionCounter


def require_live_service():
    # Skip if no credentials
    if not settings.has_credentials:
        pytest.skip("No speech service credentials")
    if not os.path.exists(settings.WAVE_FILE):
        pytest.skip(f"Wave file not available: {settings.WAVE_FILE}")


@pytest.mark.asyncio
async def test_real_translate_single_target():
    require_live_service()

    async with TestOrchestrator("real translate single target") as run:
        recognizer = run.build_recognizer()

        def on_result(result):
            assert result.reason == ResultReason.TRANSLATED_SPEECH
            assert result.translations.get("de", "")
            run.done()

        run.invoke(recognizer, on_result)
        await run.settle()

    assert run.state == HarnessState.TORN_DOWN
    assert HarnessState.SETTLED_PASS in run.history


@pytest.mark.asyncio
async def test_real_recognize_once_bad_language():
    require_live_service()

    async with TestOrchestrator("real recognize once bad language") as run:
        config = run.build_config()
        config.speech_recognition_language = "BadLanguage"
        recognizer = run.build_recognizer(config)
        done_count = CompletionCounter(target=2)

        def on_canceled(sender, e):
            assert e.error_code == CancellationErrorCode.CONNECTION_FAILURE
            done_count.increment()

        run.bind(recognizer, "canceled", on_canceled)

        def on_result(result):
            assert CancellationDetails.from_result(result).error_code == CancellationErrorCode.CONNECTION_FAILURE
            done_count.increment()

        run.invoke(recognizer, on_result)
        await run.wait_until(done_count.reached)

    assert not run.close_failures
