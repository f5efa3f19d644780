import wave

import pytest
import pytest_asyncio
from unittest.mock import patch

from speech_translation_harness.config import HarnessSettings, settings
from speech_translation_harness.diagnostics import configure_logging, log_test_end, log_test_start
from speech_translation_harness.orchestrator import TestOrchestrator
from speech_translation_harness.registry import ResourceRegistry
from speech_translation_harness.services import ScriptedTranslationBackend


def write_wave_file(path, seconds: float = 1.0, sample_rate: int = 16000, sample_width: int = 2) -> str:
    """Write a mono PCM WAV file of silence."""
    with wave.open(str(path), "wb") as wav_file:
        wav_file.setnchannels(1)
        wav_file.setsampwidth(sample_width)
        wav_file.setframerate(sample_rate)
        wav_file.writeframes(b"\x00" * int(seconds * sample_rate) * sample_width)
    return str(path)


@pytest.fixture(scope="session", autouse=True)
def harness_logging():
    configure_logging("DEBUG")


@pytest.fixture(autouse=True)
def log_test_case(request):
    started = log_test_start(request.node.name)
    yield
    log_test_end(request.node.name, started)


@pytest.fixture
def fast_wait_settings():
    """Temporarily reduce wait settings for faster test execution."""
    with patch.object(settings, 'WAIT_POLL_INTERVAL_S', 0.01), \
         patch.object(settings, 'WAIT_TIMEOUT_S', 1.0), \
         patch.object(settings, 'OPERATION_TIMEOUT_S', 2.0), \
         patch.object(settings, 'CLOSE_TIMEOUT_S', 0.5):
        yield settings


@pytest.fixture
def wave_file(tmp_path):
    return write_wave_file(tmp_path / "whatstheweatherlike.wav")


@pytest.fixture
def harness_settings(wave_file):
    return HarnessSettings(
        SPEECH_SUBSCRIPTION_KEY="test-subscription-key",
        SPEECH_REGION="westeurope",
        WAVE_FILE=wave_file,
        WAIT_POLL_INTERVAL_S=0.01,
        WAIT_TIMEOUT_S=2.0,
        OPERATION_TIMEOUT_S=5.0,
        CLOSE_TIMEOUT_S=1.0,
    )


@pytest.fixture
def scripted_backends():
    """Every backend the factory below handed out, in creation order."""
    return []


@pytest.fixture
def backend_factory(scripted_backends):
    def _factory(config):
        backend = ScriptedTranslationBackend()
        scripted_backends.append(backend)
        return backend
    return _factory


@pytest_asyncio.fixture
async def registry():
    registry = ResourceRegistry(close_timeout_s=1.0)
    yield registry
    await registry.close_all()


@pytest_asyncio.fixture
async def harness(request, harness_settings, backend_factory):
    run = TestOrchestrator(request.node.name, backend_factory=backend_factory, settings=harness_settings)
    yield run
    await run.teardown()
