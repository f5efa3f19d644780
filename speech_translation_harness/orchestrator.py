"""
Per-test orchestration of a translation recognizer run.

State Transitions:
- NOT_STARTED → CLIENT_BUILT (recognizer built)
- CLIENT_BUILT → CALLBACKS_BOUND (first handler bound)
- CLIENT_BUILT / CALLBACKS_BOUND → OPERATION_INVOKED (primary operation started)
- OPERATION_INVOKED → SETTLED_PASS / SETTLED_FAIL / SETTLED_TIMEOUT
- * → TORN_DOWN (teardown always runs, also after a setup failure)
"""
import logging
from enum import Enum
from typing import Callable, Dict, List, Optional, Set

from .audio_input import AudioConfig, WaveFileAudioInput
from .binder import EventCallbackBinder
from .completion import TestCompletion
from .config import HarnessSettings, settings as default_settings
from .exceptions import HarnessStateError, SetupError, WaitTimeoutError
from .invoker import AsyncOperationInvoker, OperationInvocation
from .recognizer import TranslationRecognizer
from .registry import CloseFailure, ResourceRegistry
from .services import TranslationBackend
from .translation_config import SpeechTranslationConfig
from .waiter import ConditionWaiter, WaitOutcome

logger = logging.getLogger(__name__)


class HarnessState(Enum):
    NOT_STARTED = "not_started"
    CLIENT_BUILT = "client_built"
    CALLBACKS_BOUND = "callbacks_bound"
    OPERATION_INVOKED = "operation_invoked"
    SETTLED_PASS = "settled_pass"
    SETTLED_FAIL = "settled_fail"
    SETTLED_TIMEOUT = "settled_timeout"
    TORN_DOWN = "torn_down"


SETTLED_STATES = {HarnessState.SETTLED_PASS, HarnessState.SETTLED_FAIL, HarnessState.SETTLED_TIMEOUT}

# Valid state transitions; TORN_DOWN is reachable from every state
VALID_TRANSITIONS: Dict[HarnessState, Set[HarnessState]] = {
    HarnessState.NOT_STARTED: {HarnessState.CLIENT_BUILT, HarnessState.TORN_DOWN},
    HarnessState.CLIENT_BUILT: {
        HarnessState.CLIENT_BUILT,
        HarnessState.CALLBACKS_BOUND,
        HarnessState.OPERATION_INVOKED,
        HarnessState.TORN_DOWN,
    },
    HarnessState.CALLBACKS_BOUND: {
        HarnessState.CALLBACKS_BOUND,
        HarnessState.OPERATION_INVOKED,
        HarnessState.TORN_DOWN,
    },
    HarnessState.OPERATION_INVOKED: SETTLED_STATES | {HarnessState.TORN_DOWN},
    HarnessState.SETTLED_PASS: {HarnessState.TORN_DOWN},
    HarnessState.SETTLED_FAIL: {HarnessState.TORN_DOWN},
    HarnessState.SETTLED_TIMEOUT: {HarnessState.TORN_DOWN},
    HarnessState.TORN_DOWN: set(),  # Terminal state
}

BackendFactory = Callable[[SpeechTranslationConfig], TranslationBackend]


class TestOrchestrator:
    """
    Builds the recognizer and its dependencies, binds handlers, starts the
    primary operation, waits for settlement and tears everything down.

    Use it as an async context manager; teardown runs on every exit path:

        async with TestOrchestrator("Translate Bad Language", backend_factory=...) as run:
            recognizer = run.build_recognizer()
            run.bind(recognizer, "canceled", on_canceled)
            run.invoke(recognizer, on_result)
            await run.settle()
    """

    __test__ = False  # not a pytest test class

    def __init__(self,
                 name: str = "test",
                 registry: Optional[ResourceRegistry] = None,
                 backend_factory: Optional[BackendFactory] = None,
                 settings: Optional[HarnessSettings] = None):
        self.name = name
        self.settings = settings or default_settings
        self.registry = registry if registry is not None else ResourceRegistry(self.settings.CLOSE_TIMEOUT_S)
        self.backend_factory = backend_factory
        self.completion = TestCompletion(name)
        self.binder = EventCallbackBinder(self.completion)
        self.invoker = AsyncOperationInvoker(self.completion)
        self.waiter = ConditionWaiter(self.settings.WAIT_POLL_INTERVAL_S, self.settings.WAIT_TIMEOUT_S)

        self.state = HarnessState.NOT_STARTED
        self.history: List[HarnessState] = [self.state]
        self.invocation: Optional[OperationInvocation] = None
        self.close_failures: List[CloseFailure] = []

    def _transition(self, new_state: HarnessState) -> None:
        if new_state not in VALID_TRANSITIONS[self.state]:
            raise HarnessStateError(f"[{self.name}] invalid transition {self.state.value} → {new_state.value}")
        if new_state != self.state:
            logger.debug(f"[{self.name}] {self.state.value} → {new_state.value}")
            self.history.append(new_state)
        self.state = new_state

    def _require_not_torn_down(self) -> None:
        if self.state == HarnessState.TORN_DOWN:
            raise HarnessStateError(f"[{self.name}] already torn down")

    async def __aenter__(self) -> "TestOrchestrator":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if exc is not None and not self.completion.settled:
            self.completion.fail(exc)
        await self.teardown()
        return False

    # Construction

    def build_config(self,
                     subscription_key: Optional[str] = None,
                     region: Optional[str] = None) -> SpeechTranslationConfig:
        self._require_not_torn_down()
        try:
            config = SpeechTranslationConfig.from_subscription(
                subscription_key if subscription_key is not None else self.settings.SPEECH_SUBSCRIPTION_KEY,
                region if region is not None else self.settings.SPEECH_REGION,
            )
        except Exception as e:
            raise SetupError("SpeechTranslationConfig", e) from e
        return self.registry.register(config)

    def build_audio_config(self, wave_file: Optional[str] = None) -> WaveFileAudioInput:
        self._require_not_torn_down()
        try:
            audio = AudioConfig.from_wav_file_input(wave_file or self.settings.WAVE_FILE)
        except Exception as e:
            raise SetupError("audio input", e) from e
        return self.registry.register(audio)

    def build_recognizer(self,
                         config: Optional[SpeechTranslationConfig] = None,
                         audio_config: Optional[WaveFileAudioInput] = None,
                         target_language: Optional[str] = None) -> TranslationRecognizer:
        """
        Build a recognizer over the configured wave file.

        Without a config one is built and registered. The recognition
        language defaults to the wave file's language and the default target
        language is always added.
        """
        self._require_not_torn_down()
        if config is None:
            config = self.build_config()
        if config.speech_recognition_language is None:
            config.speech_recognition_language = self.settings.WAVE_FILE_LANGUAGE
        config.add_target_language(target_language or self.settings.DEFAULT_TARGET_LANGUAGE)

        if audio_config is None:
            audio_config = self.build_audio_config()

        backend = None
        if self.backend_factory is not None:
            try:
                backend = self.backend_factory(config)
            except Exception as e:
                raise SetupError("service backend", e) from e
            self.registry.register(backend)

        try:
            recognizer = TranslationRecognizer(config, audio_config, backend)
        except Exception as e:
            raise SetupError("TranslationRecognizer", e) from e
        self.registry.register(recognizer)

        self._transition(HarnessState.CLIENT_BUILT)
        return recognizer

    # Callbacks and the primary operation

    def bind(self, client, slot: str, handler: Callable) -> Callable:
        self._require_not_torn_down()
        installed = self.binder.bind(client, slot, handler)
        if self.state == HarnessState.CLIENT_BUILT:
            self._transition(HarnessState.CALLBACKS_BOUND)
        return installed

    def invoke(self,
               client,
               on_success: Optional[Callable] = None,
               on_failure: Optional[Callable[[str], None]] = None) -> OperationInvocation:
        """Start the primary operation; by default the failure channel fails the test."""
        if self.invocation is not None:
            raise HarnessStateError(f"[{self.name}] primary operation already invoked")
        self._transition(HarnessState.OPERATION_INVOKED)
        self.invocation = self.invoker.invoke_once(
            client, on_success, on_failure if on_failure is not None else self.completion.fail
        )
        return self.invocation

    def done(self) -> None:
        self.completion.done()

    def fail(self, error) -> None:
        self.completion.fail(error)

    # Settlement

    async def wait_until(self,
                         predicate: Callable[[], bool],
                         timeout_s: Optional[float] = None,
                         poll_interval_s: Optional[float] = None) -> WaitOutcome:
        """
        Combined-signal wait: pass once ``predicate`` holds, fail on timeout.
        Stops early when a handler has already failed the test.
        """
        completion = self.completion

        def _predicate() -> bool:
            return completion.settled or predicate()

        outcome = await self.waiter.wait_until(
            _predicate, poll_interval_s=poll_interval_s, timeout_s=timeout_s
        )
        if outcome.error is not None:
            completion.fail(outcome.error)
        elif outcome.satisfied:
            completion.done()
        else:
            completion.fail(WaitTimeoutError(outcome.timeout_s, outcome.elapsed_s))
        await self.settle()
        return outcome

    async def settle(self, timeout_s: Optional[float] = None) -> None:
        """
        Wait for the test to be settled and record the terminal state.

        Raises:
            WaitTimeoutError: no settlement within the timeout
            the recorded failure, when the test failed
        """
        if timeout_s is None:
            timeout_s = self.settings.OPERATION_TIMEOUT_S
        try:
            await self.completion.wait(timeout_s=timeout_s)
        except WaitTimeoutError:
            self._settle_state(HarnessState.SETTLED_TIMEOUT)
            raise
        except BaseException:
            self._settle_state(HarnessState.SETTLED_FAIL)
            raise
        self._settle_state(HarnessState.SETTLED_PASS)

    def _settle_state(self, state: HarnessState) -> None:
        if self.state == HarnessState.OPERATION_INVOKED:
            self._transition(state)
        elif self.state not in SETTLED_STATES:
            logger.warning(f"[{self.name}] settled as {state.value} in state {self.state.value}")

    async def teardown(self) -> List[CloseFailure]:
        """Close every registered object; runs once, from any state."""
        if self.state == HarnessState.TORN_DOWN:
            return self.close_failures
        try:
            self.close_failures = await self.registry.close_all()
        finally:
            self._transition(HarnessState.TORN_DOWN)
        if self.close_failures:
            logger.error(f"[{self.name}] {len(self.close_failures)} object(s) failed to close")
        return self.close_failures
