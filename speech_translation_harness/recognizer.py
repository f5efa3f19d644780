"""
Callback-based translation recognizer.

Events are delivered through named slots (``recognizing``, ``canceled``,
``synthesizing``, ...). Each slot holds at most one handler; assigning a new
handler replaces the old one. Handlers are called as ``handler(sender, args)``
on the event loop that started the recognition. An exception raised by a
handler is logged and dropped here, so callers that need handler failures
to count must route them themselves.
"""
import asyncio
import logging
import uuid
from typing import Callable, List, Optional

from .audio_input import WaveFileAudioInput
from .results import (
    CancellationDetails,
    CancellationReason,
    PropertyCollection,
    PropertyId,
    ResultReason,
    SessionEventArgs,
    TranslationRecognitionCanceledEventArgs,
    TranslationRecognitionEventArgs,
    TranslationRecognitionResult,
    TranslationSynthesisEventArgs,
    TranslationSynthesisResult,
    Translations,
)
from .services import (
    GoogleCloudTranslationBackend,
    ServiceError,
    TranslationBackend,
    language_key,
)
from .translation_config import SpeechTranslationConfig

logger = logging.getLogger(__name__)

EventHandler = Callable[[object, object], None]


class EventSlot:
    """A named, per-instance handler slot; assignment replaces the previous handler."""

    def __set_name__(self, owner, name):
        self.name = name
        self._attr = f"_slot_{name}"

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        return instance.__dict__.get(self._attr)

    def __set__(self, instance, handler: Optional[EventHandler]):
        if handler is not None and not callable(handler):
            raise TypeError(f"Handler for slot '{self.name}' must be callable, got {type(handler).__name__}")
        instance.__dict__[self._attr] = handler

    def __delete__(self, instance):
        instance.__dict__.pop(self._attr, None)


def slot_names(client: object) -> List[str]:
    """Names of the EventSlot descriptors defined on the client's class."""
    names = []
    for klass in type(client).__mro__:
        for name, value in vars(klass).items():
            if isinstance(value, EventSlot) and name not in names:
                names.append(name)
    return names


class Recognizer:
    """Base class: session slots, property bag and the close lifecycle."""

    session_started = EventSlot()
    session_stopped = EventSlot()
    recognizing = EventSlot()
    recognized = EventSlot()
    canceled = EventSlot()

    def __init__(self, properties: PropertyCollection):
        self._properties = properties
        self._operation: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def properties(self) -> PropertyCollection:
        return self._properties

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _emit(self, slot: str, event_args) -> None:
        handler = getattr(self, slot)
        if handler is None:
            return
        try:
            handler(self, event_args)
        except Exception as e:
            logger.error(f"Handler for '{slot}' raised {type(e).__name__}: {e} (swallowed)")

    def _deliver(self, callback: Optional[Callable], value) -> None:
        if callback is None:
            return
        try:
            callback(value)
        except Exception as e:
            logger.error(f"Completion callback raised {type(e).__name__}: {e} (swallowed)")

    def _schedule_failure(self, err: Optional[Callable], description: str) -> None:
        logger.error(f"Recognition not started: {description}")
        asyncio.get_running_loop().call_soon(self._deliver, err, description)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        if self._operation is not None and not self._operation.done():
            self._operation.cancel()
            try:
                await self._operation
            except asyncio.CancelledError:
                logger.info("In-flight recognition canceled by close()")
        self._operation = None

        for name in slot_names(self):
            setattr(self, name, None)
        await self._close_resources()
        logger.info(f"{type(self).__name__} closed")

    async def _close_resources(self) -> None:
        pass


class TranslationRecognizer(Recognizer):
    """
    Recognizes speech from a WAV input and translates it into every target
    language of the config.
    """

    synthesizing = EventSlot()

    def __init__(self,
                 config: SpeechTranslationConfig,
                 audio_config: WaveFileAudioInput,
                 backend: Optional[TranslationBackend] = None):
        if config is None or config.is_closed:
            raise ValueError("A usable SpeechTranslationConfig is required")
        if audio_config is None:
            raise ValueError("An audio input is required")
        if not config.speech_recognition_language:
            raise ValueError("speech_recognition_language is not set")
        if not config.target_languages:
            raise ValueError("At least one target language must be added")

        super().__init__(config.properties.copy())
        self._audio = audio_config
        self._owns_backend = backend is None
        self._backend = backend if backend is not None else GoogleCloudTranslationBackend.from_config(config)

    @property
    def speech_recognition_language(self) -> str:
        return self._properties.get_property(PropertyId.SPEECH_SERVICE_CONNECTION_RECO_LANGUAGE, "")

    @property
    def target_languages(self) -> List[str]:
        joined = self._properties.get_property(PropertyId.SPEECH_SERVICE_CONNECTION_TRANSLATION_TO_LANGUAGES, "")
        return [language for language in joined.split(",") if language]

    @property
    def voice_name(self) -> Optional[str]:
        return self._properties.get_property(PropertyId.SPEECH_SERVICE_CONNECTION_TRANSLATION_VOICE)

    def recognize_once_async(self,
                             cb: Optional[Callable[[TranslationRecognitionResult], None]] = None,
                             err: Optional[Callable[[str], None]] = None) -> Optional[asyncio.Task]:
        """
        Start one recognition. Exactly one of ``cb(result)`` or
        ``err(description)`` is called later on the running event loop.

        Canceled recognitions are delivered to ``cb`` as a result with reason
        CANCELED; ``err`` is reserved for failures to run the operation at all.
        """
        if self._closed:
            self._schedule_failure(err, "Recognizer is closed")
            return None
        if self._operation is not None and not self._operation.done():
            self._schedule_failure(err, "Another recognition operation is already in progress")
            return None

        self._operation = asyncio.get_running_loop().create_task(self._recognize_once(cb, err))
        return self._operation

    async def _recognize_once(self, cb, err) -> None:
        session_id = uuid.uuid4().hex
        self._emit("session_started", SessionEventArgs(session_id))
        try:
            result = await self._run_pipeline(session_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Recognition failed: {type(e).__name__}: {e}", exc_info=True)
            self._deliver(err, f"{type(e).__name__}: {e}")
        else:
            self._deliver(cb, result)
        self._emit("session_stopped", SessionEventArgs(session_id))

    async def _run_pipeline(self, session_id: str) -> TranslationRecognitionResult:
        language = self.speech_recognition_language
        audio = self._audio.read()

        try:
            hypotheses = await self._backend.recognize(audio, self._audio.sample_rate, language)
        except ServiceError as e:
            details = CancellationDetails(CancellationReason.ERROR, e.error_code, e.details)
            result = TranslationRecognitionResult.canceled(details)
            logger.warning(f"Recognition canceled: {details.error_code.name} - {details.error_details}")
            self._emit("canceled", TranslationRecognitionCanceledEventArgs(
                session_id=session_id,
                result=result,
                reason=details.reason,
                error_code=details.error_code,
                error_details=details.error_details,
            ))
            return result

        for offset, hypothesis in enumerate(h for h in hypotheses if not h.is_final):
            partial = TranslationRecognitionResult(reason=ResultReason.TRANSLATING_SPEECH, text=hypothesis.text)
            self._emit("recognizing", TranslationRecognitionEventArgs(session_id, partial, offset))

        final = next((h for h in hypotheses if h.is_final), None)
        if final is None or not final.text:
            result = TranslationRecognitionResult(reason=ResultReason.NO_MATCH)
            self._emit("recognized", TranslationRecognitionEventArgs(session_id, result))
            return result

        translations, failure = await self._translate_all(final.text, language)
        if failure is not None:
            result = TranslationRecognitionResult(
                reason=ResultReason.RECOGNIZED_SPEECH,
                text=final.text,
                error_details=failure,
            )
        else:
            result = TranslationRecognitionResult(
                reason=ResultReason.TRANSLATED_SPEECH,
                text=final.text,
                translations=translations,
            )
            if self.voice_name:
                await self._synthesize(session_id, translations)

        self._emit("recognized", TranslationRecognitionEventArgs(session_id, result))
        return result

    async def _translate_all(self, text: str, source_language: str):
        table = {}
        for target in self.target_languages:
            try:
                table[language_key(target)] = await self._backend.translate(text, source_language, target)
            except ServiceError as e:
                logger.warning(f"Translation to {target} failed: {e.details}")
                return None, f"Translation to '{target}' failed: {e.details}"
        return Translations(table), None

    async def _synthesize(self, session_id: str, translations: Translations) -> None:
        voice = self.voice_name
        text = translations.get(language_key(voice))
        if not text:
            logger.warning(f"No translation available for voice {voice}, skipping synthesis")
            return

        try:
            audio = await self._backend.synthesize(text, voice)
        except ServiceError as e:
            canceled = TranslationSynthesisResult(reason=ResultReason.CANCELED, error_details=e.details)
            self._emit("synthesizing", TranslationSynthesisEventArgs(session_id, canceled))
            return

        self._emit("synthesizing", TranslationSynthesisEventArgs(
            session_id, TranslationSynthesisResult(reason=ResultReason.SYNTHESIZING_AUDIO, audio=audio)
        ))
        self._emit("synthesizing", TranslationSynthesisEventArgs(
            session_id, TranslationSynthesisResult(reason=ResultReason.SYNTHESIZING_AUDIO_COMPLETED)
        ))

    async def _close_resources(self) -> None:
        if self._owns_backend:
            await self._backend.close()
