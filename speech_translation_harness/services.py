"""
Speech service backends used by the translation recognizer.

``GoogleCloudTranslationBackend`` talks to Google Cloud Speech-to-Text,
Translation and Text-to-Speech. ``ScriptedTranslationBackend`` answers from
a script in-process so the harness can be exercised without credentials.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Protocol

import pybreaker
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential
from websockets.frames import CloseCode

from .config import settings
from .resilience import circuit_breaker
from .results import CancellationErrorCode

logger = logging.getLogger(__name__)

# 16kHz, 16-bit mono: 0.1 seconde audio = 3200 bytes
STREAMING_CHUNK_BYTES = 3200


class ServiceError(Exception):
    """A service call failed; ``details`` embeds the transport status code."""

    def __init__(self, error_code: CancellationErrorCode, details: str):
        self.error_code = error_code
        self.details = details
        super().__init__(details)


def connection_failure_details(reason: str) -> str:
    return (
        f"Unable to contact server. StatusCode: {int(CloseCode.ABNORMAL_CLOSURE)}, "
        f"Reason: {reason}"
    )


@dataclass
class RecognitionHypothesis:
    """One recognition hypothesis; ``is_final`` marks the end of the utterance."""
    text: str
    is_final: bool
    confidence: float = 1.0


class TranslationBackend(Protocol):
    async def recognize(self, audio: bytes, sample_rate: int, language: str) -> List[RecognitionHypothesis]:
        ...

    async def translate(self, text: str, source_language: str, target_language: str) -> str:
        ...

    async def synthesize(self, text: str, voice_name: str) -> bytes:
        ...

    async def close(self) -> None:
        ...


def language_key(language: str) -> str:
    """Translation tables are keyed by the language part: "de-DE" -> "de"."""
    return language.split("-")[0].lower()


def _http_status(exc: BaseException) -> Optional[int]:
    code = getattr(exc, "code", None)
    return code if isinstance(code, int) else None


def _is_transient(exc: BaseException) -> bool:
    return _http_status(exc) in (503, 504)


_ERROR_CODES_BY_STATUS = {
    400: CancellationErrorCode.BAD_REQUEST,
    401: CancellationErrorCode.AUTHENTICATION_FAILURE,
    403: CancellationErrorCode.FORBIDDEN,
    429: CancellationErrorCode.TOO_MANY_REQUESTS,
    503: CancellationErrorCode.SERVICE_UNAVAILABLE,
    504: CancellationErrorCode.SERVICE_TIMEOUT,
}


def to_service_error(exc: BaseException, stage: str) -> ServiceError:
    """
    Map a Google API / breaker failure onto a ServiceError.

    A recognition session the service refuses to open (invalid language,
    unreachable endpoint) is reported as a connection failure carrying the
    WebSocket abnormal-closure status, like every other session rejection.
    """
    if isinstance(exc, pybreaker.CircuitBreakerError):
        return ServiceError(
            CancellationErrorCode.SERVICE_UNAVAILABLE,
            f"{stage} blocked by open circuit breaker: {exc}",
        )

    status = _http_status(exc)
    if stage == "recognition" and status in (None, 400, 404):
        return ServiceError(CancellationErrorCode.CONNECTION_FAILURE, connection_failure_details(str(exc)))

    error_code = _ERROR_CODES_BY_STATUS.get(status, CancellationErrorCode.SERVICE_ERROR)
    return ServiceError(error_code, f"{stage} failed. StatusCode: {status}, Reason: {exc}")


service_retry = retry(
    retry=retry_if_exception(_is_transient),
    stop=stop_after_attempt(settings.SERVICE_RETRY_ATTEMPTS),
    wait=wait_exponential(multiplier=settings.SERVICE_RETRY_WAIT_MULTIPLIER_S, max=2),
    reraise=True,
)


class GoogleCloudTranslationBackend:
    """
    Production backend: Google Cloud Speech-to-Text (streaming, interim
    results), Translation v2 and Text-to-Speech.

    The Google clients are synchronous; every call runs in the default
    executor and is wrapped by the shared circuit breaker.
    """

    def __init__(self,
                 subscription_key: Optional[str] = None,
                 region: Optional[str] = None,
                 model: Optional[str] = None,
                 timeout_s: Optional[float] = None,
                 breaker: Optional[pybreaker.CircuitBreaker] = None):
        self._subscription_key = subscription_key
        self._region = region
        self._model = model or settings.STT_MODEL
        self._timeout_s = timeout_s if timeout_s is not None else settings.SERVICE_TIMEOUT_S
        self._breaker = breaker or circuit_breaker

        self._speech_client = None
        self._translate_client = None
        self._tts_client = None
        self._closed = False

    @classmethod
    def from_config(cls, config) -> "GoogleCloudTranslationBackend":
        return cls(subscription_key=config.subscription_key, region=config.region)

    def _client_options(self, service: str) -> Dict[str, str]:
        options: Dict[str, str] = {}
        if self._subscription_key:
            options["api_key"] = self._subscription_key
        if self._region and self._region != "global":
            options["api_endpoint"] = f"{self._region}-{service}.googleapis.com"
        return options

    def _get_speech_client(self):
        if self._speech_client is None:
            from google.cloud import speech
            self._speech_client = speech.SpeechClient(client_options=self._client_options("speech"))
            logger.info("Google Cloud Speech client initialized")
        return self._speech_client

    def _get_translate_client(self):
        if self._translate_client is None:
            from google.cloud import translate_v2 as translate
            options = {"api_key": self._subscription_key} if self._subscription_key else None
            self._translate_client = translate.Client(client_options=options)
            logger.info("Google Cloud Translation client initialized")
        return self._translate_client

    def _get_tts_client(self):
        if self._tts_client is None:
            from google.cloud import texttospeech
            self._tts_client = texttospeech.TextToSpeechClient(
                client_options=self._client_options("texttospeech")
            )
            logger.info("Google Cloud Text-to-Speech client initialized")
        return self._tts_client

    async def _run(self, func, stage: str):
        from google.api_core import exceptions as gcp_exceptions

        @service_retry
        async def _call():
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, lambda: self._breaker.call(func))

        try:
            return await _call()
        except (gcp_exceptions.GoogleAPIError, pybreaker.CircuitBreakerError) as e:
            logger.error(f"{stage}: Google API error - {e}")
            raise to_service_error(e, stage) from e

    async def recognize(self, audio: bytes, sample_rate: int, language: str) -> List[RecognitionHypothesis]:
        from google.cloud import speech

        logger.info(f"STT: Real API call - {len(audio)} bytes, {language}")

        def _streaming_recognize() -> List[RecognitionHypothesis]:
            client = self._get_speech_client()
            config = speech.RecognitionConfig(
                encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
                sample_rate_hertz=sample_rate,
                language_code=language,
                enable_automatic_punctuation=True,
                model=self._model,
            )
            streaming_config = speech.StreamingRecognitionConfig(
                config=config,
                interim_results=True,
                single_utterance=True,
            )
            requests = (
                speech.StreamingRecognizeRequest(audio_content=chunk)
                for chunk in _chunks(audio, STREAMING_CHUNK_BYTES)
            )
            hypotheses = []
            for response in client.streaming_recognize(
                config=streaming_config, requests=requests, timeout=self._timeout_s
            ):
                for result in response.results:
                    if not result.alternatives:
                        continue
                    alternative = result.alternatives[0]
                    hypotheses.append(RecognitionHypothesis(
                        text=alternative.transcript.strip(),
                        is_final=result.is_final,
                        confidence=getattr(alternative, "confidence", 1.0),
                    ))
            return hypotheses

        hypotheses = await self._run(_streaming_recognize, "recognition")
        logger.info(f"STT: {len(hypotheses)} hypotheses received")
        return hypotheses

    async def translate(self, text: str, source_language: str, target_language: str) -> str:
        source, target = language_key(source_language), language_key(target_language)
        logger.info(f"Translation: Real API call - '{text}' ({source} → {target})")

        def _sync_translate() -> dict:
            return self._get_translate_client().translate(
                text, source_language=source, target_language=target
            )

        result = await self._run(_sync_translate, "translation")
        return result["translatedText"].strip()

    async def synthesize(self, text: str, voice_name: str) -> bytes:
        from google.cloud import texttospeech

        language_code = "-".join(voice_name.split("-")[:2])
        logger.info(f"TTS: Real API call - '{text}' ({voice_name})")

        def _sync_synthesize() -> bytes:
            response = self._get_tts_client().synthesize_speech(
                input=texttospeech.SynthesisInput(text=text),
                voice=texttospeech.VoiceSelectionParams(language_code=language_code, name=voice_name),
                audio_config=texttospeech.AudioConfig(
                    audio_encoding=texttospeech.AudioEncoding.LINEAR16
                ),
                timeout=self._timeout_s,
            )
            return response.audio_content

        return await self._run(_sync_synthesize, "synthesis")

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for client in (self._speech_client, self._tts_client):
            transport = getattr(client, "transport", None)
            if transport is not None:
                transport.close()
        self._speech_client = self._translate_client = self._tts_client = None
        logger.info("Google Cloud clients closed")


def _chunks(data: bytes, size: int) -> Iterable[bytes]:
    for offset in range(0, len(data), size):
        yield data[offset:offset + size]


DEFAULT_PHRASEBOOK: Dict[str, Dict[str, str]] = {
    "de": {"What's the weather like?": "Wie ist das Wetter?"},
    "en": {"What's the weather like?": "What's the weather like?"},
    "nl": {"What's the weather like?": "Hoe is het weer?"},
    "fr": {"What's the weather like?": "Quel temps fait-il?"},
}

DEFAULT_RECOGNITION_LANGUAGES = frozenset({"en-US", "en-GB", "de-DE", "nl-NL", "fr-FR", "es-ES"})
DEFAULT_TRANSLATION_LANGUAGES = frozenset({"en", "de", "nl", "fr", "es"})


class ScriptedTranslationBackend:
    """
    Simulates the speech services without network access.

    Recognition returns the scripted transcript (preceded by word-by-word
    interim hypotheses), translation looks phrases up in a phrasebook and
    synthesis returns a fixed audio marker. Languages outside the supported
    sets fail the way the real service does.
    """

    def __init__(self,
                 transcript: str = "What's the weather like?",
                 phrasebook: Optional[Dict[str, Dict[str, str]]] = None,
                 recognition_languages: Iterable[str] = DEFAULT_RECOGNITION_LANGUAGES,
                 translation_languages: Iterable[str] = DEFAULT_TRANSLATION_LANGUAGES,
                 latency_s: float = 0.01,
                 synthesis_audio: bytes = b"mock_translated_audio_output",
                 fail_synthesis: bool = False):
        self.transcript = transcript
        self.phrasebook = phrasebook if phrasebook is not None else DEFAULT_PHRASEBOOK
        self.recognition_languages = frozenset(recognition_languages)
        self.translation_languages = frozenset(translation_languages)
        self.latency_s = latency_s
        self.synthesis_audio = synthesis_audio
        self.fail_synthesis = fail_synthesis

        self.calls: List[tuple] = []
        self.closed = False

    async def recognize(self, audio: bytes, sample_rate: int, language: str) -> List[RecognitionHypothesis]:
        self.calls.append(("recognize", language))
        logging.info(f"STT: Audio ontvangen ({len(audio)} bytes, {language}), start verwerking...")
        await asyncio.sleep(self.latency_s)

        if language not in self.recognition_languages:
            logging.error(f"STT: Sessie geweigerd voor taal '{language}'")
            raise ServiceError(
                CancellationErrorCode.CONNECTION_FAILURE,
                connection_failure_details(f"Invalid recognition language '{language}'"),
            )

        words = self.transcript.split()
        hypotheses = [
            RecognitionHypothesis(text=" ".join(words[:count]), is_final=False)
            for count in range(1, len(words))
        ]
        hypotheses.append(RecognitionHypothesis(text=self.transcript, is_final=True))
        return hypotheses

    async def translate(self, text: str, source_language: str, target_language: str) -> str:
        target = language_key(target_language)
        self.calls.append(("translate", target))
        await asyncio.sleep(self.latency_s)

        if target not in self.translation_languages:
            logging.error(f"Translate: Taal '{target_language}' wordt niet ondersteund")
            raise ServiceError(
                CancellationErrorCode.BAD_REQUEST,
                f"translation failed. StatusCode: 400, Reason: Invalid Value for target language '{target_language}'",
            )
        if target == language_key(source_language):
            return text
        return self.phrasebook.get(target, {}).get(text, f"[{target}] {text}")

    async def synthesize(self, text: str, voice_name: str) -> bytes:
        self.calls.append(("synthesize", voice_name))
        await asyncio.sleep(self.latency_s)

        if self.fail_synthesis:
            raise ServiceError(
                CancellationErrorCode.SERVICE_ERROR,
                f"synthesis failed. StatusCode: 500, Reason: voice '{voice_name}' unavailable",
            )
        return self.synthesis_audio

    async def close(self) -> None:
        self.closed = True
