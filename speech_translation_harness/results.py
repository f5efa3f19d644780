"""
Result, cancellation and event-argument types delivered by the translation
recognizer to its callers.
"""
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, Optional, Union


class ResultReason(Enum):
    """Outcome of a recognition, translation or synthesis step."""
    NO_MATCH = "no_match"
    CANCELED = "canceled"
    RECOGNIZING_SPEECH = "recognizing_speech"
    RECOGNIZED_SPEECH = "recognized_speech"
    TRANSLATING_SPEECH = "translating_speech"
    TRANSLATED_SPEECH = "translated_speech"
    SYNTHESIZING_AUDIO = "synthesizing_audio"
    SYNTHESIZING_AUDIO_COMPLETED = "synthesizing_audio_completed"


class CancellationReason(Enum):
    """Why a recognition was canceled."""
    ERROR = "error"
    END_OF_STREAM = "end_of_stream"


class CancellationErrorCode(Enum):
    """Error category attached to a canceled result."""
    NO_ERROR = "no_error"
    AUTHENTICATION_FAILURE = "authentication_failure"
    BAD_REQUEST = "bad_request"
    TOO_MANY_REQUESTS = "too_many_requests"
    FORBIDDEN = "forbidden"
    CONNECTION_FAILURE = "connection_failure"
    SERVICE_TIMEOUT = "service_timeout"
    SERVICE_ERROR = "service_error"
    SERVICE_UNAVAILABLE = "service_unavailable"
    RUNTIME_ERROR = "runtime_error"


class PropertyId(Enum):
    """Well-known property names stored in a PropertyCollection."""
    SPEECH_SERVICE_CONNECTION_KEY = "SpeechServiceConnection_Key"
    SPEECH_SERVICE_CONNECTION_REGION = "SpeechServiceConnection_Region"
    SPEECH_SERVICE_CONNECTION_RECO_LANGUAGE = "SpeechServiceConnection_RecoLanguage"
    SPEECH_SERVICE_CONNECTION_TRANSLATION_TO_LANGUAGES = "SpeechServiceConnection_TranslationToLanguages"
    SPEECH_SERVICE_CONNECTION_TRANSLATION_VOICE = "SpeechServiceConnection_TranslationVoice"
    SPEECH_SERVICE_RESPONSE_JSON_ERROR_DETAILS = "SpeechServiceResponse_JsonErrorDetails"
    CANCELLATION_DETAILS_REASON = "CancellationDetails_Reason"
    CANCELLATION_DETAILS_ERROR_CODE = "CancellationDetails_ErrorCode"


PropertyKey = Union[PropertyId, str]


class PropertyCollection:
    """String property bag keyed by PropertyId or by free-form name."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._values: Dict[str, str] = dict(initial or {})

    @staticmethod
    def _key(key: PropertyKey) -> str:
        return key.value if isinstance(key, PropertyId) else str(key)

    def get_property(self, key: PropertyKey, default: Optional[str] = None) -> Optional[str]:
        return self._values.get(self._key(key), default)

    def set_property(self, key: PropertyKey, value: str) -> None:
        self._values[self._key(key)] = value

    def remove_property(self, key: PropertyKey) -> None:
        self._values.pop(self._key(key), None)

    def __contains__(self, key: PropertyKey) -> bool:
        return self._key(key) in self._values

    def copy(self) -> "PropertyCollection":
        return PropertyCollection(self._values)


class Translations(Mapping):
    """
    Read-only translation table keyed by language code ("de", "en", ...).

    ``get`` returns an empty string for languages that were not translated.
    """

    def __init__(self, values: Optional[Dict[str, str]] = None):
        self._values: Dict[str, str] = dict(values or {})

    def __getitem__(self, language: str) -> str:
        return self._values[language]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def get(self, language: str, default: str = "") -> str:
        return self._values.get(language, default)

    @property
    def languages(self) -> list:
        return list(self._values)

    def __repr__(self) -> str:
        return f"Translations({self._values!r})"


@dataclass
class CancellationDetails:
    """Reason, error code and diagnostic text of a canceled recognition."""
    reason: CancellationReason
    error_code: CancellationErrorCode = CancellationErrorCode.NO_ERROR
    error_details: Optional[str] = None

    @classmethod
    def from_result(cls, result: "TranslationRecognitionResult") -> "CancellationDetails":
        if result.reason != ResultReason.CANCELED or result.cancellation_details is None:
            raise ValueError(f"Result {result.result_id} was not canceled (reason: {result.reason.name})")
        return result.cancellation_details


@dataclass
class TranslationRecognitionResult:
    """Final or intermediate result of one translation recognition."""
    reason: ResultReason
    text: str = ""
    translations: Optional[Translations] = None
    error_details: Optional[str] = None
    cancellation_details: Optional[CancellationDetails] = None
    result_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    properties: PropertyCollection = field(default_factory=PropertyCollection)

    @classmethod
    def canceled(cls, details: CancellationDetails, text: str = "") -> "TranslationRecognitionResult":
        result = cls(
            reason=ResultReason.CANCELED,
            text=text,
            error_details=details.error_details,
            cancellation_details=details,
        )
        result.properties.set_property(PropertyId.CANCELLATION_DETAILS_REASON, details.reason.name)
        result.properties.set_property(PropertyId.CANCELLATION_DETAILS_ERROR_CODE, details.error_code.name)
        if details.error_details:
            result.properties.set_property(
                PropertyId.SPEECH_SERVICE_RESPONSE_JSON_ERROR_DETAILS, details.error_details
            )
        return result


@dataclass
class TranslationSynthesisResult:
    """Chunk of synthesized audio for the translated text."""
    reason: ResultReason
    audio: bytes = b""
    error_details: Optional[str] = None


@dataclass
class SessionEventArgs:
    session_id: str


@dataclass
class TranslationRecognitionEventArgs:
    session_id: str
    result: TranslationRecognitionResult
    offset: int = 0


@dataclass
class TranslationRecognitionCanceledEventArgs:
    """Payload of the ``canceled`` slot; mirrors the fields of CancellationDetails."""
    session_id: str
    result: TranslationRecognitionResult
    reason: CancellationReason
    error_code: CancellationErrorCode
    error_details: Optional[str] = None


@dataclass
class TranslationSynthesisEventArgs:
    session_id: str
    result: TranslationSynthesisResult
