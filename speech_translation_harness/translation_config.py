import logging
from typing import List, Optional

from .results import PropertyCollection, PropertyId

logger = logging.getLogger(__name__)


class SpeechTranslationConfig:
    """
    Recognition language, ordered target languages and credentials for a
    translation recognizer.

    Build it with ``from_subscription``; the object owns no network resources
    but still has an explicit ``close`` so the harness can track it like every
    other object it creates.
    """

    def __init__(self, subscription_key: str, region: str):
        if not subscription_key:
            raise ValueError("subscription_key must be a non-empty string")
        if not region:
            raise ValueError("region must be a non-empty string")

        self._properties = PropertyCollection()
        self._properties.set_property(PropertyId.SPEECH_SERVICE_CONNECTION_KEY, subscription_key)
        self._properties.set_property(PropertyId.SPEECH_SERVICE_CONNECTION_REGION, region)
        self._target_languages: List[str] = []
        self._closed = False

    @classmethod
    def from_subscription(cls, subscription_key: str, region: str) -> "SpeechTranslationConfig":
        return cls(subscription_key, region)

    @property
    def subscription_key(self) -> str:
        return self._properties.get_property(PropertyId.SPEECH_SERVICE_CONNECTION_KEY, "")

    @property
    def region(self) -> str:
        return self._properties.get_property(PropertyId.SPEECH_SERVICE_CONNECTION_REGION, "")

    @property
    def properties(self) -> PropertyCollection:
        return self._properties

    @property
    def speech_recognition_language(self) -> Optional[str]:
        return self._properties.get_property(PropertyId.SPEECH_SERVICE_CONNECTION_RECO_LANGUAGE)

    @speech_recognition_language.setter
    def speech_recognition_language(self, language: str) -> None:
        self._properties.set_property(PropertyId.SPEECH_SERVICE_CONNECTION_RECO_LANGUAGE, language)

    @property
    def target_languages(self) -> List[str]:
        return list(self._target_languages)

    def add_target_language(self, language: str) -> None:
        """Append a target language; adding one that is already present is a no-op."""
        if not language:
            raise ValueError("target language must be a non-empty string")
        if language in self._target_languages:
            logger.debug(f"Target language {language} already configured")
            return
        self._target_languages.append(language)
        self._sync_target_property()

    def remove_target_language(self, language: str) -> None:
        if language in self._target_languages:
            self._target_languages.remove(language)
            self._sync_target_property()

    def _sync_target_property(self) -> None:
        self._properties.set_property(
            PropertyId.SPEECH_SERVICE_CONNECTION_TRANSLATION_TO_LANGUAGES,
            ",".join(self._target_languages),
        )

    @property
    def voice_name(self) -> Optional[str]:
        return self._properties.get_property(PropertyId.SPEECH_SERVICE_CONNECTION_TRANSLATION_VOICE)

    @voice_name.setter
    def voice_name(self, voice: str) -> None:
        self._properties.set_property(PropertyId.SPEECH_SERVICE_CONNECTION_TRANSLATION_VOICE, voice)

    def get_property(self, key, default: Optional[str] = None) -> Optional[str]:
        return self._properties.get_property(key, default)

    def set_property(self, key, value: str) -> None:
        self._properties.set_property(key, value)

    @property
    def is_closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        logger.debug("SpeechTranslationConfig closed")
