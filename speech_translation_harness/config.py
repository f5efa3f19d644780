import os
from pydantic_settings import BaseSettings, SettingsConfigDict


class HarnessSettings(BaseSettings):
    """
    Beheert de harness-instellingen, laadbaar vanuit environment variables.
    """

    # Model-configuratie voor pydantic
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Credentials for the speech translation service
    SPEECH_SUBSCRIPTION_KEY: str = ""
    SPEECH_REGION: str = ""

    # Test data
    WAVE_FILE: str = os.path.join("tests", "fixtures", "whatstheweatherlike.wav")
    WAVE_FILE_LANGUAGE: str = "en-US"
    WAVE_FILE_TEXT: str = "What's the weather like?"
    DEFAULT_TARGET_LANGUAGE: str = "de-DE"

    # Wacht-instellingen
    WAIT_POLL_INTERVAL_S: float = 0.1
    WAIT_TIMEOUT_S: float = 30.0
    OPERATION_TIMEOUT_S: float = 30.0
    CLOSE_TIMEOUT_S: float = 5.0

    # Retry-instellingen (service calls only, never the primary operation)
    SERVICE_RETRY_ATTEMPTS: int = 2
    SERVICE_RETRY_WAIT_MULTIPLIER_S: float = 0.5
    SERVICE_TIMEOUT_S: float = 10.0

    # Speech-to-Text configuratie
    STT_SAMPLE_RATE: int = 16000
    STT_MODEL: str = "latest_short"

    # Circuit Breaker-instellingen
    CIRCUIT_BREAKER_FAIL_MAX: int = 5
    CIRCUIT_BREAKER_RESET_TIMEOUT_S: int = 30

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def has_credentials(self) -> bool:
        """True when a subscription key and region are configured."""
        return bool(self.SPEECH_SUBSCRIPTION_KEY and self.SPEECH_REGION)


# Maak een globale instantie die overal in de harness kan worden geïmporteerd
settings = HarnessSettings()
