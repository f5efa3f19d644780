import logging
import pybreaker
from .config import settings

# Configureer een logger specifiek voor de circuit breaker
breaker_logger = logging.getLogger("pybreaker")


def is_client_error(exc: BaseException) -> bool:
    """4xx responses say nothing about service health and must not trip the breaker."""
    code = getattr(exc, "code", None)
    return isinstance(code, int) and 400 <= code < 500


class CircuitBreakerListener(pybreaker.CircuitBreakerListener):
    """Logt de statusveranderingen van de Circuit Breaker."""

    def state_change(self, cb, old_state, new_state):
        old_name = getattr(old_state, "name", old_state)
        new_name = getattr(new_state, "name", new_state)
        breaker_logger.warning(f"CircuitBreaker state change: from {old_name} to {new_name}")

    def failure(self, cb, exc):
        breaker_logger.error(f"Circuit breaker recorded failure {cb.fail_counter}/{cb.fail_max}: {exc}")


def build_circuit_breaker(fail_max: int = None, reset_timeout: int = None) -> pybreaker.CircuitBreaker:
    return pybreaker.CircuitBreaker(
        fail_max=fail_max if fail_max is not None else settings.CIRCUIT_BREAKER_FAIL_MAX,
        reset_timeout=reset_timeout if reset_timeout is not None else settings.CIRCUIT_BREAKER_RESET_TIMEOUT_S,
        exclude=[is_client_error],
        listeners=[CircuitBreakerListener()],
    )


# Maak een globale Circuit Breaker-instantie voor de speech service
circuit_breaker = build_circuit_breaker()
