"""
Circuit breaker for the spreadsheet API using pybreaker library.
State lives in process memory: the service runs as a single process.
"""
import logging
from datetime import datetime, timedelta, timezone

import pybreaker

from app.core.config import settings
from app.utils.metrics import circuit_breaker_state


logger = logging.getLogger("circuit_breaker")


class CircuitBreakerListener(pybreaker.CircuitBreakerListener):
    """Listener for circuit breaker events (logging/metrics)."""

    def __init__(self, name: str) -> None:
        self.name = name

    def state_change(self, cb: pybreaker.CircuitBreaker, old_state, new_state) -> None:
        old_name = getattr(old_state, "name", old_state)
        new_name = getattr(new_state, "name", new_state)
        circuit_breaker_state.labels(name=self.name).set(
            1 if new_name == pybreaker.STATE_OPEN else 0
        )
        logger.warning(
            "circuit_breaker_state_change",
            extra={
                "breaker_name": self.name,
                "old_state": old_name,
                "new_state": new_name,
            },
        )

    def failure(self, cb: pybreaker.CircuitBreaker, exc: BaseException) -> None:
        logger.warning(
            "circuit_breaker_failure",
            extra={
                "breaker_name": self.name,
                "error": type(exc).__name__,
            },
        )


_breakers: dict[str, pybreaker.CircuitBreaker] = {}


def get_circuit_breaker(name: str) -> pybreaker.CircuitBreaker:
    """Get or create a circuit breaker by name."""
    if name not in _breakers:
        _breakers[name] = pybreaker.CircuitBreaker(
            fail_max=settings.cb_failure_threshold,
            reset_timeout=settings.cb_open_seconds,
            state_storage=pybreaker.CircuitMemoryStorage(pybreaker.STATE_CLOSED),
            listeners=[CircuitBreakerListener(name)],
        )
    return _breakers[name]


def _passthrough(value=None):
    return value


def _reraise(exc: BaseException):
    raise exc


def _admit_trial(breaker: pybreaker.CircuitBreaker) -> None:
    """Reject while the reset timeout runs; afterwards half-open for one trial."""
    opened_at = breaker._state_storage.opened_at
    if opened_at is not None:
        now = datetime.now(timezone.utc)
        if opened_at.tzinfo is None:
            now = now.replace(tzinfo=None)
        if now < opened_at + timedelta(seconds=breaker.reset_timeout):
            raise pybreaker.CircuitBreakerError("Timeout not elapsed yet, circuit breaker still open")
    breaker.half_open()


async def call_with_breaker(breaker: pybreaker.CircuitBreaker, func, *args, **kwargs):
    """
    Await func(*args, **kwargs) under the breaker.

    pybreaker only guards sync callables, so the outcome of the awaited call is
    reported through breaker.call(). While the breaker is open no request is
    made; once the reset timeout has passed the awaited call itself is the
    half-open trial, and a failing trial reopens the breaker.
    """
    if breaker.current_state == pybreaker.STATE_OPEN:
        _admit_trial(breaker)
    try:
        result = await func(*args, **kwargs)
    except Exception as exc:
        breaker.call(_reraise, exc)
        raise
    return breaker.call(_passthrough, result)
