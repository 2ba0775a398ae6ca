"""
Per-skill circuit breaker.

After ``failure_threshold`` consecutive failures a skill's circuit opens and
the engine skips it. Once the cool-down has elapsed the next check moves the
circuit to half-open and lets one attempt through; a success closes it, a
failure re-opens it.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from finassist.config.settings import settings

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"


@dataclass
class CircuitBreakerState:
    failures: int = 0
    last_failure: float = 0.0
    state: CircuitState = CircuitState.CLOSED

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "failures": self.failures,
            "last_failure": self.last_failure,
        }


class CircuitBreaker:
    """Failure counter and open/half-open/closed state per skill id.

    Parameters
    ----------
    failure_threshold:
        Failures that open the circuit. Defaults to settings (5).
    cooldown_ms:
        Time an open circuit stays open. Defaults to settings (60 s).
    clock:
        Seconds-since-epoch source, injectable for tests.
    """

    def __init__(
        self,
        failure_threshold: Optional[int] = None,
        cooldown_ms: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.failure_threshold = (
            failure_threshold if failure_threshold is not None
            else settings.CIRCUIT_FAILURE_THRESHOLD
        )
        self.cooldown_ms = cooldown_ms if cooldown_ms is not None else settings.CIRCUIT_COOLDOWN_MS
        self._clock = clock
        self._states: dict[str, CircuitBreakerState] = {}
        self._lock = threading.Lock()

    def is_open(self, skill_id: str) -> bool:
        """True while the circuit for *skill_id* blocks execution.

        Checking an open circuit whose cool-down has elapsed moves it to
        half-open and returns False.
        """
        with self._lock:
            st = self._states.get(skill_id)
            if st is None:
                return False
            if st.state is CircuitState.OPEN:
                elapsed_ms = (self._clock() - st.last_failure) * 1000
                if elapsed_ms > self.cooldown_ms:
                    st.state = CircuitState.HALF_OPEN
                    logger.info("Circuit for skill '%s' half-open", skill_id)
                    return False
                return True
            return False

    def record_failure(self, skill_id: str) -> CircuitState:
        with self._lock:
            st = self._states.setdefault(skill_id, CircuitBreakerState())
            st.failures += 1
            st.last_failure = self._clock()
            if st.state is CircuitState.HALF_OPEN or st.failures >= self.failure_threshold:
                if st.state is not CircuitState.OPEN:
                    logger.warning(
                        "Circuit opened for skill '%s' after %d failures",
                        skill_id, st.failures,
                    )
                st.state = CircuitState.OPEN
            return st.state

    def record_success(self, skill_id: str) -> None:
        with self._lock:
            st = self._states.get(skill_id)
            if st is not None:
                st.failures = 0
                st.state = CircuitState.CLOSED

    def reset(self, skill_id: Optional[str] = None) -> None:
        """Forget state for one skill, or for all skills when *skill_id* is None."""
        with self._lock:
            if skill_id is None:
                self._states.clear()
            else:
                self._states.pop(skill_id, None)

    def state(self, skill_id: str) -> CircuitBreakerState:
        with self._lock:
            st = self._states.get(skill_id)
            if st is None:
                return CircuitBreakerState()
            return CircuitBreakerState(st.failures, st.last_failure, st.state)

    def status(self) -> dict[str, dict[str, Any]]:
        with self._lock:
            return {sid: st.to_dict() for sid, st in self._states.items()}
