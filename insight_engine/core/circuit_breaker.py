"""
Per-service circuit breaker.

Stops sending requests to a provider that keeps failing, for a cooldown
period, instead of repeatedly failing against it.

Transitions:
    CLOSED --[failure_threshold consecutive failures]--> OPEN
    OPEN --[reset_timeout elapsed]--> HALF_OPEN (one probe admitted)
    HALF_OPEN --[probe succeeds]--> CLOSED
    HALF_OPEN --[probe fails]--> OPEN (fresh reset_timeout)
"""

import logging
import threading
import time
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Callable, Dict, Any, Optional

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    failure_threshold: int = 5
    reset_timeout: float = 60.0


@dataclass
class CircuitStatus:
    """Mutable breaker state for one service."""

    consecutive_failures: int = 0
    last_failure_time: Optional[float] = None
    state: CircuitState = CircuitState.CLOSED
    next_attempt_time: Optional[float] = None
    probe_in_flight: bool = False


class CircuitBreaker:
    """
    Failure counter and three-state machine per service.

    A single instance is shared across all concurrent calls; its whole
    purpose is to coordinate them.
    """

    def __init__(
        self,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self._states: Dict[str, CircuitStatus] = {}
        self._lock = threading.Lock()

    def _get_status(self, service: str) -> CircuitStatus:
        if service not in self._states:
            self._states[service] = CircuitStatus()
        return self._states[service]

    def state(self, service: str) -> CircuitState:
        with self._lock:
            status = self._states.get(service)
            return status.state if status else CircuitState.CLOSED

    def can_make_request(self, service: str) -> bool:
        """
        Check whether a real call may be attempted now.

        While OPEN and before next_attempt_time this is False. Once the
        reset timeout has elapsed the circuit moves to HALF_OPEN and exactly
        one caller gets True; others get False until that probe resolves.
        """
        with self._lock:
            status = self._get_status(service)

            if status.state == CircuitState.CLOSED:
                return True

            if status.state == CircuitState.OPEN:
                if self._clock() < status.next_attempt_time:
                    return False
                status.state = CircuitState.HALF_OPEN
                status.probe_in_flight = True
                logger.info(f"Circuit for '{service}' half-open, admitting probe")
                return True

            # HALF_OPEN
            if status.probe_in_flight:
                return False
            status.probe_in_flight = True
            return True

    def record_success(self, service: str) -> None:
        """Reset the failure counter and close the circuit."""
        with self._lock:
            status = self._get_status(service)
            if status.state != CircuitState.CLOSED:
                logger.info(f"Circuit for '{service}' closed")
            status.consecutive_failures = 0
            status.state = CircuitState.CLOSED
            status.next_attempt_time = None
            status.probe_in_flight = False

    def record_failure(self, service: str) -> None:
        """Count a failure; open the circuit at the threshold or on a failed probe."""
        with self._lock:
            status = self._get_status(service)
            now = self._clock()
            status.consecutive_failures += 1
            status.last_failure_time = now

            if (
                status.state == CircuitState.HALF_OPEN
                or status.consecutive_failures >= self.config.failure_threshold
            ):
                if status.state != CircuitState.OPEN:
                    logger.warning(
                        f"Circuit for '{service}' opened after "
                        f"{status.consecutive_failures} consecutive failures"
                    )
                status.state = CircuitState.OPEN
                status.next_attempt_time = now + self.config.reset_timeout
                status.probe_in_flight = False

    def release_probe(self, service: str) -> None:
        """
        Free the half-open probe slot after an outcome that says nothing
        about the provider's health (client error, local rate limit,
        cancellation). State and counters are left unchanged.
        """
        with self._lock:
            status = self._get_status(service)
            status.probe_in_flight = False

    def get_status(self, service: str) -> Dict[str, Any]:
        with self._lock:
            status = self._states.get(service) or CircuitStatus()
            data = asdict(status)
        data["state"] = status.state.value
        return data

    def get_all_statuses(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            services = list(self._states)
        return {service: self.get_status(service) for service in services}

    def reset(self, service: Optional[str] = None) -> None:
        """Return one service, or all of them, to a fresh closed state."""
        with self._lock:
            if service is None:
                self._states.clear()
            else:
                self._states.pop(service, None)
