"""
Circuit breaker guarding the remote classification endpoint.

After `fail_max` consecutive failed calls the breaker opens and the remote
provider answers with error results without touching the network. Once
`reset_timeout` seconds have passed a single trial call is let through
(half-open); its outcome closes or re-opens the breaker.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field

from highlightq.observability.telemetry import counter, log_event


class AdapterError(RuntimeError):
    """Transport-level failure talking to a remote service."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class CircuitBreaker:
    stage: str
    fail_max: int = 5
    reset_timeout: float = 60.0
    clock: Callable[[], float] = time.monotonic
    _failures: int = field(default=0, init=False)
    _state: str = field(default="closed", init=False)
    _opened_at: float = field(default=0.0, init=False)

    @property
    def state(self) -> str:
        return self._state

    def allow_request(self) -> bool:
        if self._state == "open":
            if self.clock() - self._opened_at >= self.reset_timeout:
                self._state = "half_open"
                log_event("circuit.half_open", stage=self.stage)
                return True
            counter(f"circuit.{self.stage}.rejected")
            return False
        return True

    def record_success(self) -> None:
        self._failures = 0
        self._state = "closed"

    def record_failure(self) -> None:
        """
        Count a failed call; open the breaker at the threshold.

        A failure while half-open re-opens immediately.
        """
        self._failures += 1
        if self._state == "half_open" or self._failures >= self.fail_max:
            self._state = "open"
            self._opened_at = self.clock()
            counter(f"circuit.{self.stage}.opened")
            log_event("circuit.opened", stage=self.stage, failures=self._failures)
