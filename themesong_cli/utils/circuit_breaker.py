"""
Circuit breaker guarding calls to a single theme song provider.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Optional

from themesong_cli.exceptions import ProviderError

log = logging.getLogger(__name__)


class CircuitState(Enum):
    """States of the circuit breaker."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Blocking requests
    HALF_OPEN = "half_open"  # Testing if the provider recovered


class CircuitBreakerError(ProviderError):
    """Raised when a call is attempted while the circuit is open."""


class CircuitBreaker:
    """
    Stops hammering a provider that keeps failing.

    After ``failure_threshold`` consecutive failures the circuit opens and
    calls fail fast until ``recovery_timeout`` seconds have passed; then one
    trial call is let through (HALF_OPEN) and a success closes the circuit.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 120,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: Optional[float] = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        return self._state

    def _maybe_half_open(self) -> None:
        if self._state != CircuitState.OPEN or self._opened_at is None:
            return
        elapsed = time.monotonic() - self._opened_at
        if elapsed >= self.recovery_timeout:
            log.info(
                f"[yellow]Provider '{self.name}' circuit half-open, "
                f"retrying after {elapsed:.0f}s[/yellow]"
            )
            self._state = CircuitState.HALF_OPEN

    async def _on_success(self) -> None:
        async with self._lock:
            self._failure_count = 0
            if self._state == CircuitState.HALF_OPEN:
                log.info(f"[green]✓ Provider '{self.name}' recovered.[/green]")
            self._state = CircuitState.CLOSED

    async def _on_failure(self) -> None:
        async with self._lock:
            self._failure_count += 1
            if self._state == CircuitState.HALF_OPEN or (
                self._state == CircuitState.CLOSED
                and self._failure_count >= self.failure_threshold
            ):
                log.warning(
                    f"[yellow]Provider '{self.name}' circuit opened after "
                    f"{self._failure_count} consecutive failures; pausing for "
                    f"{self.recovery_timeout:.0f}s.[/yellow]"
                )
                self._state = CircuitState.OPEN
                self._opened_at = time.monotonic()

    async def __aenter__(self):
        async with self._lock:
            self._maybe_half_open()
            if self._state == CircuitState.OPEN:
                raise CircuitBreakerError(
                    f"Provider '{self.name}' is temporarily disabled after "
                    "repeated failures."
                )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            await self._on_failure()
        else:
            await self._on_success()
