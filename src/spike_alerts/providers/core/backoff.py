"""Exponential reconnect backoff."""
from dataclasses import dataclass

RECONNECT_BASE_DELAY = 1.0
RECONNECT_MAX_DELAY = 15.0


@dataclass
class ReconnectBackoff:
    """Tracks consecutive failures; delay is ``min(max_delay, base_delay * 2**attempt)``."""

    base_delay: float = RECONNECT_BASE_DELAY
    max_delay: float = RECONNECT_MAX_DELAY
    attempt: int = 0

    @property
    def delay(self) -> float:
        return min(self.max_delay, self.base_delay * 2**self.attempt)

    def schedule(self) -> float:
        """Return the delay for the next reconnect and count the failure."""
        delay = self.delay
        self.attempt += 1
        return delay

    def reset(self) -> None:
        """Called on a successful open."""
        self.attempt = 0
