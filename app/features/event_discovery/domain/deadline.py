import time
from collections.abc import Callable


class Deadline:
    """Wall-clock budget of a run; stages check it instead of raising on overrun."""

    def __init__(self, budget_seconds: float, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self.budget_seconds = budget_seconds
        self.expires_at = clock() + budget_seconds

    def remaining(self) -> float:
        return max(0.0, self.expires_at - self._clock())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0

    def cap(self, seconds: float) -> float:
        """Shorter of seconds and the remaining budget."""
        return min(seconds, self.remaining())

    def child(self, max_seconds: float) -> "Deadline":
        return Deadline(self.cap(max_seconds), clock=self._clock)
