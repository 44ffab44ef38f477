from __future__ import annotations

from typing import Final, Literal

ReconnectState = Literal["idle", "scheduled", "attempting"]

DEFAULT_MAX_ATTEMPTS: Final[int] = 5
DEFAULT_BASE_DELAY_MS: Final[int] = 1000


class ReconnectPolicy:
    """Bounded exponential backoff for reconnecting after an unexpected close.

    The policy only counts attempts and computes delays; scheduling the
    deferred connect is left to the caller. The n-th attempt since the last
    successful open waits ``base_delay_ms * 2 ** (n - 1)`` milliseconds.
    """

    __slots__ = ("_attempts", "_base_delay_ms", "_exhausted", "_max_attempts", "state")

    def __init__(
        self,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay_ms: int = DEFAULT_BASE_DELAY_MS,
    ) -> None:
        if max_attempts < 0:
            raise ValueError("max_attempts must be >= 0")
        if base_delay_ms < 0:
            raise ValueError("base_delay_ms must be >= 0")
        self._max_attempts = max_attempts
        self._base_delay_ms = base_delay_ms
        self._attempts = 0
        self._exhausted = False
        self.state: ReconnectState = "idle"

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    @property
    def base_delay_ms(self) -> int:
        return self._base_delay_ms

    @property
    def exhausted(self) -> bool:
        """True once next_delay_ms() refused an attempt, until reset()."""
        return self._exhausted

    def delay_for(self, attempt: int) -> int:
        """Delay in milliseconds before the given 1-based attempt."""
        if attempt < 1:
            raise ValueError("attempt must be >= 1")
        return int(self._base_delay_ms * 2 ** (attempt - 1))

    def next_delay_ms(self) -> int | None:
        """Consume one attempt and return its delay, or None when the budget is spent."""
        if self._attempts >= self._max_attempts:
            self._exhausted = True
            self.state = "idle"
            return None
        self._attempts += 1
        self.state = "scheduled"
        return self.delay_for(self._attempts)

    def reset(self) -> None:
        """Forget previous attempts after a successful open or a fresh start."""
        self._attempts = 0
        self._exhausted = False
        self.state = "idle"


__all__ = [
    "DEFAULT_BASE_DELAY_MS",
    "DEFAULT_MAX_ATTEMPTS",
    "ReconnectPolicy",
    "ReconnectState",
]
