"""Resend-OTP countdown."""
from __future__ import annotations

import math
import time
from typing import Callable

from nutriweb.app.services.api_client import RateLimitError, parse_cooldown_seconds


class ResendCooldown:
    """Countdown derived from a deadline so it survives between requests."""

    def __init__(self, deadline: float | None = None, *, clock: Callable[[], float] = time.time) -> None:
        self.deadline = deadline
        self._clock = clock

    def start(self, seconds: int) -> None:
        self.deadline = self._clock() + max(0, int(seconds))

    def start_from_message(self, message: str | None) -> bool:
        """Seed the countdown from ``"... 42 seconds"``; False when no number is present."""

        seconds = parse_cooldown_seconds(message)
        if seconds is None:
            return False
        self.start(seconds)
        return True

    def start_from_error(self, error: Exception) -> bool:
        if isinstance(error, RateLimitError):
            return self.start_from_message(error.message)
        return False

    def reset(self) -> None:
        self.deadline = None

    def remaining(self) -> int:
        if self.deadline is None:
            return 0
        return max(0, math.ceil(self.deadline - self._clock()))

    @property
    def active(self) -> bool:
        return self.remaining() > 0
