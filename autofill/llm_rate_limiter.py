import logging
import time
from collections import deque
from typing import Callable, Optional

from config import settings

logger = logging.getLogger(__name__)

MINUTE = 60.0
HOUR = 3600.0


class LlmRateLimiter:
    """
    Sliding-window budget for LLM calls (per minute and per hour).

    A limit of 0 disables that window. Callers check ``can_call()`` and then
    ``record_call()`` before issuing the request, so failed calls still count.
    """

    def __init__(
        self,
        max_per_minute: Optional[int] = None,
        max_per_hour: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_per_minute = settings.LLM_MAX_CALLS_PER_MINUTE if max_per_minute is None else max_per_minute
        self.max_per_hour = settings.LLM_MAX_CALLS_PER_HOUR if max_per_hour is None else max_per_hour
        self._clock = clock
        self._calls = deque()

    def _prune(self, now: float) -> None:
        while self._calls and now - self._calls[0] >= HOUR:
            self._calls.popleft()

    def calls_in_last(self, window: float) -> int:
        now = self._clock()
        self._prune(now)
        return sum(1 for t in self._calls if now - t < window)

    def can_call(self) -> bool:
        if self.max_per_minute and self.calls_in_last(MINUTE) >= self.max_per_minute:
            logger.warning(f"LLM budget exhausted: {self.max_per_minute} calls/minute")
            return False
        if self.max_per_hour and self.calls_in_last(HOUR) >= self.max_per_hour:
            logger.warning(f"LLM budget exhausted: {self.max_per_hour} calls/hour")
            return False
        return True

    def record_call(self) -> None:
        self._calls.append(self._clock())
