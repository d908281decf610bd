# ============================================================================
#  rate_limiter.py — Per-Endpoint Rate Limiting and Retry Policy
#  Version: 2.0.0
#  CHANGES: Injectable clock/sleep, endpoint classes, Retry-After support
# ============================================================================
import logging
import time
from enum import Enum
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


class EndpointClass(str, Enum):
    BULK = "bulk"
    INVENTORY = "inventory"


DEFAULT_INTERVALS = {
    EndpointClass.BULK: 0.0,
    EndpointClass.INVENTORY: 0.6,
}


class RateLimiter:
    """Per endpoint class, blocks until min_interval has elapsed since the last call."""

    def __init__(
        self,
        min_intervals: Optional[Dict[EndpointClass, float]] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.min_intervals = dict(DEFAULT_INTERVALS)
        if min_intervals:
            self.min_intervals.update(min_intervals)
        self.clock = clock
        self.sleep = sleep
        self.last_call: Dict[EndpointClass, float] = {}

    def wait(self, endpoint_class: EndpointClass) -> float:
        """Sleeps until the class is due. Returns the seconds slept."""
        last = self.last_call.get(endpoint_class)
        if last is None:
            return 0.0
        due = last + self.min_intervals.get(endpoint_class, 0.0)
        now = self.clock()
        if now >= due:
            return 0.0
        delay = due - now
        logger.debug(f"Rate limit [{endpoint_class.value}]: sleeping {delay:.3f}s")
        self.sleep(delay)
        return delay

    def mark(self, endpoint_class: EndpointClass):
        self.last_call[endpoint_class] = self.clock()


class RetryPolicy:
    """Retry 429/5xx with server Retry-After or exponential backoff."""

    def __init__(self, max_retries: int = 6, initial_delay: float = 0.8, factor: float = 1.7, max_delay: float = 8.0):
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.factor = factor
        self.max_delay = max_delay

    @staticmethod
    def is_retryable(status: int) -> bool:
        return status == 429 or status >= 500

    def next_backoff(self, current: float) -> float:
        return min(current * self.factor, self.max_delay)

    @staticmethod
    def retry_after(header: Optional[str]) -> Optional[float]:
        if header is None:
            return None
        try:
            value = float(str(header).strip())
        except ValueError:
            return None
        return value if value >= 0 else None
# ============================================================================
# End of rate_limiter.py — Version: 2.0.0
# ============================================================================
