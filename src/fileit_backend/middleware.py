import time
from typing import Callable, Dict, Tuple


class RateLimiter:
    """
    Simple in-memory rate limiter using a fixed window algorithm.
    Tracks attempts per identifier (username or client IP) within a time window.
    """

    def __init__(self, requests_per_minute: int = 5, clock: Callable[[], float] = time.time):
        self.rpm = requests_per_minute
        self._clock = clock
        # identifier -> (count, window_start_time)
        self.requests: Dict[str, Tuple[int, float]] = {}

    def is_allowed(self, identifier: str) -> bool:
        self.cleanup()
        now = self._clock()
        count, start_time = self.requests.get(identifier, (0, now))

        if now - start_time > 60:
            # New window
            self.requests[identifier] = (1, now)
            return True

        if count >= self.rpm:
            return False

        self.requests[identifier] = (count + 1, start_time)
        return True

    def reset(self, identifier: str) -> None:
        self.requests.pop(identifier, None)

    def cleanup(self):
        """Cleanup old entries to prevent memory leak"""
        now = self._clock()
        keys_to_delete = [k for k, v in self.requests.items() if now - v[1] > 60]
        for k in keys_to_delete:
            del self.requests[k]
