import threading
import time


def epoch_millis() -> int:
    return int(time.time() * 1000)


class ReferenceGenerator:
    """
    Builds local transaction references of the form "<prefix>_<epoch millis>".

    Values never repeat within a process: when the clock has not moved past
    the last issued value the last value + 1 is used instead.
    """

    def __init__(self, clock=None):
        self.clock = clock or epoch_millis
        self._last = 0
        self._lock = threading.Lock()

    def next(self, prefix: str) -> str:
        with self._lock:
            now = int(self.clock())
            if now <= self._last:
                now = self._last + 1
            self._last = now
        return f"{prefix}_{now}"
