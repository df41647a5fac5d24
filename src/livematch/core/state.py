"""
Last-hit memory.
Remembers where each template was last confirmed so later searches can start
with a local ROI around that point.
"""

import threading
from typing import Dict, Optional, Tuple

Point = Tuple[int, int]


class HitMemory:
    """Thread-safe template key -> last confirmed center."""

    def __init__(self):
        self.lock = threading.Lock()
        self._hits: Dict[str, Point] = {}

    def set(self, key, center):
        """Record the latest accepted center for ``key``."""
        with self.lock:
            self._hits[str(key)] = (int(center[0]), int(center[1]))

    def get(self, key, default=None) -> Optional[Point]:
        """Return the last center for ``key`` or ``default``."""
        with self.lock:
            return self._hits.get(str(key), default)

    def remove(self, key):
        """Forget ``key``; missing keys are ignored."""
        with self.lock:
            self._hits.pop(str(key), None)

    def clear(self):
        """Forget every template."""
        with self.lock:
            self._hits.clear()

    def __len__(self):
        with self.lock:
            return len(self._hits)
