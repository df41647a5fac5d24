"""
Bounded history of recently captured frames.

The buffer owns every frame it holds. Adding to a full buffer evicts and
releases the oldest frame synchronously, so memory stays bounded by the
capacity. All reads and writes go through one lock; readers receive
references and never take ownership. Release hooks run after the lock is
dropped, so a hook may call back into the buffer.
"""
from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Deque, List, Optional

from ..config.vision import BUFFER_CAPACITY
from .frame import Frame

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = BUFFER_CAPACITY


class FrameRingBuffer:
    """Fixed-capacity FIFO of frames, most recent last."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        try:
            cap = int(capacity)
        except (TypeError, ValueError):
            cap = DEFAULT_CAPACITY
        if cap < 1:
            logger.warning("ring buffer: capacity %s is invalid, using 1", capacity)
            cap = 1
        self._capacity = cap
        self.lock = threading.Lock()
        self._frames: Deque[Frame] = deque()
        self._closed = False

    @property
    def capacity(self) -> int:
        return self._capacity

    def add(self, frame: Frame) -> None:
        """Append ``frame``; evict and release the oldest one when full."""
        evicted: List[Frame] = []
        with self.lock:
            if self._closed:
                evicted.append(frame)
            else:
                while len(self._frames) >= self._capacity:
                    evicted.append(self._frames.popleft())
                self._frames.append(frame)
        # Evicted frames are already unreachable; hooks run without the lock held.
        for old in evicted:
            old.release()
        if evicted and logger.isEnabledFor(logging.DEBUG):
            logger.debug("ring buffer: evicted %d frame(s), newest seq=%d", len(evicted), frame.sequence)

    def get_last(self) -> Optional[Frame]:
        with self.lock:
            return self._frames[-1] if self._frames else None

    def get_recent(self, k: int) -> List[Frame]:
        """Up to ``k`` frames ordered most-recent-first."""
        with self.lock:
            n = max(0, min(int(k), len(self._frames)))
            return [self._frames[-1 - i] for i in range(n)]

    def clear(self) -> None:
        """Release and drop every held frame."""
        with self.lock:
            dropped = list(self._frames)
            self._frames.clear()
        for old in dropped:
            old.release()

    def close(self) -> None:
        """Clear the buffer; later ``add`` calls release the frame immediately."""
        with self.lock:
            self._closed = True
            dropped = list(self._frames)
            self._frames.clear()
        for old in dropped:
            old.release()

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        with self.lock:
            return len(self._frames)

    def __enter__(self) -> "FrameRingBuffer":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
