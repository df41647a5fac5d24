"""
Captured frame value.

A frame wraps a BGRA pixel buffer (4 bytes per pixel) plus capture metadata.
It is never modified after it is produced. The producer may attach a release
hook (e.g. to recycle a buffer pool slot); whoever owns the frame calls
``release()`` once it drops it, and the hook runs at most once.
"""
from __future__ import annotations

import threading
import time
from typing import Callable, Optional, Union

import numpy as np

from ..vision.preprocess import bgra_to_bgr

BYTES_PER_PIXEL = 4


class Frame:
    """Immutable BGRA frame with sequence number and timestamp."""

    __slots__ = ("_data", "sequence", "timestamp", "source_id", "_on_release", "_released", "_lock")

    def __init__(
        self,
        data: np.ndarray,
        sequence: int,
        timestamp: Optional[float] = None,
        source_id: Optional[Union[int, str]] = None,
        on_release: Optional[Callable[["Frame"], None]] = None,
    ) -> None:
        if data.ndim != 3 or data.shape[2] != BYTES_PER_PIXEL:
            raise ValueError(f"frame data must be HxWx4 (BGRA), got shape {data.shape}")
        data.setflags(write=False)
        self._data = data
        self.sequence = int(sequence)
        self.timestamp = float(timestamp if timestamp is not None else time.time())
        self.source_id = source_id
        self._on_release = on_release
        self._released = False
        self._lock = threading.Lock()

    @classmethod
    def from_bytes(
        cls,
        raw: Union[bytes, bytearray, memoryview],
        width: int,
        height: int,
        stride: Optional[int] = None,
        sequence: int = 0,
        timestamp: Optional[float] = None,
        source_id: Optional[Union[int, str]] = None,
        on_release: Optional[Callable[["Frame"], None]] = None,
    ) -> "Frame":
        """Build a frame from a raw BGRA buffer whose rows may be padded to ``stride`` bytes."""
        row_bytes = int(width) * BYTES_PER_PIXEL
        stride = int(stride) if stride else row_bytes
        if stride < row_bytes:
            raise ValueError(f"stride {stride} is smaller than a row ({row_bytes} bytes)")
        buf = np.frombuffer(raw, dtype=np.uint8)
        if buf.size < stride * int(height):
            raise ValueError("buffer is smaller than stride * height")
        rows = buf[: stride * int(height)].reshape(int(height), stride)
        data = np.ascontiguousarray(rows[:, :row_bytes]).reshape(int(height), int(width), BYTES_PER_PIXEL)
        return cls(data, sequence, timestamp=timestamp, source_id=source_id, on_release=on_release)

    @property
    def data(self) -> np.ndarray:
        return self._data

    @property
    def width(self) -> int:
        return int(self._data.shape[1])

    @property
    def height(self) -> int:
        return int(self._data.shape[0])

    @property
    def stride(self) -> int:
        return int(self._data.strides[0])

    @property
    def empty(self) -> bool:
        return self._data.size == 0

    @property
    def released(self) -> bool:
        return self._released

    def to_bgr(self) -> np.ndarray:
        """Return a 3-channel BGR copy suitable for matching."""
        return bgra_to_bgr(self._data)

    def release(self) -> bool:
        """Run the release hook once. Returns True only for the releasing call."""
        with self._lock:
            if self._released:
                return False
            self._released = True
            hook, self._on_release = self._on_release, None
        if hook is not None:
            hook(self)
        return True

    def __repr__(self) -> str:
        return (
            f"Frame(sequence={self.sequence}, size={self.width}x{self.height}, "
            f"timestamp={self.timestamp:.3f}, source_id={self.source_id!r})"
        )
