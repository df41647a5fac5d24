"""
Frame sources: the pull-based contract the matching core consumes.

- FrameSource: protocol with get_next_frame (may block) and get_last_frame
- BufferedFrameSource: turns a FrameRingBuffer into a blocking channel; any
  producer calls push() and consumers pull the next unseen frame
- MssFrameSource: background capture thread grabbing a screen region or
  monitor with mss and pushing BGRA frames into its buffer

Capture device lifetime stays here; the matcher only sees Frame values.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Optional, Protocol, Union, runtime_checkable

import mss
import numpy as np

from ..core.cancellation import CancellationToken, MatchCancelled
from .frame import Frame
from .ring_buffer import DEFAULT_CAPACITY, FrameRingBuffer

logger = logging.getLogger(__name__)

# Upper bound on one condition wait so cancellation is noticed promptly.
_WAIT_SLICE = 0.05


@runtime_checkable
class FrameSource(Protocol):
    def get_next_frame(
        self, cancel: Optional[CancellationToken] = None, timeout: Optional[float] = None
    ) -> Optional[Frame]: ...

    def get_last_frame(self) -> Optional[Frame]: ...


class BufferedFrameSource:
    """Ring-buffer backed frame channel.

    ``get_next_frame`` returns the newest frame whose sequence number is
    greater than the last one this source handed out, waiting for a producer
    when none is available. It is meant for a single polling consumer.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY, source_id: Optional[Union[int, str]] = None) -> None:
        self.buffer = FrameRingBuffer(capacity)
        self.source_id = source_id
        self._cond = threading.Condition()
        self._next_seq = 1
        self._delivered_seq = 0

    def push(self, frame: Union[Frame, np.ndarray], timestamp: Optional[float] = None) -> Frame:
        """Hand a frame (or a raw HxWx4 BGRA array) over to the buffer."""
        with self._cond:
            if not isinstance(frame, Frame):
                frame = Frame(np.asarray(frame), self._next_seq, timestamp=timestamp, source_id=self.source_id)
            self._next_seq = max(self._next_seq, frame.sequence) + 1
            self.buffer.add(frame)
            self._cond.notify_all()
        return frame

    def get_last_frame(self) -> Optional[Frame]:
        return self.buffer.get_last()

    def get_next_frame(
        self, cancel: Optional[CancellationToken] = None, timeout: Optional[float] = None
    ) -> Optional[Frame]:
        """Block until an unseen frame arrives; None on timeout or when closed."""
        deadline = None if timeout is None else time.monotonic() + max(0.0, float(timeout))
        with self._cond:
            while True:
                if cancel is not None and cancel.cancelled:
                    raise MatchCancelled("wait cancelled")
                frame = self.buffer.get_last()
                if frame is not None and frame.sequence > self._delivered_seq:
                    self._delivered_seq = frame.sequence
                    return frame
                if self.buffer.closed:
                    return None
                if deadline is None:
                    slice_s = _WAIT_SLICE
                else:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        return None
                    slice_s = min(_WAIT_SLICE, remaining)
                self._cond.wait(slice_s)

    def close(self) -> None:
        with self._cond:
            self.buffer.close()
            self._cond.notify_all()


class MssFrameSource(BufferedFrameSource):
    """Screen capture thread backed by mss.

    region: absolute dict {left, top, width, height}; when None the monitor
    ``monitor`` is captured (mss numbering: 0 = all monitors, 1 = primary).
    """

    def __init__(
        self,
        region: Optional[dict] = None,
        monitor: int = 1,
        fps: float = 30.0,
        capacity: int = DEFAULT_CAPACITY,
    ) -> None:
        super().__init__(capacity=capacity, source_id=f"monitor:{monitor}" if region is None else "region")
        self.region = dict(region) if isinstance(region, dict) else None
        self.monitor = int(monitor)
        self.fps = max(1.0, float(fps))
        self._tls = threading.local()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # --------------------------- screen capture ---------------------------
    def _get_sct(self, force_new: bool = False):
        sct = getattr(self._tls, "sct", None)
        if force_new or sct is None:
            if sct is not None:
                sct.close()
            sct = mss.mss()
            self._tls.sct = sct
        return sct

    def _capture_region(self, sct) -> dict:
        if self.region is not None:
            return self.region
        monitors = sct.monitors
        idx = self.monitor if 0 <= self.monitor < len(monitors) else 0
        return monitors[idx]

    def _grab(self) -> np.ndarray:
        sct = self._get_sct()
        try:
            shot = sct.grab(self._capture_region(sct))
        except AttributeError:
            # mss handles are thread bound; rebuild a stale one
            sct = self._get_sct(force_new=True)
            shot = sct.grab(self._capture_region(sct))
        return np.array(shot)  # BGRA

    def capture_once(self) -> Frame:
        """Grab one frame synchronously and push it into the buffer."""
        t0 = time.perf_counter()
        data = self._grab()
        frame = self.push(data)
        logger.debug("capture: grab %.1fms seq=%d", (time.perf_counter() - t0) * 1000.0, frame.sequence)
        return frame

    # --------------------------- capture thread ---------------------------
    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="livematch-capture", daemon=True)
        self._thread.start()
        logger.info("capture: started (fps=%.1f, region=%s, monitor=%d)", self.fps, self.region, self.monitor)

    def stop(self, timeout: float = 2.0) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
        self._thread = None
        logger.info("capture: stopped")

    def _run(self) -> None:
        period = 1.0 / self.fps
        try:
            while not self._stop_event.is_set():
                t0 = time.perf_counter()
                try:
                    self.capture_once()
                except Exception:
                    logger.exception("capture: grab failed")
                elapsed = time.perf_counter() - t0
                self._stop_event.wait(max(0.0, period - elapsed))
        finally:
            sct = getattr(self._tls, "sct", None)
            if sct is not None:
                sct.close()
                self._tls.sct = None

    def close(self) -> None:
        self.stop()
        super().close()

    def __enter__(self) -> "MssFrameSource":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.close()
