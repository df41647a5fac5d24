"""Synthetic frames and fake frame sources for tests."""

import threading

import cv2
import numpy as np

from livematch.capture.frame import Frame


def noise(h, w, seed=0, channels=3):
    """Per-pixel uniform noise: correlation peaks are sharp and unique."""
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(h, w, channels), dtype=np.uint8)


def smooth_noise(h, w, seed=0, cells=8):
    """Low-frequency texture, stable under resampling."""
    rng = np.random.default_rng(seed)
    small = rng.integers(0, 256, size=(cells, cells, 3), dtype=np.uint8)
    return cv2.resize(small, (w, h), interpolation=cv2.INTER_CUBIC)


def embed(frame, patch, x, y):
    out = frame.copy()
    h, w = patch.shape[:2]
    out[y : y + h, x : x + w] = patch
    return out


def to_frame(bgr, sequence=1):
    return Frame(cv2.cvtColor(bgr, cv2.COLOR_BGR2BGRA), sequence)


class ScriptedSource:
    """Hands out frames from a fixed list, cycling or repeating the last one."""

    def __init__(self, images, cycle=False):
        self.frames = [to_frame(img, i + 1) for i, img in enumerate(images)]
        self.cycle = cycle
        self.calls = 0
        self._lock = threading.Lock()

    def get_next_frame(self, cancel=None, timeout=None):
        with self._lock:
            i = self.calls
            self.calls += 1
        if self.cycle:
            return self.frames[i % len(self.frames)]
        return self.frames[min(i, len(self.frames) - 1)]

    def get_last_frame(self):
        with self._lock:
            i = max(0, self.calls - 1)
        return self.frames[min(i, len(self.frames) - 1)]
