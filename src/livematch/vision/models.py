"""
Value types shared by the matcher, the stabilizer and the controller.

All types here are immutable. Options are adjusted with ``replace`` /
``with_roi`` which return new instances, so a preset can be shared between
threads without copying.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import List, Optional, Tuple

import cv2
import numpy as np

_LOWER_IS_BETTER = (cv2.TM_SQDIFF, cv2.TM_SQDIFF_NORMED)
_NORMED = (cv2.TM_SQDIFF_NORMED, cv2.TM_CCORR_NORMED, cv2.TM_CCOEFF_NORMED)
# Scores exactly on the threshold pass despite float rounding of 1 - threshold.
_EPS = 1e-9


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in pixel coordinates (left, top, width, height)."""

    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def center(self) -> Tuple[int, int]:
        return self.x + self.width // 2, self.y + self.height // 2

    @property
    def empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def clamp(self, width: int, height: int) -> Optional["Rect"]:
        """Intersect with a ``width`` x ``height`` frame; None when nothing is left."""
        left = max(0, int(self.x))
        top = max(0, int(self.y))
        right = min(int(width), int(self.x) + int(self.width))
        bottom = min(int(height), int(self.y) + int(self.height))
        if right <= left or bottom <= top:
            return None
        return Rect(left, top, right - left, bottom - top)

    @classmethod
    def around(cls, center: Tuple[int, int], width: int, height: int) -> "Rect":
        """Rectangle of the given size centered on ``center``, pinned at the origin."""
        cx, cy = int(center[0]), int(center[1])
        return cls(max(0, cx - width // 2), max(0, cy - height // 2), int(width), int(height))


@dataclass(frozen=True)
class PreprocessKey:
    """Identity of a grayscale/blur/edge combination."""

    use_grayscale: bool
    use_edge: bool
    blur_kernel_size: int


def normalize_blur_kernel(size: Optional[int]) -> int:
    """Return an odd Gaussian kernel size, or 0 when no blur applies."""
    if size is None:
        return 0
    k = int(size)
    if k <= 1:
        return 0
    return k if k % 2 == 1 else k + 1


@dataclass(frozen=True)
class MatchOptions:
    """Parameters of one template search.

    ``threshold`` is always expressed as "goodness" in [0, 1]. For
    lower-is-better correlation modes (squared difference) a score passes
    when it is at most ``1 - threshold``.
    """

    threshold: float = 0.9
    method: int = cv2.TM_CCOEFF_NORMED
    scale_min: float = 1.0
    scale_max: float = 1.0
    scale_step: float = 0.01
    roi: Optional[Rect] = None
    use_grayscale: bool = True
    use_edge: bool = False
    blur_kernel_size: Optional[int] = 3
    consecutive_hits_required: int = 1
    mask: Optional[np.ndarray] = field(default=None, compare=False, hash=False, repr=False)

    @property
    def higher_is_better(self) -> bool:
        return self.method not in _LOWER_IS_BETTER

    @property
    def normalized(self) -> bool:
        return self.method in _NORMED

    @property
    def preprocess_key(self) -> PreprocessKey:
        return PreprocessKey(
            bool(self.use_grayscale),
            bool(self.use_edge),
            normalize_blur_kernel(self.blur_kernel_size),
        )

    def scales(self) -> List[float]:
        """Inclusive scale sweep from min to max in ``scale_step`` increments."""
        lo, hi = sorted((float(self.scale_min), float(self.scale_max)))
        step = float(self.scale_step) if self.scale_step and self.scale_step > 0 else 0.01
        count = int(math.floor((hi - lo) / step + 1e-9))
        return [round(lo + i * step, 6) for i in range(count + 1)]

    def passes(self, score: float) -> bool:
        return is_hard_pass(score, self.threshold, self.higher_is_better)

    def with_roi(self, roi: Optional[Rect]) -> "MatchOptions":
        return replace(self, roi=roi)

    def replace(self, **changes) -> "MatchOptions":
        return replace(self, **changes)


def is_hard_pass(score: float, threshold: float, higher_is_better: bool) -> bool:
    """Threshold test in the direction of the correlation mode."""
    if higher_is_better:
        return score >= threshold - _EPS
    return score <= (1.0 - threshold) + _EPS


@dataclass(frozen=True)
class MatchResult:
    """Best location of a template in source (frame) coordinates."""

    bounds: Rect
    center: Tuple[int, int]
    score: float
    scale: float
    hard_pass: bool


__all__ = [
    "Rect",
    "PreprocessKey",
    "MatchOptions",
    "MatchResult",
    "is_hard_pass",
    "normalize_blur_kernel",
]
