"""
Pure image preprocessing utilities.

This module contains only stateless, side-effect-free functions shared by the
template cache (template side) and the matcher (source side). Both sides go
through ``preprocess`` so that a template variant and a frame view are always
derived with the same pipeline: grayscale, then blur, then edges.

Logging: functions here avoid logging for performance; callers log at DEBUG.
"""
from __future__ import annotations

from typing import Optional

import cv2
import numpy as np

from ..config.vision import CANNY_HIGH, CANNY_LOW
from .models import PreprocessKey


def to_gray(img: np.ndarray) -> np.ndarray:
    """Convert BGR/BGRA to single-channel; single-channel input is returned as is."""
    if img.ndim == 2:
        return img
    channels = img.shape[2]
    if channels == 4:
        return cv2.cvtColor(img, cv2.COLOR_BGRA2GRAY)
    if channels == 3:
        return cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)
    return img[:, :, 0]


def blur(img: np.ndarray, kernel: int) -> np.ndarray:
    """Gaussian blur with an odd square kernel; kernels <= 1 are a no-op."""
    if kernel <= 1:
        return img
    return cv2.GaussianBlur(img, (kernel, kernel), 0)


def edges(img: np.ndarray) -> np.ndarray:
    """Canny edge extraction with the configured fixed thresholds.

    Multi-channel input is reduced to grayscale first.
    """
    return cv2.Canny(to_gray(img), CANNY_LOW, CANNY_HIGH)


def preprocess(img: np.ndarray, key: PreprocessKey) -> np.ndarray:
    """Apply grayscale, blur and edge steps selected by ``key``, in that order.

    Always returns a new array; the input is never modified.
    """
    cur = img
    if key.use_grayscale:
        cur = to_gray(cur)
    if key.blur_kernel_size > 1:
        cur = blur(cur, key.blur_kernel_size)
    if key.use_edge:
        cur = edges(cur)
    if cur is img:
        cur = img.copy()
    return np.ascontiguousarray(cur)


def resize_tpl(tpl: np.ndarray, scale: float) -> np.ndarray:
    """Resize a template by ``scale``; area interpolation when shrinking.

    A scale of ~1.0 returns a plain copy so the unscaled pass never resamples.
    """
    h, w = tpl.shape[:2]
    if abs(scale - 1.0) < 1e-9:
        return tpl.copy()
    nh, nw = max(1, int(h * scale)), max(1, int(w * scale))
    interpolation = cv2.INTER_AREA if scale < 1.0 else cv2.INTER_LINEAR
    return cv2.resize(tpl, (nw, nh), interpolation=interpolation)


def resize_mask(mask: Optional[np.ndarray], shape) -> Optional[np.ndarray]:
    """Resize a match mask to the (h, w) of a scaled template."""
    if mask is None:
        return None
    h, w = shape[:2]
    if mask.shape[:2] == (h, w):
        return mask
    return cv2.resize(mask, (w, h), interpolation=cv2.INTER_NEAREST)


def bgra_to_bgr(img: np.ndarray) -> np.ndarray:
    """Drop the alpha channel of a BGRA frame (returns a contiguous copy)."""
    if img.ndim == 3 and img.shape[2] == 4:
        return cv2.cvtColor(img, cv2.COLOR_BGRA2BGR)
    return img


__all__ = [
    "to_gray",
    "blur",
    "edges",
    "preprocess",
    "resize_tpl",
    "resize_mask",
    "bgra_to_bgr",
]
