"""
Vision configuration knobs centralization.

Match presets, Canny thresholds, stabilization tolerances and environment
toggles live here. The matcher, stabilizer and controller import from this
module instead of hardcoding values.
"""
from __future__ import annotations

import os

from ..vision.models import MatchOptions

# Presets (threshold, scale sweep and preprocessing tuned per use case)
UNIVERSAL = MatchOptions(
    threshold=0.90,
    scale_min=0.97,
    scale_max=1.03,
    scale_step=0.01,
    use_grayscale=True,
    use_edge=False,
    blur_kernel_size=3,
    consecutive_hits_required=2,
)
FAST = MatchOptions(
    threshold=0.75,
    scale_min=1.0,
    scale_max=1.0,
    scale_step=0.01,
    use_grayscale=True,
    use_edge=False,
    blur_kernel_size=None,
)
ACCURATE = MatchOptions(
    threshold=0.95,
    scale_min=0.9,
    scale_max=1.1,
    scale_step=0.005,
    use_grayscale=True,
    use_edge=False,
    blur_kernel_size=5,
)
UI = MatchOptions(
    threshold=0.9,
    scale_min=0.98,
    scale_max=1.02,
    scale_step=0.01,
    use_grayscale=True,
    use_edge=False,
    blur_kernel_size=3,
)
MULTI_SCALE = MatchOptions(
    threshold=0.8,
    scale_min=0.7,
    scale_max=1.3,
    scale_step=0.02,
    use_grayscale=True,
    use_edge=False,
    blur_kernel_size=3,
)

PRESETS = {
    "universal": UNIVERSAL,
    "fast": FAST,
    "accurate": ACCURATE,
    "ui": UI,
    "multi_scale": MULTI_SCALE,
}


# Edge extraction thresholds (Canny)
CANNY_LOW: int = 80
CANNY_HIGH: int = 160

# Stabilization
LOCAL_ROI_SCALE: float = 3.0
GLOBAL_REFRESH_TICKS: int = 8
HIT_TOLERANCE_PX: int = 2

# Multi-match defaults
MAX_RESULTS: int = 5
NMS_OVERLAP: float = 0.3

# Polling defaults (seconds)
WAIT_TIMEOUT: float = 10.0
POLL_INTERVAL: float = 0.12
FRAME_TIMEOUT: float = 1.0

# Buffering
BUFFER_CAPACITY: int = 30

# Environment flags
PERF_ENABLED: bool = os.environ.get("LM_VISION_PERF", "0") == "1"

# Artifact sizes
ARTIFACT_MAX_DIM: int = 640


def preset(name: str) -> MatchOptions:
    """Return a named preset; unknown names fall back to UNIVERSAL."""
    return PRESETS.get(str(name or "").strip().lower(), UNIVERSAL)


__all__ = [
    "UNIVERSAL",
    "FAST",
    "ACCURATE",
    "UI",
    "MULTI_SCALE",
    "PRESETS",
    "CANNY_LOW",
    "CANNY_HIGH",
    "LOCAL_ROI_SCALE",
    "GLOBAL_REFRESH_TICKS",
    "HIT_TOLERANCE_PX",
    "MAX_RESULTS",
    "NMS_OVERLAP",
    "WAIT_TIMEOUT",
    "POLL_INTERVAL",
    "FRAME_TIMEOUT",
    "BUFFER_CAPACITY",
    "PERF_ENABLED",
    "ARTIFACT_MAX_DIM",
    "preset",
]
