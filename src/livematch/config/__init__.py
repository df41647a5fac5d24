"""Config subpackage.

- vision: match presets, thresholds, stabilization knobs and toggles
"""
from .vision import (
    ACCURATE,
    FAST,
    MULTI_SCALE,
    PRESETS,
    UI,
    UNIVERSAL,
    PERF_ENABLED,
    ARTIFACT_MAX_DIM,
    preset,
)

__all__ = [
    "UNIVERSAL",
    "FAST",
    "ACCURATE",
    "UI",
    "MULTI_SCALE",
    "PRESETS",
    "PERF_ENABLED",
    "ARTIFACT_MAX_DIM",
    "preset",
]
