"""
Preprocessed template variants, memoized per PreprocessKey.

Grayscale/blur/edge transforms are scale independent, so a template only
needs them once per option combination. Per-scale resizing is left to the
matcher. Each entry is published once as a read-only master; readers get
a copy they are free to modify.
"""
from __future__ import annotations

import logging
import threading
from typing import Dict

import numpy as np

from .models import MatchOptions, PreprocessKey
from .preprocess import preprocess

logger = logging.getLogger(__name__)


class TemplatePreprocessCache:
    """Thread-safe PreprocessKey -> variant store for a single template."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._variants: Dict[PreprocessKey, np.ndarray] = {}

    def get_or_create(self, template: np.ndarray, options: MatchOptions) -> np.ndarray:
        """Return a copy of the variant of ``template`` selected by ``options``."""
        key = options.preprocess_key
        with self._lock:
            cached = self._variants.get(key)
        if cached is not None and cached.size > 0:
            return cached.copy()

        variant = preprocess(template, key)
        master = variant.copy()
        master.setflags(write=False)
        with self._lock:
            # First writer wins; a concurrent builder derived the same content.
            master = self._variants.setdefault(key, master)
        logger.debug("template cache: built variant %s shape=%s", key, tuple(variant.shape))
        return master.copy()

    def clear(self) -> None:
        with self._lock:
            self._variants.clear()

    def keys(self):
        with self._lock:
            return list(self._variants.keys())

    def __len__(self) -> int:
        with self._lock:
            return len(self._variants)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._variants
