"""Template value: identity, raw pixels and its preprocessing cache."""
from __future__ import annotations

from pathlib import Path
from typing import Tuple, Union

import cv2
import numpy as np

from .models import MatchOptions
from .template_cache import TemplatePreprocessCache

PathLike = Union[str, Path]


class Template:
    """A reference image to search for.

    The raw pixels are treated as immutable (the array is flagged read-only).
    Preprocessed variants are derived on demand and memoized per option set.
    """

    def __init__(self, key: str, pixels: np.ndarray) -> None:
        if pixels is None:
            raise ValueError("template pixels must not be None")
        self.key = str(key)
        raw = np.ascontiguousarray(pixels).copy()
        raw.setflags(write=False)
        self._pixels = raw
        self.cache = TemplatePreprocessCache()

    @classmethod
    def from_file(cls, path: PathLike, key: str | None = None) -> "Template":
        """Load a template image (BGR) from disk."""
        image = cv2.imread(str(path), cv2.IMREAD_COLOR)
        if image is None:
            raise FileNotFoundError(f"Template image not found: {path}")
        return cls(key or Path(path).stem, image)

    @property
    def pixels(self) -> np.ndarray:
        return self._pixels

    @property
    def size(self) -> Tuple[int, int]:
        """(width, height) of the unscaled template."""
        h, w = self._pixels.shape[:2]
        return int(w), int(h)

    @property
    def empty(self) -> bool:
        return self._pixels.size == 0

    def preprocessed(self, options: MatchOptions) -> np.ndarray:
        return self.cache.get_or_create(self._pixels, options)

    def __repr__(self) -> str:
        w, h = self.size
        return f"Template(key={self.key!r}, size={w}x{h}, variants={len(self.cache)})"
