"""
Template stores: resolve a template key to raw BGR pixels.

The controller calls ``load_template`` once per key and memoizes the
resulting Template, so stores do not need their own caching to be correct.
DirectoryTemplateStore still keeps decoded images to avoid re-reading files
when several controllers share one store.
"""
from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Dict, Iterable, Optional, Protocol, Union, runtime_checkable

import cv2
import numpy as np

logger = logging.getLogger(__name__)

IMAGE_SUFFIXES = (".png", ".jpg", ".jpeg", ".bmp")


@runtime_checkable
class TemplateStore(Protocol):
    def load_template(self, key: str) -> np.ndarray: ...


class DirectoryTemplateStore:
    """Loads ``<root>/<key>.<ext>`` images with OpenCV.

    Keys may contain subdirectories (``"menus/play"``). A key that already
    carries an image suffix is used as-is.
    """

    def __init__(self, root: Union[str, Path], suffixes: Iterable[str] = IMAGE_SUFFIXES) -> None:
        self.root = Path(root)
        self.suffixes = tuple(suffixes)
        self._lock = threading.Lock()
        self._images: Dict[str, np.ndarray] = {}

    def resolve(self, key: str) -> Optional[Path]:
        """Path of the image backing ``key`` or None."""
        candidate = self.root / key
        if candidate.suffix.lower() in self.suffixes:
            return candidate if candidate.is_file() else None
        for suffix in self.suffixes:
            path = candidate.with_name(candidate.name + suffix)
            if path.is_file():
                return path
        return None

    def load_template(self, key: str) -> np.ndarray:
        with self._lock:
            cached = self._images.get(key)
        if cached is not None:
            return cached

        path = self.resolve(key)
        if path is None:
            raise KeyError(f"unknown template: {key!r} (searched {self.root})")
        image = cv2.imread(str(path), cv2.IMREAD_COLOR)
        if image is None:
            raise FileNotFoundError(f"Template image could not be read: {path}")
        image.setflags(write=False)
        logger.debug("templates: loaded %s from %s (%dx%d)", key, path, image.shape[1], image.shape[0])

        with self._lock:
            return self._images.setdefault(key, image)

    def keys(self):
        """Template keys available under the root directory."""
        if not self.root.is_dir():
            return []
        found = []
        for path in sorted(self.root.rglob("*")):
            if path.is_file() and path.suffix.lower() in self.suffixes:
                found.append(path.relative_to(self.root).with_suffix("").as_posix())
        return found


class MemoryTemplateStore:
    """In-memory store, handy for tests and generated templates."""

    def __init__(self, images: Optional[Dict[str, np.ndarray]] = None) -> None:
        self._images: Dict[str, np.ndarray] = dict(images or {})

    def add(self, key: str, image: np.ndarray) -> None:
        self._images[key] = image

    def load_template(self, key: str) -> np.ndarray:
        try:
            return self._images[key]
        except KeyError:
            raise KeyError(f"unknown template: {key!r}") from None


__all__ = ["TemplateStore", "DirectoryTemplateStore", "MemoryTemplateStore"]
