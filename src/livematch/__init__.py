"""livematch: locate template images in a live stream of screen captures."""

__version__ = "0.1.0"

from .capture.frame import Frame
from .capture.ring_buffer import FrameRingBuffer
from .capture.source import BufferedFrameSource, FrameSource, MssFrameSource
from .controllers.vision import MatchController
from .core.cancellation import CancellationToken, MatchCancelled
from .vision.matcher import find_all, find_best
from .vision.models import MatchOptions, MatchResult, Rect
from .vision.template import Template

__all__ = [
    "Frame",
    "FrameRingBuffer",
    "FrameSource",
    "BufferedFrameSource",
    "MssFrameSource",
    "MatchController",
    "CancellationToken",
    "MatchCancelled",
    "find_best",
    "find_all",
    "MatchOptions",
    "MatchResult",
    "Rect",
    "Template",
]
