"""Capture package: frames, the ring buffer and frame sources."""
from .frame import Frame
from .ring_buffer import FrameRingBuffer
from .source import BufferedFrameSource, FrameSource, MssFrameSource

__all__ = ["Frame", "FrameRingBuffer", "FrameSource", "BufferedFrameSource", "MssFrameSource"]
