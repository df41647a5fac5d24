"""Controllers compose capture, templates and the pure matchers."""
from .vision import MatchController

__all__ = ["MatchController"]
