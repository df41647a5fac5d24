"""Cooperative cancellation for polling waits.

A CancellationToken wraps a threading.Event. Waits sleep on the event
instead of time.sleep so that cancel() wakes them immediately.
"""
from __future__ import annotations

import threading
import time
from typing import Optional


class MatchCancelled(Exception):
    """Raised when a wait is cancelled by its caller (distinct from a timeout)."""


class CancellationToken:
    """Thread-safe cancellation flag with an interruptible sleep."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float]) -> bool:
        """Sleep up to ``timeout`` seconds; True if cancellation fired."""
        if timeout is not None and timeout <= 0:
            return self._event.is_set()
        return self._event.wait(timeout)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise MatchCancelled("wait cancelled")


def check(cancel: Optional[CancellationToken]) -> None:
    """raise_if_cancelled that tolerates a missing token."""
    if cancel is not None:
        cancel.raise_if_cancelled()


def sleep(seconds: float, cancel: Optional[CancellationToken] = None) -> None:
    """Interruptible delay; raises MatchCancelled if cancelled while sleeping."""
    if seconds <= 0:
        check(cancel)
        return
    if cancel is None:
        time.sleep(seconds)
        return
    if cancel.wait(seconds):
        raise MatchCancelled("wait cancelled")
