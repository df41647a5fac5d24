"""
Match stabilization: single-shot search with locality, and wait-for-appearance.

Most UI elements do not move between polls. Searching a small ROI around the
last confirmed hit first is faster and less likely to lock onto a look-alike
elsewhere on screen. A full-frame search (ROI cleared) is the fallback
(single-shot) or is forced periodically (waiting) to recover from a stale
anchor. A caller ROI bounds only the searches made before any hit is known.

Only hard passes confirmed by the search are written to the hit memory.

While waiting, a hit is only accepted after it was seen at (almost) the same
place in ``consecutive_hits_required`` consecutive polls, which filters out
single-frame glitches such as partial redraws.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional, Tuple

from ..config.vision import GLOBAL_REFRESH_TICKS, HIT_TOLERANCE_PX, LOCAL_ROI_SCALE
from ..core import cancellation
from ..core.cancellation import CancellationToken
from ..core.state import HitMemory
from .matcher import find_best
from .models import MatchOptions, MatchResult, Rect
from .template import Template

logger = logging.getLogger(__name__)


@dataclass
class SessionState:
    """Per-call search state for one template."""

    template_key: str
    last_center: Optional[Tuple[int, int]] = None
    hits: int = 0
    tick: int = 0
    last_result: Optional[MatchResult] = None


class MatchStabilizer:
    """Runs single-shot and polling searches on top of ``find_best``."""

    def __init__(
        self,
        hit_memory: Optional[HitMemory] = None,
        local_roi_scale: float = LOCAL_ROI_SCALE,
        hit_tolerance: int = HIT_TOLERANCE_PX,
    ) -> None:
        self.hit_memory = hit_memory
        self.local_roi_scale = float(local_roi_scale)
        self.hit_tolerance = int(hit_tolerance)

    # --------------------------- session helpers ---------------------------
    def new_session(self, template: Template) -> SessionState:
        """Fresh session seeded with the remembered hit for this template, if any."""
        last = self.hit_memory.get(template.key) if self.hit_memory is not None else None
        return SessionState(template_key=template.key, last_center=last)

    def _remember(self, session: SessionState, result: MatchResult, persist: bool = True) -> None:
        session.last_center = result.center
        if persist and self.hit_memory is not None and result.hard_pass:
            self.hit_memory.set(session.template_key, result.center)

    def local_roi(self, template: Template, center: Tuple[int, int], scale_factor: Optional[float] = None) -> Rect:
        """ROI of ``scale_factor`` x template size centered on ``center``."""
        factor = self.local_roi_scale if scale_factor is None else float(scale_factor)
        tw, th = template.size
        return Rect.around(center, int(tw * factor), int(th * factor))

    def _localized(self, options: MatchOptions, template: Template, center: Tuple[int, int]) -> MatchOptions:
        return options.with_roi(self.local_roi(template, center))

    def _close_to(self, a: MatchResult, b: MatchResult) -> bool:
        return (
            abs(a.center[0] - b.center[0]) < self.hit_tolerance
            and abs(a.center[1] - b.center[1]) < self.hit_tolerance
        )

    # --------------------------- single shot ---------------------------
    def find_once(
        self,
        frame,
        template: Template,
        options: MatchOptions,
        session: Optional[SessionState] = None,
        require_hard_pass: bool = True,
    ) -> Optional[MatchResult]:
        """Local search around the last hit, then a full-frame search.

        The first attempt uses the local ROI when a last hit is known, else
        the caller's options. When it does not yield a hard pass and was
        ROI-restricted, a second attempt runs with the ROI cleared. Only hard
        passes update the session and the hit memory. A sub-threshold best
        match is returned unless ``require_hard_pass`` is set.
        """
        session = session or self.new_session(template)

        if session.last_center is not None:
            first = self._localized(options, template, session.last_center)
        else:
            first = options
        result = find_best(frame, template, first)

        if (result is None or not result.hard_pass) and first.roi is not None:
            logger.debug("stabilizer: %s roi %s missed, searching full frame", template.key, first.roi)
            fallback = find_best(frame, template, options.with_roi(None))
            if fallback is not None or result is None:
                result = fallback

        if result is None:
            return None
        if result.hard_pass:
            self._remember(session, result)
            logger.debug("stabilizer: %s hit at %s score=%.3f", template.key, result.center, result.score)
            return result
        return None if require_hard_pass else result

    # --------------------------- waiting ---------------------------
    def wait_for(
        self,
        source,
        template: Template,
        options: MatchOptions,
        timeout: float,
        poll_interval: float,
        allow_near: bool = False,
        global_refresh_ticks: int = GLOBAL_REFRESH_TICKS,
        cancel: Optional[CancellationToken] = None,
    ) -> Optional[MatchResult]:
        """Poll ``source`` until the template is stably found or ``timeout`` elapses.

        Returns None on timeout. Raises MatchCancelled when ``cancel`` fires.
        ``allow_near`` accepts any located result, not only hard passes.
        """
        refresh = max(1, int(global_refresh_ticks))
        required = max(1, int(options.consecutive_hits_required))
        poll = max(0.0, float(poll_interval))
        t0 = time.monotonic()
        deadline = t0 + max(0.0, float(timeout))
        session = self.new_session(template)

        while True:
            cancellation.check(cancel)
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break

            frame = source.get_next_frame(cancel=cancel, timeout=remaining)
            cancellation.check(cancel)
            if frame is None:
                # Closed or idle source: wait one poll interval.
                delay = min(poll, deadline - time.monotonic())
                if delay > 0:
                    cancellation.sleep(delay, cancel)
                continue

            if session.tick % refresh == 0 and (session.tick > 0 or session.last_center is not None):
                current = options.with_roi(None)
            elif session.last_center is not None:
                current = self._localized(options, template, session.last_center)
            else:
                current = options

            res = find_best(frame, template, current)
            if res is not None and (allow_near or res.hard_pass):
                if session.last_result is not None and self._close_to(session.last_result, res):
                    session.hits += 1
                else:
                    session.hits = 1
                session.last_result = res
                self._remember(session, res, persist=False)
                if session.hits >= required:
                    self._remember(session, res)
                    logger.info(
                        "stabilizer: %s found at %s score=%.3f scale=%.3f after %.0fms (%d poll(s))",
                        template.key,
                        res.center,
                        res.score,
                        res.scale,
                        (time.monotonic() - t0) * 1000.0,
                        session.tick + 1,
                    )
                    return res
            else:
                session.hits = 0
                session.last_result = None

            session.tick += 1
            delay = min(poll, deadline - time.monotonic())
            if delay > 0:
                cancellation.sleep(delay, cancel)

        logger.info(
            "stabilizer: %s not found within %.0fms (%d poll(s))",
            template.key,
            float(timeout) * 1000.0,
            session.tick,
        )
        return None


__all__ = ["SessionState", "MatchStabilizer"]
