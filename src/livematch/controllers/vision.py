"""Match orchestration for callers.

Responsibility:
- Resolve template keys through a TemplateStore, memoizing one Template
  (and therefore one preprocessing cache) per key.
- Pull frames from a FrameSource and run the pure matchers / stabilizer.
- Own the last-hit memory so repeated calls start near the previous hit.
- Structured logging: INFO for state transitions, DEBUG for scores/ROIs.
- Save lightweight debug artifacts on a miss when enabled in config, inside
  the active log session directory (see core.logging_setup).

The matching algorithms themselves remain pure functions in livematch.vision.
"""
from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import cv2

from ..capture.source import FrameSource
from ..config.vision import (
    ARTIFACT_MAX_DIM,
    FRAME_TIMEOUT,
    GLOBAL_REFRESH_TICKS,
    LOCAL_ROI_SCALE,
    MAX_RESULTS,
    NMS_OVERLAP,
    PERF_ENABLED,
    POLL_INTERVAL,
    WAIT_TIMEOUT,
    preset,
)
from ..core.cancellation import CancellationToken
from ..core.config import ConfigManager
from ..core.logging_setup import get_artifacts_dir
from ..core.state import HitMemory
from ..templates.store import TemplateStore
from ..vision.matcher import find_all
from ..vision.models import MatchOptions, MatchResult
from ..vision.stabilizer import MatchStabilizer
from ..vision.template import Template

logger = logging.getLogger(__name__)

TemplateRef = Union[str, Template]
OptionsRef = Union[None, str, MatchOptions]


class MatchController:
    """Upward-facing matching API over one frame source.

    ``template`` arguments accept a Template or a key resolved through
    ``store``. ``options`` accepts MatchOptions, a preset name or None for
    the configured default preset.
    """

    def __init__(
        self,
        source: FrameSource,
        store: Optional[TemplateStore] = None,
        config: Optional[ConfigManager] = None,
        hit_memory: Optional[HitMemory] = None,
        default_options: Optional[MatchOptions] = None,
    ) -> None:
        self.source = source
        self.store = store
        self.config = config
        self.hit_memory = hit_memory if hit_memory is not None else HitMemory()

        if config is not None:
            self.default_options = default_options or preset(config.get("match_preset"))
            self.wait_timeout = config.get_int("wait_timeout_ms", int(WAIT_TIMEOUT * 1000)) / 1000.0
            self.poll_interval = config.get_int("poll_interval_ms", int(POLL_INTERVAL * 1000)) / 1000.0
            self.global_refresh_ticks = config.get_int("global_refresh_ticks", GLOBAL_REFRESH_TICKS)
            local_roi_scale = config.get_float("local_roi_scale", LOCAL_ROI_SCALE)
            self.save_miss_artifacts = config.get_bool("save_miss_artifacts", False)
        else:
            self.default_options = default_options or preset("universal")
            self.wait_timeout = WAIT_TIMEOUT
            self.poll_interval = POLL_INTERVAL
            self.global_refresh_ticks = GLOBAL_REFRESH_TICKS
            local_roi_scale = LOCAL_ROI_SCALE
            self.save_miss_artifacts = False

        self.stabilizer = MatchStabilizer(hit_memory=self.hit_memory, local_roi_scale=local_roi_scale)
        self._templates: Dict[str, Template] = {}
        self._lock = threading.Lock()
        self._last_perf: dict = {}

    # --------------------------- resolution ---------------------------
    def resolve_template(self, template: TemplateRef) -> Template:
        """Template for ``template``; keys are loaded from the store once."""
        if isinstance(template, Template):
            return template
        if not isinstance(template, str):
            raise TypeError(f"template must be a key or a Template, got {type(template).__name__}")
        with self._lock:
            cached = self._templates.get(template)
        if cached is not None:
            return cached
        if self.store is None:
            raise ValueError(f"no template store configured to resolve {template!r}")
        loaded = Template(template, self.store.load_template(template))
        with self._lock:
            return self._templates.setdefault(template, loaded)

    def resolve_options(self, options: OptionsRef) -> MatchOptions:
        if options is None:
            return self.default_options
        if isinstance(options, str):
            return preset(options)
        return options

    def forget(self, key: str) -> None:
        """Drop the remembered hit for ``key`` so the next search is global."""
        self.hit_memory.remove(key)

    def _grab_frame(self):
        frame = self.source.get_last_frame()
        if frame is None:
            frame = self.source.get_next_frame(timeout=FRAME_TIMEOUT)
        return frame

    # --------------------------- public API ---------------------------
    def find_best_match(
        self,
        template: TemplateRef,
        options: OptionsRef = None,
        require_hard_pass: bool = False,
    ) -> Optional[MatchResult]:
        """Single-shot search on the latest frame.

        The result may be a sub-threshold best match (``hard_pass`` False)
        unless ``require_hard_pass`` is set, in which case only hard passes
        are returned. Sub-threshold results never move the remembered hit.
        """
        tpl = self.resolve_template(template)
        opts = self.resolve_options(options)
        t0 = time.perf_counter()
        frame = self._grab_frame()
        t1 = time.perf_counter()
        if frame is None:
            logger.info("vision: %s no frame available", tpl.key)
            self._record_perf(tpl, "no_frame", t0, grab_end=t1)
            return None

        result = self.stabilizer.find_once(frame, tpl, opts, require_hard_pass=False)
        t2 = time.perf_counter()
        passed = result is not None and result.hard_pass
        self._record_perf(tpl, "hit" if passed else "miss", t0, grab_end=t1, match_end=t2, result=result)

        if not passed:
            best = result.score if result is not None else float("nan")
            logger.info("vision: %s no match. best_score=%.3f roi=%s", tpl.key, best, opts.roi)
            self._save_miss_artifacts(frame, tpl)
            if require_hard_pass:
                return None
        return result

    def find_image_center(self, template: TemplateRef, options: OptionsRef = None) -> Optional[Tuple[int, int]]:
        """Center of a hard-pass match on the latest frame, or None."""
        result = self.find_best_match(template, options, require_hard_pass=True)
        return result.center if result is not None else None

    def wait_for_match(
        self,
        template: TemplateRef,
        timeout: Optional[float] = None,
        poll_interval: Optional[float] = None,
        options: OptionsRef = None,
        allow_near: bool = False,
        global_refresh_ticks: Optional[int] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> Optional[MatchResult]:
        """Poll frames until the template is stably found.

        Returns None when ``timeout`` (seconds) elapses. Raises MatchCancelled
        when ``cancel`` fires.
        """
        tpl = self.resolve_template(template)
        opts = self.resolve_options(options)
        timeout = self.wait_timeout if timeout is None else float(timeout)
        poll_interval = self.poll_interval if poll_interval is None else float(poll_interval)
        refresh = self.global_refresh_ticks if global_refresh_ticks is None else int(global_refresh_ticks)

        t0 = time.perf_counter()
        result = self.stabilizer.wait_for(
            self.source,
            tpl,
            opts,
            timeout,
            poll_interval,
            allow_near=allow_near,
            global_refresh_ticks=refresh,
            cancel=cancel,
        )
        self._record_perf(tpl, "hit" if result is not None else "timeout", t0, result=result)
        if result is None:
            last = self.source.get_last_frame()
            if last is not None:
                self._save_miss_artifacts(last, tpl)
        return result

    def wait_for_image_center(
        self,
        template: TemplateRef,
        timeout: Optional[float] = None,
        poll_interval: Optional[float] = None,
        options: OptionsRef = None,
        cancel: Optional[CancellationToken] = None,
    ) -> Optional[Tuple[int, int]]:
        result = self.wait_for_match(template, timeout, poll_interval, options, cancel=cancel)
        return result.center if result is not None else None

    def find_all_matches(
        self,
        template: TemplateRef,
        options: OptionsRef = None,
        max_results: int = MAX_RESULTS,
        nms_overlap: float = NMS_OVERLAP,
    ) -> List[MatchResult]:
        """Up to ``max_results`` separated matches on the latest frame."""
        tpl = self.resolve_template(template)
        opts = self.resolve_options(options)
        t0 = time.perf_counter()
        frame = self._grab_frame()
        t1 = time.perf_counter()
        if frame is None:
            logger.info("vision: %s no frame available", tpl.key)
            self._record_perf(tpl, "no_frame", t0, grab_end=t1)
            return []
        results = find_all(frame, tpl, opts, max_results=max_results, nms_overlap=nms_overlap)
        self._record_perf(tpl, "hit" if results else "miss", t0, grab_end=t1, match_end=time.perf_counter())
        logger.info("vision: %s find_all -> %d match(es)", tpl.key, len(results))
        return results

    def get_last_perf(self) -> dict:
        with self._lock:
            return dict(self._last_perf)

    # --------------------------- diagnostics ---------------------------
    def _record_perf(
        self,
        template: Template,
        phase: str,
        start: float,
        grab_end: Optional[float] = None,
        match_end: Optional[float] = None,
        result: Optional[MatchResult] = None,
    ) -> None:
        end = time.perf_counter()
        perf = {
            "template": template.key,
            "phase": phase,
            "total_ms": (end - start) * 1000.0,
        }
        if grab_end is not None:
            perf["grab_ms"] = (grab_end - start) * 1000.0
            if match_end is not None:
                perf["match_ms"] = (match_end - grab_end) * 1000.0
        if result is not None:
            perf["score"] = result.score
            perf["scale"] = result.scale
        with self._lock:
            self._last_perf = perf
        if PERF_ENABLED:
            logger.info("vision: perf %s", perf)

    def _save_miss_artifacts(self, frame, template: Template) -> None:
        """Downscaled last frame and the template, for support bundles."""
        if not self.save_miss_artifacts or self.config is None:
            return
        try:
            art_dir = get_artifacts_dir(self.config)
            bgr = frame.to_bgr() if hasattr(frame, "to_bgr") else frame
            h, w = bgr.shape[:2]
            scale = ARTIFACT_MAX_DIM / max(1, max(h, w))
            if scale < 1.0:
                bgr = cv2.resize(bgr, (int(w * scale), int(h * scale)), interpolation=cv2.INTER_AREA)
            name = template.key.replace("/", "_")
            cv2.imwrite(str(Path(art_dir) / f"miss_{name}_screen.png"), bgr)
            cv2.imwrite(str(Path(art_dir) / f"miss_{name}_template.png"), template.pixels)
        except (OSError, cv2.error):
            logger.warning("vision: could not save miss artifacts for %s", template.key, exc_info=True)


__all__ = ["MatchController"]
