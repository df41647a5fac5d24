"""
Template matching strategies: scale-space best match and multi-match with NMS.

This module provides pure functions that take a source image (BGR/BGRA
ndarray or a Frame) and a Template, and return MatchResult values in source
coordinates. The stabilizer and the controller compose these to implement
single-shot and polling flows.

"No match" is never an error here: empty inputs, an ROI outside the frame
and templates that do not fit at any scale all yield None (or []).
"""
from __future__ import annotations

import logging
import math
from typing import List, Optional, Tuple

import cv2
import numpy as np

from .models import MatchOptions, MatchResult, Rect
from .preprocess import bgra_to_bgr, preprocess, resize_mask, resize_tpl, to_gray
from .template import Template

logger = logging.getLogger(__name__)


def _source_pixels(source) -> Optional[np.ndarray]:
    """Accept a Frame (anything with ``to_bgr``) or a raw ndarray."""
    if source is None:
        return None
    to_bgr = getattr(source, "to_bgr", None)
    if callable(to_bgr):
        return to_bgr()
    return bgra_to_bgr(np.asarray(source))


def _crop_roi(img: np.ndarray, roi: Optional[Rect]) -> Tuple[Optional[np.ndarray], Tuple[int, int]]:
    """Crop ``img`` to the clamped ROI; returns (view, offset) or (None, ...) when empty."""
    if roi is None or roi.empty:
        return img, (0, 0)
    h, w = img.shape[:2]
    clamped = roi.clamp(w, h)
    if clamped is None:
        return None, (0, 0)
    view = img[clamped.y : clamped.bottom, clamped.x : clamped.right]
    return view, (clamped.x, clamped.y)


def _match_channels(view: np.ndarray, tpl: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Reduce the multi-channel side to grayscale when channel counts differ."""
    if view.ndim == tpl.ndim and (view.ndim == 2 or view.shape[2] == tpl.shape[2]):
        return view, tpl
    return to_gray(view), to_gray(tpl)


def _prepare(source, template: Template, options: MatchOptions):
    """ROI crop + preprocessing shared by find_best and find_all.

    Returns (view_p, templ_p, offset) or None when there is nothing to search.
    """
    if template is None or template.empty:
        return None
    img = _source_pixels(source)
    if img is None or img.size == 0:
        return None
    view, offset = _crop_roi(img, options.roi)
    if view is None or view.size == 0:
        logger.debug("matcher: roi %s outside source %dx%d", options.roi, img.shape[1], img.shape[0])
        return None
    view_p = preprocess(view, options.preprocess_key)
    templ_p = template.preprocessed(options)
    view_p, templ_p = _match_channels(view_p, templ_p)
    return view_p, templ_p, offset


def _correlate(view: np.ndarray, tpl: np.ndarray, options: MatchOptions) -> np.ndarray:
    mask = resize_mask(options.mask, tpl.shape)
    if mask is not None:
        return cv2.matchTemplate(view, tpl, options.method, mask=mask)
    return cv2.matchTemplate(view, tpl, options.method)


def _extremum(surface: np.ndarray, higher_is_better: bool) -> Tuple[float, Tuple[int, int]]:
    min_val, max_val, min_loc, max_loc = cv2.minMaxLoc(surface)
    if higher_is_better:
        return float(max_val), (int(max_loc[0]), int(max_loc[1]))
    return float(min_val), (int(min_loc[0]), int(min_loc[1]))


def _to_result(
    template: Template,
    loc: Tuple[int, int],
    offset: Tuple[int, int],
    score: float,
    scale: float,
    hard_pass: bool,
) -> MatchResult:
    tw, th = template.size
    w = int(round(tw * scale))
    h = int(round(th * scale))
    bounds = Rect(offset[0] + loc[0], offset[1] + loc[1], w, h)
    return MatchResult(bounds=bounds, center=bounds.center, score=float(score), scale=float(scale), hard_pass=hard_pass)


def find_best(
    source,
    template: Template,
    options: Optional[MatchOptions] = None,
) -> Optional[MatchResult]:
    """Return the best match across the options' scale sweep, or None.

    The template side comes from the template's preprocessing cache; the
    source side is preprocessed on every call. ``hard_pass`` reports whether
    the best score clears ``options.threshold`` in the mode's direction.
    """
    o = options or MatchOptions()
    prepared = _prepare(source, template, o)
    if prepared is None:
        return None
    view_p, templ_p, offset = prepared

    vh, vw = view_p.shape[:2]
    if templ_p.shape[0] > vh or templ_p.shape[1] > vw:
        logger.debug("matcher: template %s larger than view %dx%d", template.key, vw, vh)
        return None

    higher = o.higher_is_better
    best_score = -math.inf if higher else math.inf
    best_loc: Optional[Tuple[int, int]] = None
    best_scale = 1.0

    for s in o.scales():
        scaled = resize_tpl(templ_p, s)
        if scaled.shape[0] > vh or scaled.shape[1] > vw:
            continue
        surface = _correlate(view_p, scaled, o)
        score, loc = _extremum(surface, higher)
        if not math.isfinite(score):
            continue
        better = score > best_score if higher else score < best_score
        if better:
            best_score, best_loc, best_scale = score, loc, s

    if best_loc is None:
        return None

    hard_pass = o.passes(best_score)
    result = _to_result(template, best_loc, offset, best_score, best_scale, hard_pass)
    logger.debug(
        "matcher: %s best score=%.3f scale=%.3f at %s pass=%s roi=%s",
        template.key,
        best_score,
        best_scale,
        result.center,
        hard_pass,
        o.roi,
    )
    return result


def _worst_value(surface: np.ndarray, options: MatchOptions) -> float:
    if options.normalized:
        return 0.0 if options.higher_is_better else 1.0
    # Unnormalized surfaces are unbounded; fall back to the surface extreme.
    return float(surface.min()) if options.higher_is_better else float(surface.max())


def find_all(
    source,
    template: Template,
    options: Optional[MatchOptions] = None,
    max_results: int = 5,
    nms_overlap: float = 0.3,
) -> List[MatchResult]:
    """Extract up to ``max_results`` separated peaks from one correlation surface.

    Runs at scale 1.0. After each accepted peak a window of
    ``template_size * (1 + nms_overlap)`` centered on it is overwritten with
    the worst value so neither the peak nor its neighborhood is picked again.
    """
    if template is None:
        raise ValueError("find_all requires a template")
    o = options or MatchOptions()
    prepared = _prepare(source, template, o)
    if prepared is None:
        return []
    view_p, templ_p, offset = prepared
    th, tw = templ_p.shape[:2]
    if th > view_p.shape[0] or tw > view_p.shape[1]:
        return []

    work = _correlate(view_p, templ_p, o).copy()
    worst = _worst_value(work, o)
    sup_w = max(1, int(tw * (1.0 + max(0.0, nms_overlap))))
    sup_h = max(1, int(th * (1.0 + max(0.0, nms_overlap))))
    rows, cols = work.shape[:2]

    results: List[MatchResult] = []
    for _ in range(max(0, int(max_results))):
        score, loc = _extremum(work, o.higher_is_better)
        if not math.isfinite(score) or not o.passes(score):
            break
        results.append(_to_result(template, loc, offset, score, 1.0, True))

        x0 = max(0, loc[0] - sup_w // 2)
        y0 = max(0, loc[1] - sup_h // 2)
        x1 = min(cols, loc[0] + sup_w // 2 + 1)
        y1 = min(rows, loc[1] + sup_h // 2 + 1)
        work[y0:y1, x0:x1] = worst

    logger.debug("matcher: %s find_all -> %d result(s)", template.key, len(results))
    return results


__all__ = ["find_best", "find_all"]
