import cv2
import pytest

from livematch.vision.matcher import find_all
from livematch.vision.models import MatchOptions
from livematch.vision.template import Template

from synth import embed, noise

POSITIONS = [(10, 10), (100, 40), (200, 120)]
OPTS = MatchOptions(threshold=0.9, blur_kernel_size=None)


@pytest.fixture
def scene():
    patch = noise(20, 20, seed=21)
    frame = noise(200, 260, seed=20)
    for x, y in POSITIONS:
        frame = embed(frame, patch, x, y)
    return frame, Template("slot", patch)


def test_finds_every_copy(scene):
    frame, tpl = scene
    results = find_all(frame, tpl, OPTS, max_results=5)
    assert sorted((r.bounds.x, r.bounds.y) for r in results) == sorted(POSITIONS)
    assert all(r.hard_pass and r.scale == 1.0 for r in results)


def test_results_are_separated(scene):
    frame, tpl = scene
    overlap = 0.3
    results = find_all(frame, tpl, OPTS, max_results=5, nms_overlap=overlap)
    half_w = int(20 * (1 + overlap)) // 2
    half_h = int(20 * (1 + overlap)) // 2
    for i, a in enumerate(results):
        for b in results[i + 1 :]:
            dx = abs(a.bounds.x - b.bounds.x)
            dy = abs(a.bounds.y - b.bounds.y)
            assert dx > half_w or dy > half_h


def test_max_results_caps_output(scene):
    frame, tpl = scene
    results = find_all(frame, tpl, OPTS, max_results=2)
    assert len(results) == 2
    assert all((r.bounds.x, r.bounds.y) in POSITIONS for r in results)
    assert results[0].score >= results[1].score
    assert find_all(frame, tpl, OPTS, max_results=0) == []


def test_lower_is_better_mode(scene):
    frame, tpl = scene
    results = find_all(frame, tpl, OPTS.replace(method=cv2.TM_SQDIFF_NORMED))
    assert sorted((r.bounds.x, r.bounds.y) for r in results) == sorted(POSITIONS)


def test_roi_limits_matches(scene):
    from livematch.vision.models import Rect

    frame, tpl = scene
    results = find_all(frame, tpl, OPTS.with_roi(Rect(80, 20, 180, 180)))
    assert sorted((r.bounds.x, r.bounds.y) for r in results) == [(100, 40), (200, 120)]


def test_no_match_returns_empty():
    tpl = Template("x", noise(20, 20, seed=5))
    assert find_all(noise(120, 120, seed=6), tpl, OPTS) == []


def test_none_template_is_an_error():
    with pytest.raises(ValueError):
        find_all(noise(50, 50), None)
