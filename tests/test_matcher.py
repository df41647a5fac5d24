import cv2
import numpy as np
import pytest

from livematch.vision.matcher import find_best
from livematch.vision.models import MatchOptions, Rect, is_hard_pass
from livematch.vision.template import Template

from synth import embed, noise, smooth_noise, to_frame

EXACT = MatchOptions(threshold=0.9, blur_kernel_size=None)


@pytest.fixture
def scene():
    tpl = noise(30, 40, seed=11)
    frame = embed(noise(240, 320, seed=10), tpl, 123, 77)
    return frame, Template("tpl", tpl)


def test_exact_match_bounds_and_center(scene):
    frame, tpl = scene
    res = find_best(frame, tpl, EXACT)
    assert res is not None
    assert res.bounds == Rect(123, 77, 40, 30)
    assert res.center == (143, 92)
    assert res.score > 0.99
    assert res.scale == 1.0
    assert res.hard_pass


def test_accepts_bgra_frame(scene):
    frame, tpl = scene
    res = find_best(to_frame(frame), tpl, EXACT)
    assert res is not None
    assert res.bounds.x == 123 and res.bounds.y == 77


def test_default_blur_still_locates(scene):
    frame, tpl = scene
    res = find_best(frame, tpl, MatchOptions(threshold=0.8))
    assert res is not None
    assert res.center == (143, 92)


def test_color_matching(scene):
    frame, tpl = scene
    res = find_best(frame, tpl, EXACT.replace(use_grayscale=False))
    assert res is not None
    assert res.bounds.x == 123 and res.hard_pass


def test_scale_recovery():
    base = smooth_noise(60, 60, seed=3, cells=6)
    scaled = cv2.resize(base, (66, 66), interpolation=cv2.INTER_LINEAR)
    frame = embed(smooth_noise(300, 300, seed=4, cells=30), scaled, 140, 90)
    opts = MatchOptions(threshold=0.8, scale_min=0.9, scale_max=1.2, scale_step=0.05, blur_kernel_size=None)
    res = find_best(frame, Template("s", base), opts)
    assert res is not None
    assert abs(res.scale - 1.1) <= 0.05 + 1e-6
    assert abs(res.center[0] - (140 + 33)) <= 3
    assert abs(res.center[1] - (90 + 33)) <= 3
    assert res.hard_pass


def test_scale_sweep_is_inclusive_and_normalized():
    assert MatchOptions(scale_min=0.97, scale_max=1.03, scale_step=0.01).scales() == [
        0.97, 0.98, 0.99, 1.0, 1.01, 1.02, 1.03,
    ]
    assert MatchOptions(scale_min=1.2, scale_max=1.0, scale_step=0.1).scales() == [1.0, 1.1, 1.2]
    assert len(MatchOptions(scale_min=1.0, scale_max=1.02, scale_step=0).scales()) == 3


def test_threshold_symmetry():
    assert is_hard_pass(0.8, 0.8, True)
    assert not is_hard_pass(0.79, 0.8, True)
    assert is_hard_pass(0.2, 0.8, False)
    assert is_hard_pass(1 - 0.8, 0.8, False)
    assert not is_hard_pass(0.21, 0.8, False)


def test_lower_is_better_mode(scene):
    frame, tpl = scene
    opts = EXACT.replace(method=cv2.TM_SQDIFF_NORMED)
    res = find_best(frame, tpl, opts)
    assert res is not None
    assert res.bounds.x == 123 and res.bounds.y == 77
    assert res.score < 0.01
    assert res.hard_pass

    miss = find_best(noise(240, 320, seed=99), tpl, opts)
    assert miss is not None
    assert not miss.hard_pass


def test_roi_restricts_search_and_remaps(scene):
    frame, tpl = scene
    res = find_best(frame, tpl, EXACT.with_roi(Rect(100, 60, 120, 90)))
    assert res is not None
    assert res.bounds == Rect(123, 77, 40, 30)

    away = find_best(frame, tpl, EXACT.with_roi(Rect(0, 0, 100, 70)))
    assert away is not None
    assert not away.hard_pass
    assert away.bounds.right <= 100 and away.bounds.bottom <= 70


def test_roi_is_clamped_to_frame(scene):
    frame, tpl = scene
    res = find_best(frame, tpl, EXACT.with_roi(Rect(250, 180, 500, 500)))
    assert res is not None
    assert res.bounds.x >= 250 and res.bounds.y >= 180
    assert res.bounds.right <= 320 and res.bounds.bottom <= 240


def test_roi_outside_frame_is_not_found(scene):
    frame, tpl = scene
    assert find_best(frame, tpl, EXACT.with_roi(Rect(1000, 1000, 50, 50))) is None


def test_roi_smaller_than_template_is_not_found(scene):
    frame, tpl = scene
    assert find_best(frame, tpl, EXACT.with_roi(Rect(123, 77, 20, 20))) is None


def test_degenerate_inputs():
    tpl = Template("t", noise(20, 20))
    assert find_best(None, tpl) is None
    assert find_best(np.zeros((0, 0, 3), dtype=np.uint8), tpl) is None
    assert find_best(noise(10, 10), tpl) is None
    assert find_best(noise(50, 50), Template("e", np.zeros((0, 0, 3), dtype=np.uint8))) is None


def test_template_too_large_for_any_scale():
    tpl = Template("t", noise(40, 40))
    opts = MatchOptions(scale_min=1.0, scale_max=1.5, scale_step=0.25, blur_kernel_size=None)
    frame = noise(45, 45, seed=1)
    res = find_best(frame, tpl, opts)
    # Only scale 1.0 fits.
    assert res is not None
    assert res.scale == 1.0


def test_mask_is_applied(scene):
    frame, tpl = scene
    mask = np.ones((30, 40), dtype=np.uint8)
    opts = EXACT.replace(method=cv2.TM_SQDIFF, mask=mask)
    res = find_best(frame, tpl, opts)
    assert res is not None
    assert res.bounds.x == 123 and res.bounds.y == 77
    assert res.hard_pass
