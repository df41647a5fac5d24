import numpy as np
import pytest

from livematch.vision.models import MatchOptions, PreprocessKey, normalize_blur_kernel
from livematch.vision.template import Template
from livematch.vision.template_cache import TemplatePreprocessCache

from synth import noise


def test_same_options_yield_identical_copies():
    cache = TemplatePreprocessCache()
    tpl = noise(20, 30, seed=3)
    opts = MatchOptions(blur_kernel_size=3)
    a = cache.get_or_create(tpl, opts)
    b = cache.get_or_create(tpl, opts)
    assert np.array_equal(a, b)
    assert a is not b
    assert len(cache) == 1


def test_returned_copy_does_not_touch_master():
    cache = TemplatePreprocessCache()
    tpl = noise(10, 10, seed=4)
    opts = MatchOptions(blur_kernel_size=None)
    first = cache.get_or_create(tpl, opts)
    expected = first.copy()
    first[:] = 0
    assert np.array_equal(cache.get_or_create(tpl, opts), expected)


def test_different_blur_is_a_separate_variant():
    cache = TemplatePreprocessCache()
    tpl = noise(24, 24, seed=5)
    sharp = cache.get_or_create(tpl, MatchOptions(blur_kernel_size=None))
    blurred = cache.get_or_create(tpl, MatchOptions(blur_kernel_size=5))
    assert not np.array_equal(sharp, blurred)
    assert np.array_equal(cache.get_or_create(tpl, MatchOptions(blur_kernel_size=None)), sharp)
    assert len(cache) == 2
    assert PreprocessKey(True, False, 5) in cache


def test_grayscale_and_edge_variants():
    cache = TemplatePreprocessCache()
    tpl = noise(16, 16, seed=6)
    color = cache.get_or_create(tpl, MatchOptions(use_grayscale=False, blur_kernel_size=None))
    gray = cache.get_or_create(tpl, MatchOptions(use_grayscale=True, blur_kernel_size=None))
    edge = cache.get_or_create(tpl, MatchOptions(use_edge=True, blur_kernel_size=None))
    assert color.shape == (16, 16, 3)
    assert gray.shape == (16, 16)
    assert edge.shape == (16, 16)
    assert set(np.unique(edge)).issubset({0, 255})


@pytest.mark.parametrize("size,expected", [(None, 0), (0, 0), (1, 0), (2, 3), (3, 3), (4, 5)])
def test_blur_kernel_normalization(size, expected):
    assert normalize_blur_kernel(size) == expected


def test_templates_do_not_share_variants():
    a = Template("a", noise(12, 12, seed=1))
    b = Template("b", noise(12, 12, seed=2))
    opts = MatchOptions()
    assert not np.array_equal(a.preprocessed(opts), b.preprocessed(opts))


def test_template_pixels_are_read_only():
    src = noise(8, 8)
    tpl = Template("t", src)
    src[:] = 0
    assert tpl.pixels.any()
    with pytest.raises(ValueError):
        tpl.pixels[0, 0, 0] = 1
    assert tpl.size == (8, 8)


def test_template_from_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        Template.from_file(tmp_path / "nope.png")
