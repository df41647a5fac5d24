import logging

import pytest

from livematch.main import build_parser, main
from livematch.vision.models import Rect


def test_parse_find_with_roi():
    args = build_parser().parse_args(["find", "button.png", "--roi", "1,2,3,4", "--preset", "ui"])
    assert args.command == "find"
    assert args.roi == Rect(1, 2, 3, 4)
    assert args.preset == "ui"


def test_parse_wait_with_region():
    args = build_parser().parse_args(["--region", "0,0,640,480", "wait", "t.png", "--timeout", "2", "--allow-near"])
    assert args.region == {"left": 0, "top": 0, "width": 640, "height": 480}
    assert args.timeout == 2.0
    assert args.allow_near


def test_parse_find_all_defaults():
    args = build_parser().parse_args(["find-all", "slot.png"])
    assert args.max_results == 5
    assert args.nms_overlap == 0.3


def test_bad_roi_is_rejected():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["find", "t.png", "--roi", "1,2"])


def test_missing_template_file(tmp_path, monkeypatch):
    monkeypatch.setenv("LM_LOG_SESSION_DIR", "")
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        code = main(["--config", str(tmp_path / "config.ini"), "find", str(tmp_path / "missing.png")])
    finally:
        for h in root.handlers[:]:
            root.removeHandler(h)
            h.close()
        for h in saved_handlers:
            root.addHandler(h)
        root.setLevel(saved_level)
    assert code == 2
