"""Command line entry point.

Captures the screen with mss and runs one of the matching operations against
a template image:

    livematch find path/to/button.png
    livematch wait path/to/button.png --timeout 5
    livematch find-all path/to/slot.png --max-results 10

Exit status is 0 when something was found, 1 otherwise and 130 on Ctrl+C.
"""
from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from .capture.source import MssFrameSource
from .config.vision import PRESETS
from .controllers.vision import MatchController
from .core.cancellation import CancellationToken, MatchCancelled
from .core.config import ConfigManager
from .core.logging_setup import setup_logging
from .vision.models import Rect
from .vision.template import Template

logger = logging.getLogger("livematch")


def _parse_roi(text: Optional[str]) -> Optional[Rect]:
    if not text:
        return None
    try:
        x, y, w, h = (int(p.strip()) for p in text.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError(f"ROI must be x,y,width,height, got {text!r}") from None
    return Rect(x, y, w, h)


def _region(text: Optional[str]) -> Optional[dict]:
    roi = _parse_roi(text)
    if roi is None:
        return None
    return {"left": roi.x, "top": roi.y, "width": roi.width, "height": roi.height}


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="livematch", description="Live template matching on screen captures")
    ap.add_argument("--config", help="Path to config.ini (default: per-user config directory)")
    ap.add_argument("--log-level", help="Override log level (DEBUG, INFO, ...)")
    ap.add_argument("--monitor", type=int, default=1, help="mss monitor index (default 1 = primary)")
    ap.add_argument("--region", type=_region, help="Capture region left,top,width,height instead of a monitor")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("template", help="Template image path")
    common.add_argument("--preset", choices=sorted(PRESETS), help="Match preset (default from config)")
    common.add_argument("--threshold", type=float, help="Override the preset threshold")
    common.add_argument("--roi", type=_parse_roi, help="Search ROI x,y,width,height in capture coordinates")

    sub = ap.add_subparsers(dest="command", required=True)
    sub.add_parser("find", parents=[common], help="Single-shot best match")

    wait = sub.add_parser("wait", parents=[common], help="Wait until the template appears")
    wait.add_argument("--timeout", type=float, help="Seconds (default from config)")
    wait.add_argument("--interval", type=float, help="Poll interval seconds (default from config)")
    wait.add_argument("--allow-near", action="store_true", help="Accept sub-threshold matches")

    find_all = sub.add_parser("find-all", parents=[common], help="All separated matches")
    find_all.add_argument("--max-results", type=int, default=5)
    find_all.add_argument("--nms-overlap", type=float, default=0.3)
    return ap


def run(args: argparse.Namespace) -> int:
    config = ConfigManager(args.config)
    setup_logging(config, args.log_level)

    template = Template.from_file(args.template)
    with MssFrameSource(
        region=args.region,
        monitor=args.monitor,
        fps=config.get_float("capture_fps", 30.0),
        capacity=config.get_int("buffer_capacity", 30),
    ) as source:
        controller = MatchController(source, config=config)
        controller_opts = controller.resolve_options(args.preset)
        changes = {}
        if args.threshold is not None:
            changes["threshold"] = args.threshold
        if args.roi is not None:
            changes["roi"] = args.roi
        if changes:
            controller_opts = controller_opts.replace(**changes)

        if args.command == "find":
            result = controller.find_best_match(template, controller_opts, require_hard_pass=True)
            results = [result] if result is not None else []
        elif args.command == "wait":
            cancel = CancellationToken()
            try:
                result = controller.wait_for_match(
                    template,
                    args.timeout,
                    args.interval,
                    controller_opts,
                    allow_near=args.allow_near,
                    cancel=cancel,
                )
            except KeyboardInterrupt:
                cancel.cancel()
                raise
            results = [result] if result is not None else []
        else:
            results = controller.find_all_matches(
                template, controller_opts, max_results=args.max_results, nms_overlap=args.nms_overlap
            )

    for res in results:
        b = res.bounds
        print(
            f"center={res.center[0]},{res.center[1]} bounds={b.x},{b.y},{b.width},{b.height} "
            f"score={res.score:.3f} scale={res.scale:.3f} pass={res.hard_pass}"
        )
    if not results:
        print("not found")
    return 0 if results else 1


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return run(args)
    except (KeyboardInterrupt, MatchCancelled):
        logger.info("interrupted")
        return 130
    except FileNotFoundError as e:
        print(str(e), file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
