"""Logging setup utilities for livematch.

Provides a single setup function to configure application-wide logging with:
- Session-based file handler under the per-user config directory
- Console handler for quick inspection during development
- Configurable log level via config.ini (DEFAULT.log_level)
- Automatic retention of the last 3 sessions

Usage:
    from .core.logging_setup import setup_logging
    setup_logging(config_manager)

This will create logs/session-YYYYmmdd_HHMMSS/livematch.log next to config.ini.
"""
from __future__ import annotations

import logging
import os
import platform
import shutil
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

SESSION_ENV = "LM_LOG_SESSION_DIR"

_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
    "NOTSET": logging.NOTSET,
}


def _level_from_str(value: Optional[str]) -> int:
    if not value:
        return logging.INFO
    return _LEVELS.get(str(value).strip().upper(), logging.INFO)


def get_log_dir(config_manager) -> Path:
    """Return the logs/ directory next to config.ini."""
    log_dir = Path(getattr(config_manager, "config_path")).parent / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def get_artifacts_dir(config_manager, name: str = "artifacts") -> Path:
    """Return directory path for debug artifacts (miss snapshots).

    If a session directory is active (LM_LOG_SESSION_DIR), artifacts are
    stored under it so one session folder holds everything.
    """
    session_env = os.environ.get(SESSION_ENV, "").strip()
    if session_env:
        out_dir = Path(session_env) / name
    else:
        out_dir = Path(getattr(config_manager, "config_path")).parent / name
    out_dir.mkdir(parents=True, exist_ok=True)
    return out_dir


def get_session_dir(config_manager) -> Path:
    """Create and return a new session directory under logs/."""
    ts = datetime.now().strftime("session-%Y%m%d_%H%M%S")
    session = get_log_dir(config_manager) / ts
    session.mkdir(parents=True, exist_ok=True)
    return session


def prune_old_sessions(log_dir: Path, keep: int = 3) -> None:
    """Keep only the most recent ``keep`` session directories inside log_dir."""
    try:
        entries = [p for p in log_dir.iterdir() if p.is_dir() and p.name.startswith("session-")]
    except OSError:
        logging.getLogger(__name__).warning("logging: cannot list %s for pruning", log_dir)
        return
    entries.sort(key=lambda p: p.stat().st_mtime, reverse=True)
    for old in entries[keep:]:
        shutil.rmtree(old, ignore_errors=True)


def _write_session_info(session_dir: Path, config_manager) -> None:
    """session_info.txt with system details and the active matching settings."""
    lines = [
        "LIVEMATCH SESSION INFORMATION",
        "=" * 50,
        "",
        f"Session Started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"Session Directory: {session_dir.name}",
        "",
        "SYSTEM INFORMATION:",
        "-" * 20,
        f"Operating System: {platform.system()} {platform.release()}",
        f"Platform: {platform.platform()}",
        f"Python Version: {sys.version}",
        "",
        "CONFIGURATION:",
        "-" * 14,
        f"Config File: {getattr(config_manager, 'config_path', 'Unknown')}",
    ]
    for setting in (
        "log_level",
        "buffer_capacity",
        "capture_fps",
        "wait_timeout_ms",
        "poll_interval_ms",
        "global_refresh_ticks",
        "local_roi_scale",
        "match_preset",
        "save_miss_artifacts",
    ):
        lines.append(f"{setting}: {config_manager.get(setting)}")
    try:
        (session_dir / "session_info.txt").write_text("\n".join(lines) + "\n", encoding="utf-8")
    except OSError:
        logging.getLogger(__name__).warning("logging: could not write session_info.txt in %s", session_dir)


def setup_logging(config_manager, level: Optional[str | int] = None) -> Path:
    """Configure root logger with a session-based file and console handler.

    Returns the created session directory Path.

    - File: logs/session-YYYYmmdd_HHMMSS/livematch.log (keep last 3 sessions)
    - Console: INFO+ by default
    - Level: from parameter if provided, else DEFAULT.log_level in config, else INFO
    """
    if isinstance(level, str):
        lvl = _level_from_str(level)
    elif isinstance(level, int):
        lvl = level
    else:
        lvl = _level_from_str(config_manager.get("log_level"))

    root = logging.getLogger()
    root.setLevel(lvl)
    for h in root.handlers[:]:
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    log_dir = get_log_dir(config_manager)
    session_dir = get_session_dir(config_manager)
    os.environ[SESSION_ENV] = str(session_dir)

    file_path = session_dir / "livematch.log"
    fh = logging.FileHandler(file_path, encoding="utf-8", delay=True)
    fh.setLevel(lvl)
    fh.setFormatter(fmt)
    root.addHandler(fh)
    prune_old_sessions(log_dir, keep=3)
    _write_session_info(session_dir, config_manager)

    ch = logging.StreamHandler()
    ch.setLevel(logging.INFO if lvl < logging.INFO else lvl)
    ch.setFormatter(fmt)
    root.addHandler(ch)

    # Quiet down noisy libraries unless in DEBUG
    if lvl > logging.DEBUG:
        logging.getLogger("cv2").setLevel(logging.WARNING)

    root.info("Logging initialized: level=%s, file=%s", logging.getLevelName(lvl), str(file_path))
    return session_dir
