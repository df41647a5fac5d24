"""core.config
Configuration core: load/save helpers for config.ini.

ConfigManager reads and persists the runtime knobs of the matching pipeline
(buffer size, capture rate, wait timing, locality). The API stays small:
load(), get(key, fallback), typed getters and save().
"""

import logging
import os
from configparser import ConfigParser
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULTS = {
    "log_level": "INFO",
    "buffer_capacity": "30",
    "capture_fps": "30",
    "wait_timeout_ms": "10000",
    "poll_interval_ms": "120",
    "global_refresh_ticks": "8",
    "local_roi_scale": "3.0",
    "match_preset": "universal",
    "save_miss_artifacts": "False",
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


class ConfigManager:
    """Simple configuration manager backed by an INI file.

    Behaviour:
    - Uses a single DEFAULT section for lookups.
    - Creates the file with defaults if it does not exist.
    - Defaults to a per-user config path (%APPDATA% on Windows,
      XDG_CONFIG_HOME or ~/.config on other systems) unless an explicit
      path is provided.
    """

    ENV_PREFIX = "LM_"

    def __init__(self, config_path: Optional[str] = None) -> None:
        if config_path:
            self.config_path = Path(config_path)
        else:
            if os.name == "nt":
                base = Path(os.getenv("APPDATA", Path.home() / "AppData" / "Roaming"))
                self.config_path = base.joinpath("LiveMatch", "config.ini")
            else:
                base = Path(os.getenv("XDG_CONFIG_HOME", Path.home() / ".config"))
                self.config_path = base.joinpath("livematch", "config.ini")

        self.config = ConfigParser()
        self.load()

    def load(self) -> None:
        """Load configuration from disk, filling in missing defaults."""
        existed = self.config_path.exists()
        if existed:
            self.config.read(self.config_path, encoding="utf-8")

        missing = [key for key in DEFAULTS if key not in self.config["DEFAULT"]]
        for key in missing:
            self.config["DEFAULT"][key] = DEFAULTS[key]

        if not existed or missing:
            self.save()

    def get(self, key: str, fallback=None):
        """Get a configuration value.

        Precedence is env (LM_KEY, KEY, key) > config.ini > fallback.
        """
        for ek in (f"{self.ENV_PREFIX}{str(key).upper()}", str(key).upper(), str(key)):
            val = os.environ.get(ek)
            if val is not None and str(val) != "":
                return val
        return self.config["DEFAULT"].get(key, fallback)

    def get_int(self, key: str, fallback: int = 0) -> int:
        raw = self.get(key)
        try:
            return int(float(raw))
        except (TypeError, ValueError):
            if raw is not None:
                logger.warning("config: %s=%r is not an integer, using %s", key, raw, fallback)
            return fallback

    def get_float(self, key: str, fallback: float = 0.0) -> float:
        raw = self.get(key)
        try:
            return float(raw)
        except (TypeError, ValueError):
            if raw is not None:
                logger.warning("config: %s=%r is not a number, using %s", key, raw, fallback)
            return fallback

    def get_bool(self, key: str, fallback: bool = False) -> bool:
        raw = self.get(key)
        if raw is None:
            return fallback
        text = str(raw).strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        return fallback

    def set(self, key: str, value) -> None:
        """Set a value in the DEFAULT section (call save() to persist)."""
        self.config["DEFAULT"][key] = str(value)

    def save(self) -> None:
        """Persist current configuration to disk (creates parent directories)."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with self.config_path.open("w", encoding="utf-8") as fh:
            self.config.write(fh)
