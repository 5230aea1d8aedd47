"""Centralised settings for the ntpquery toolkit."""
from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, Iterable, Optional

import yaml

BASE_DIR = Path(__file__).resolve().parents[1]
LOG_DIR = BASE_DIR / "logs"
LOG_FILE = LOG_DIR / "ntpquery.log"
CONFIG_FILE = BASE_DIR / "config.yaml"

DEFAULT_HOST = "pool.ntp.org"
DEFAULT_PORT = 123
DEFAULT_TIMEOUT_S = 15.0
DEFAULT_MAX_OFFSET_MS = 1000.0

_ENV_OVERRIDES = (
    ("NTP_HOST", "host", str),
    ("NTP_PORT", "port", int),
    ("NTP_TIMEOUT_S", "timeout_s", float),
    ("NTP_MAX_OFFSET_MS", "max_offset_ms", float),
)


def _ensure_directories(paths: Iterable[Path]) -> None:
    for path in paths:
        path.mkdir(parents=True, exist_ok=True)


def setup_logging(level: int = logging.INFO) -> None:
    """Configure a rotating file logger plus console echo."""
    _ensure_directories((LOG_DIR,))

    handler = RotatingFileHandler(
        LOG_FILE,
        maxBytes=1_000_000,
        backupCount=3,
        encoding="utf-8",
    )
    console_handler = logging.StreamHandler()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        handlers=[handler, console_handler],
        force=True,
    )


def load_ntp_config(path: Optional[Path] = None) -> Dict[str, object]:
    """Load NTP client settings from config.yaml and the environment, falling back to defaults."""
    cfg_path = Path(path) if path is not None else CONFIG_FILE
    data: Dict[str, object] = {}
    if cfg_path.exists():
        with cfg_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    ntp_cfg = data.get("ntp") or {}

    resolved: Dict[str, object] = {
        "host": str(ntp_cfg.get("host", DEFAULT_HOST)),
        "port": int(ntp_cfg.get("port", DEFAULT_PORT)),
        "timeout_s": float(ntp_cfg.get("timeout_s", DEFAULT_TIMEOUT_S)),
        "max_offset_ms": float(ntp_cfg.get("max_offset_ms", DEFAULT_MAX_OFFSET_MS)),
    }
    for env_name, key, cast in _ENV_OVERRIDES:
        raw = os.getenv(env_name)
        if raw:
            resolved[key] = cast(raw)
    return resolved


__all__ = [
    "BASE_DIR",
    "LOG_DIR",
    "LOG_FILE",
    "CONFIG_FILE",
    "DEFAULT_HOST",
    "DEFAULT_PORT",
    "DEFAULT_TIMEOUT_S",
    "DEFAULT_MAX_OFFSET_MS",
    "setup_logging",
    "load_ntp_config",
]
