import json
import logging
import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

load_dotenv()

# User config - loaded from ~/.graphdeck/config.json (primary)
# or project-root config.json (fallback).
CONFIG_PATH = Path.home() / ".graphdeck" / "config.json"
_LOCAL_CONFIG_PATH = Path(__file__).resolve().parent / "config.json"
_user_config: dict = {}


def _load_config() -> dict:
    # Project-local config.json as base, user home config overlaid on top
    merged: dict = {}
    for path in (_LOCAL_CONFIG_PATH, CONFIG_PATH):
        if path is not None and path.exists():
            try:
                with open(path, "r", encoding="utf-8") as f:
                    merged.update(json.load(f))
            except (json.JSONDecodeError, OSError) as e:
                logging.getLogger("graphdeck").warning(f"Ignoring unreadable config {path}: {e}")
    return merged


def get(key: str, default=None):
    """Get a config value by dot-separated key. E.g. get('history.capacity', 25)"""
    keys = key.split(".")
    val = _user_config
    for k in keys:
        if isinstance(val, dict):
            val = val.get(k)
        else:
            return default
    return val if val is not None else default


_user_config = _load_config()


# ---- Data directory -----------------------------------------------------------
# Base directory for logs. Graph configurations are never written to disk.
# Priority: GRAPHDECK_DIR env var > "data_dir" config key > ~/.graphdeck

_data_dir: Optional[Path] = None


def get_data_dir() -> Path:
    """Return the resolved base data directory.

    Resolution order:
    1. ``GRAPHDECK_DIR`` environment variable (highest - useful for CI/Docker)
    2. ``"data_dir"`` key in config.json
    3. ``~/.graphdeck`` (default)
    """
    global _data_dir
    if _data_dir is not None:
        return _data_dir
    env_val = os.environ.get("GRAPHDECK_DIR")
    if env_val:
        _data_dir = Path(env_val).expanduser().resolve()
    else:
        configured = get("data_dir")
        if configured:
            _data_dir = Path(configured).expanduser().resolve()
        else:
            _data_dir = Path.home() / ".graphdeck"
    return _data_dir


def _reset_data_dir() -> None:
    """Reset the cached data directory (for testing only)."""
    global _data_dir
    _data_dir = None


# ---- Session tunables ---------------------------------------------------------
HISTORY_CAPACITY = get("history.capacity", 25)              # undo entries kept per graph
HISTORY_QUIET_PERIOD_MS = get("history.quiet_period_ms", 300)
RENDER_QUIET_PERIOD_MS = get("render.quiet_period_ms", 300)
SLIDER_STEPS = get("filters.slider_steps", 200)             # slider resolution across [min, max]
LINE_SAMPLES = get("overlays.line_samples", 101)            # equation lines: 100 equal steps
GRID_SIZE = get("overlays.grid_size", 30)                   # surfaces: GRID_SIZE x GRID_SIZE nodes
