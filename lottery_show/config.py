"""Default settings and the helpers that merge user overrides into them."""

from __future__ import annotations

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

CONFIG_ENV = "LOTTERY_SHOW_CONFIG"
HOME_DIR = Path.home() / ".lottery_show"

DEFAULTS = dict(
    layout=dict(rowCount=17, cardWidth=140, cardHeight=200, gapX=40, gapY=20,
                sphereRadius=800, winnersPerRow=5, winnerDepth=1000),
    timing=dict(frameIntervalMs=16, enterMs=1000, tableMs=1000, quitMs=1000,
                revealMs=1200, revealRotationMs=900, mergeMs=2000, flyInMs=1000,
                burstMs=500, convergeMs=1000, burstGroupDelayMs=40, sceneSettleMs=800,
                jitter=0.5),
    draw=dict(maxPerDraw=10, autoStopSeconds=0),
    ambient=dict(intervalMs=200, batch=4),
    camera=dict(cameraZ=3000, fovDeg=40, readyDegPerSec=9.0, runningDegPerSec=600.0),
    feed=dict(url="ws://127.0.0.1:8080/api/ws", reconnectMs=3000),
    appearance=dict(cardColor="#7fffd4", luckyColor="#ecb1ac", textColor="#ffffff",
                    background="#111111"),
)


def _coerce_float(value: object, default: float = 0.0) -> float:
    """Return ``value`` converted to ``float`` when possible."""

    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value))
    except (TypeError, ValueError):
        return default


def _coerce_int(value: object, default: int = 0) -> int:
    return int(_coerce_float(value, float(default)))


def merge_settings(base: Mapping[str, Any], payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a deep copy of ``base`` updated section by section with ``payload``."""

    state: Dict[str, Any] = copy.deepcopy(dict(base))
    for key, value in payload.items():
        if key not in state or not isinstance(state[key], dict) or not isinstance(value, Mapping):
            state[key] = copy.deepcopy(value)
            continue
        for sub_key, sub_value in value.items():
            if isinstance(state[key].get(sub_key), dict) and isinstance(sub_value, Mapping):
                state[key][sub_key].update(sub_value)
            else:
                state[key][sub_key] = sub_value
    return state


def load_settings(
    path: Optional[Path | str] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Build the effective settings.

    Parameters
    ----------
    path:
        JSON file merged over :data:`DEFAULTS`. When omitted the
        ``LOTTERY_SHOW_CONFIG`` environment variable is consulted, then
        ``~/.lottery_show/config.json``. A missing file is not an error.
    overrides:
        Values merged last, typically from the command line or tests.
    """

    if path is None:
        env_path = os.environ.get(CONFIG_ENV, "").strip()
        path = Path(env_path) if env_path else HOME_DIR / "config.json"
    settings = copy.deepcopy(DEFAULTS)
    config_path = Path(path)
    if config_path.is_file():
        try:
            payload = json.loads(config_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable settings file %s: %s", config_path, exc)
        else:
            if isinstance(payload, Mapping):
                settings = merge_settings(settings, payload)
    if overrides:
        settings = merge_settings(settings, overrides)
    return settings


def setting_float(settings: Mapping[str, Any], section: str, key: str) -> float:
    """Read ``section.key`` as a float, falling back on :data:`DEFAULTS`."""

    fallback = _coerce_float(DEFAULTS.get(section, {}).get(key), 0.0)
    block = settings.get(section, {})
    if not isinstance(block, Mapping):
        return fallback
    return _coerce_float(block.get(key), fallback)


def setting_int(settings: Mapping[str, Any], section: str, key: str) -> int:
    fallback = _coerce_int(DEFAULTS.get(section, {}).get(key), 0)
    block = settings.get(section, {})
    if not isinstance(block, Mapping):
        return fallback
    return _coerce_int(block.get(key), fallback)


def setting_str(settings: Mapping[str, Any], section: str, key: str) -> str:
    fallback = str(DEFAULTS.get(section, {}).get(key, ""))
    block = settings.get(section, {})
    if not isinstance(block, Mapping):
        return fallback
    value = block.get(key)
    return str(value) if value is not None else fallback


__all__ = [
    "CONFIG_ENV",
    "DEFAULTS",
    "HOME_DIR",
    "load_settings",
    "merge_settings",
    "setting_float",
    "setting_int",
    "setting_str",
]
