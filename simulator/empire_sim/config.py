"""Runtime settings, loaded once from JSON and environment overrides.

Lookup order (later wins):
  1. built-in defaults (the game constants)
  2. JSON file at ``$EMPIRE_SIM_CONFIG`` (if set)
  3. ``EMPIRE_SIM_<FIELD>`` environment variables
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Optional

from .constants import BOTS_PER_GAME, TOTAL_ROUNDS, TURNS_PER_ROUND

logger = logging.getLogger(__name__)

_BASE_DIR = Path(__file__).resolve().parent
_ENV_PATH = "EMPIRE_SIM_CONFIG"
_ENV_PREFIX = "EMPIRE_SIM_"


@dataclass(frozen=True)
class SimConfig:
    total_rounds: int = TOTAL_ROUNDS
    turns_per_round: int = TURNS_PER_ROUND
    bots_per_game: int = BOTS_PER_GAME
    # Anti gang-up limiter: max bot attacks on the player per bot phase
    max_bot_attacks_on_player: int = 3
    log_level: str = "INFO"
    run_store_dir: str = str(_BASE_DIR.parent.parent / "data" / "runs")

    def with_overrides(self, values: dict[str, Any]) -> SimConfig:
        known = {f.name for f in fields(self)}
        clean = {}
        for key, value in values.items():
            if key not in known:
                logger.warning("Ignoring unknown config key %r", key)
                continue
            default = getattr(self, key)
            clean[key] = type(default)(value)
        return replace(self, **clean)


def _load_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a JSON object: {path}")
    return data


def _env_overrides() -> dict[str, Any]:
    out = {}
    for f in fields(SimConfig):
        raw = os.environ.get(_ENV_PREFIX + f.name.upper())
        if raw is not None:
            out[f.name] = raw
    return out


def load_config(path: Optional[Path] = None) -> SimConfig:
    """Build a config from defaults, an optional JSON file and the environment."""
    cfg = SimConfig()
    if path is None and os.environ.get(_ENV_PATH):
        path = Path(os.environ[_ENV_PATH])
    if path is not None:
        cfg = cfg.with_overrides(_load_file(path))
    return cfg.with_overrides(_env_overrides())


_CONFIG: Optional[SimConfig] = None


def get_config() -> SimConfig:
    global _CONFIG
    if _CONFIG is None:
        _CONFIG = load_config()
    return _CONFIG


def reset_config() -> None:
    global _CONFIG
    _CONFIG = None
