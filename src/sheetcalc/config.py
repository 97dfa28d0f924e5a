"""Engine configuration loaded from ``sheetcalc.yaml``."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

CONFIG_FILENAME = "sheetcalc.yaml"

DEFAULT_CONFIG = {
    "chunk_size": 500,
    "recalc_timeout_seconds": 30.0,
    "worker_backend": "thread",  # thread | process
    "history_limit": 100,
    "logging_dir": None,
    "logging_fsync": False,
}

WORKER_BACKENDS = ("thread", "process")


def _flatten_logging_block(user_config: dict[str, Any]) -> dict[str, Any]:
    """Flatten a nested ``logging:`` block into flat config keys.

    Supports::

        logging:
          dir: .sheetcalc/logs
          fsync: true

    Maps to ``logging_dir`` and ``logging_fsync``.
    """
    block = user_config.pop("logging", None)
    if not isinstance(block, dict):
        return user_config
    mapping = {"dir": "logging_dir", "fsync": "logging_fsync"}
    for short_key, flat_key in mapping.items():
        if short_key in block:
            user_config[flat_key] = block[short_key]
    return user_config


def _validated(config: dict[str, Any]) -> dict[str, Any]:
    """Replace out-of-range values with their defaults."""
    out = dict(config)

    def positive(key: str, kind: type) -> None:
        value = out.get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            out[key] = DEFAULT_CONFIG[key]
        else:
            out[key] = kind(value)

    positive("chunk_size", int)
    positive("recalc_timeout_seconds", float)
    positive("history_limit", int)
    if out.get("worker_backend") not in WORKER_BACKENDS:
        out["worker_backend"] = DEFAULT_CONFIG["worker_backend"]
    if not isinstance(out.get("logging_fsync"), bool):
        out["logging_fsync"] = DEFAULT_CONFIG["logging_fsync"]
    if out.get("logging_dir") is not None:
        out["logging_dir"] = str(out["logging_dir"])
    return out


def load_config(path: Path | str | None = None) -> dict[str, Any]:
    """Load configuration, with defaults.

    Args:
        path: A YAML file, or a directory containing ``sheetcalc.yaml``.
            None returns the defaults.

    Returns:
        Merged configuration dict.  Unknown keys are kept; invalid values
        fall back to their defaults.
    """
    config = dict(DEFAULT_CONFIG)
    if path is None:
        return config
    config_path = Path(path)
    if config_path.is_dir():
        config_path = config_path / CONFIG_FILENAME
    if config_path.exists():
        user_config = yaml.safe_load(config_path.read_text()) or {}
        if isinstance(user_config, dict):
            config.update(_flatten_logging_block(user_config))
    return _validated(config)


def configure_logging(config: dict[str, Any]) -> None:
    """Point the event sink at ``logging_dir`` (or disable it when unset)."""
    from sheetcalc.logging import set_log_dir

    set_log_dir(config.get("logging_dir"), fsync=bool(config.get("logging_fsync", False)))
