#!/usr/bin/env python3
"""
Dashboard configuration.

Precedence (lowest first): dataclass defaults, YAML file, MESHVIEW_* env
vars, explicit overrides (command-line flags).

Example YAML
------------
base_url: http://10.0.0.5:8000
timeout_s: 1.0
refresh_delay_s: 0.5
port: 8091
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

ENV_PREFIX = "MESHVIEW_"
MIN_INTERVAL_S = 0.05

_ENV_KEYS = {
    "BASE_URL": "base_url",
    "TIMEOUT": "timeout_s",
    "REFRESH_DELAY": "refresh_delay_s",
    "HOST": "host",
    "PORT": "port",
    "LOG_LEVEL": "log_level",
    "VALIDATE": "validate",
    "SCHEMAS": "schemas_dir",
}


@dataclass
class ViewerConfig:
    base_url: str = "http://127.0.0.1:8000"
    timeout_s: float = 1.0
    refresh_delay_s: float = 0.5
    host: str = "127.0.0.1"
    port: int = 8091
    log_level: str = "INFO"
    validate: bool = True
    schemas_dir: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _as_bool(v: Any) -> bool:
    if isinstance(v, bool):
        return v
    s = str(v).strip().lower()
    if s in {"1", "true", "yes", "on"}:
        return True
    if s in {"0", "false", "no", "off", ""}:
        return False
    raise ValueError(f"not a boolean: {v!r}")


def _coerce(name: str, value: Any) -> Any:
    if name in ("timeout_s", "refresh_delay_s"):
        return max(MIN_INTERVAL_S, float(value))
    if name == "port":
        return int(value)
    if name == "validate":
        return _as_bool(value)
    if name == "base_url":
        return str(value).rstrip("/")
    if name == "log_level":
        return str(value).upper()
    return None if value is None else str(value)


def load_config(
    path: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> ViewerConfig:
    env = os.environ if env is None else env
    known = {f.name for f in fields(ViewerConfig)}
    values: Dict[str, Any] = {}

    path = path or env.get(ENV_PREFIX + "CONFIG")
    if path:
        with Path(path).open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"{path}: expected a mapping at top level")
        values.update({k: v for k, v in raw.items() if k in known})

    for suffix, name in _ENV_KEYS.items():
        if ENV_PREFIX + suffix in env:
            values[name] = env[ENV_PREFIX + suffix]

    for name, value in (overrides or {}).items():
        if name in known and value is not None:
            values[name] = value

    return ViewerConfig(**{k: _coerce(k, v) for k, v in values.items()})
