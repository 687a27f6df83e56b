"""YAML and conf.d file sources for Pydantic Settings.

These sources are intended for local/dev convenience. Environment
variables always take precedence.

Directory structure:
    conf/
    ├── db.yaml         # Database config
    ├── db.d/           # Database overrides (merged in name order)
    ├── logging.yaml    # Logging config
    └── nestedset.yaml  # Tree engine config

Environment variables to override config directories:
    DB_CONFIG_DIR, LOGGING_CONFIG_DIR, NESTEDSET_CONFIG_DIR
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import yaml


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML mapping, returning {} when the file is absent."""
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    return data if isinstance(data, dict) else {}


def _load_conf_d(dir_path: Path) -> dict[str, Any]:
    """Load and merge all YAML/JSON files from a conf.d directory."""
    if not dir_path.exists():
        return {}

    merged: dict[str, Any] = {}
    files = sorted(p for p in dir_path.iterdir() if p.suffix in {".yml", ".yaml", ".json"})

    for p in files:
        if p.suffix in {".yml", ".yaml"}:
            part = _load_yaml(p)
        else:
            part = json.loads(p.read_text(encoding="utf-8"))

        if isinstance(part, dict):
            merged.update(part)

    return merged


def _domain_source(name: str, env_var: str) -> dict[str, Any]:
    base = Path(os.getenv(env_var, "conf"))
    return {**_load_yaml(base / f"{name}.yaml"), **_load_conf_d(base / f"{name}.d")}


def db_source() -> dict[str, Any]:
    """Load database settings from YAML files."""
    return _domain_source("db", "DB_CONFIG_DIR")


def logging_source() -> dict[str, Any]:
    """Load logging settings from YAML files."""
    return _domain_source("logging", "LOGGING_CONFIG_DIR")


def nestedset_source() -> dict[str, Any]:
    """Load tree engine settings from YAML files."""
    return _domain_source("nestedset", "NESTEDSET_CONFIG_DIR")
