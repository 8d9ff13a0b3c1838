"""Per-module JSON configuration files.

Each feature cog owns one file, ``<config_dir>/<name>.json``. A missing file
is replaced with an example the operator is expected to fill in.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .errors import ConfigurationError

log = logging.getLogger("guildkit.module_config")


@dataclass(frozen=True)
class ValidationIssue:
    path: str
    message: str


def config_path(config_dir: str | Path, name: str) -> Path:
    return Path(config_dir) / f"{name}.json"


def load_module_config(config_dir: str | Path, name: str) -> dict[str, Any] | None:
    """Return the parsed config for ``name`` or None if the file doesn't exist."""
    path = config_path(config_dir, name)
    if not path.exists():
        return None
    try:
        doc = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Config file {path} is not valid JSON: {e}") from e
    if not isinstance(doc, dict):
        raise ConfigurationError(f"Config file {path} must contain a JSON object")
    return doc


def save_example_config(config_dir: str | Path, name: str, payload: dict[str, Any]) -> Path:
    path = config_path(config_dir, name)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    return path


def require_module_config(config_dir: str | Path, name: str, example: dict[str, Any]) -> dict[str, Any]:
    """Load a module config, writing ``example`` and failing if there is none."""
    doc = load_module_config(config_dir, name)
    if doc is not None:
        return doc

    path = save_example_config(config_dir, name, example)
    log.error(
        "No configuration found for %s. An example config created at %s, "
        "please replace needed values before starting the bot again",
        name,
        path,
    )
    raise ConfigurationError(f"No configuration file found for {name}. An example config created")


def raise_for_issues(name: str, issues: list[ValidationIssue]) -> None:
    if not issues:
        return
    details = "; ".join(f"{i.path}: {i.message}" for i in issues)
    raise ConfigurationError(f"Invalid {name} configuration: {details}")


def parse_snowflake(value: Any) -> int | None:
    """Discord ids are stored as strings in config files; accept ints too."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None
