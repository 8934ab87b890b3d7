"""Configuration loaders for supervision policy files.

Policy files are YAML documents layered over the built-in defaults, so an
operator only has to state what differs:

    version: "2025-03"
    event_weights:
      stalledProgress: 10
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml  # type: ignore

from overseer.observability.logging import get_logger
from overseer.paths import get_repo_root

logger = get_logger("config.loaders")

__all__ = [
    "load_yaml",
    "deep_merge",
    "load_policy_file",
]


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file.

    Raises:
        FileNotFoundError: If file doesn't exist
        yaml.YAMLError: If YAML parsing fails
    """
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        content = yaml.safe_load(f)
        return content if content else {}


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge override dict into base dict.

    For nested dicts, recursively merges. For other types, override wins.
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_policy_file(policy_file: str | Path, base: dict[str, Any] | None = None) -> dict[str, Any]:
    """Load a policy YAML file and merge it over ``base``.

    Relative paths are resolved against the repository root.
    """
    path = Path(policy_file)
    if not path.is_absolute():
        path = get_repo_root() / path
    override = load_yaml(path)
    if not isinstance(override, dict):
        raise ValueError(f"Policy file {path} must contain a mapping")
    logger.info("policy_file_loaded", path=str(path), keys=sorted(override))
    return deep_merge(base or {}, override)
