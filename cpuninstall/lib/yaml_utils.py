"""
YAML loading utilities for uninstall plans.
"""

from pathlib import Path
from typing import Any, Dict

import yaml

from cpuninstall.lib.exceptions import PlanError


def load_yaml_text(text: str, source: str = "<string>") -> Dict[str, Any]:
    """Parse YAML text into a mapping."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise PlanError(f"Invalid YAML in {source}: {e}", plan_source=source) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise PlanError(
            f"Expected a mapping at the top of {source}, got {type(data).__name__}",
            plan_source=source
        )
    return data


def load_yaml_file(file_path: Path) -> Dict[str, Any]:
    """Load YAML file safely."""
    try:
        text = file_path.read_text(encoding="utf-8")
    except OSError as e:
        raise PlanError(f"Cannot read {file_path}: {e}", plan_source=str(file_path)) from e
    return load_yaml_text(text, source=str(file_path))

