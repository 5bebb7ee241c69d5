"""Raw input sources: --set flags and values files."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any

import yaml

from pmp.errors import ValidationError


def parse_assignments(assignments: Iterable[str]) -> dict[str, Any]:
    """Parse ``key=value`` pairs from repeated --set flags.

    Values stay strings; the collector coerces them per field kind.
    Repeating a key for the same name builds a list (for multi-select).
    """
    values: dict[str, Any] = {}
    for assignment in assignments:
        key, sep, value = assignment.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ValidationError(assignment, "expected key=value")
        if key in values:
            existing = values[key]
            if isinstance(existing, list):
                existing.append(value)
            else:
                values[key] = [existing, value]
        else:
            values[key] = value
    return values


def load_values_file(path: Path) -> dict[str, Any]:
    """Load raw input values from a YAML (or JSON) mapping file."""
    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValidationError(str(path), f"invalid YAML: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError(str(path), "values file must contain a mapping")
    return {str(key): value for key, value in data.items()}
