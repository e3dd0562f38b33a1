"""Helpers for loading MindConfig override files."""

from __future__ import annotations

import json
from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, Tuple

from .base import parse_bool
from .session import MindConfig

CONFIG_FIELD = "overrides"


def _read_payload(path: Path) -> Tuple[Path, Dict[str, Any]]:
    resolved = Path(path).expanduser()
    if not resolved.exists():
        raise FileNotFoundError(f"Config file not found: {resolved}")

    with resolved.open("r", encoding="utf-8") as fh:
        payload = json.load(fh)

    overrides = payload.get(CONFIG_FIELD) if isinstance(payload, dict) else None
    if not isinstance(overrides, dict):
        raise ValueError(f"Config file {resolved} is missing '{CONFIG_FIELD}' dict")
    return resolved, payload


def _coerce(name: str, value: Any, default: Any) -> Any:
    if value is None:
        return None
    if isinstance(default, bool):
        try:
            return parse_bool(value)
        except ValueError as exc:
            raise ValueError(f"Override '{name}' expects a boolean, got {value!r}") from exc
    if isinstance(default, int) or (default is None and name == "seed"):
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Override '{name}' expects an integer, got {value!r}") from exc
    if isinstance(default, float):
        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Override '{name}' expects a number, got {value!r}") from exc
    return value


def apply_overrides(overrides: Dict[str, Any], base: MindConfig = None) -> MindConfig:
    """Return a copy of ``base`` with ``overrides`` applied, coerced to the field types.

    Raises:
        ValueError: on unknown keys or values that cannot be coerced.
    """

    base = base or MindConfig()
    defaults = {f.name: getattr(base, f.name) for f in fields(MindConfig)}
    unknown = sorted(set(overrides) - set(defaults))
    if unknown:
        raise ValueError(f"Unknown config keys: {', '.join(unknown)}")

    values = dict(defaults)
    for key, value in overrides.items():
        values[key] = _coerce(key, value, defaults[key])
    return MindConfig(**values)


def load_config(path: Path) -> MindConfig:
    """Load a JSON override file and return the resulting MindConfig.

    Raises:
        FileNotFoundError: if the file is missing.
        ValueError: if the payload does not contain the required fields.
    """

    _, payload = _read_payload(path)
    return apply_overrides(payload[CONFIG_FIELD])


def load_labeled_config(path: Path) -> Tuple[str, MindConfig]:
    """Return the config label and the resulting MindConfig."""

    resolved, payload = _read_payload(path)
    label = payload.get("label") or resolved.stem
    return label, apply_overrides(payload[CONFIG_FIELD])


__all__ = ["apply_overrides", "load_config", "load_labeled_config"]
