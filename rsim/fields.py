"""Raw-input field helpers shared by the schema and strategy loaders."""

from __future__ import annotations

from datetime import date
from typing import Any

from .dates import parse_iso_date


class SchemaError(ValueError):
    """Raised when raw JSON cannot be parsed into schema objects."""


def _expect_dict(value: Any, path: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise SchemaError(f"{path}: expected object")
    return value


def _expect_list(value: Any, path: str) -> list[Any]:
    if not isinstance(value, list):
        raise SchemaError(f"{path}: expected array")
    return value


def _require(data: dict[str, Any], key: str, path: str) -> Any:
    if key not in data:
        raise SchemaError(f"{path}.{key}: missing required field")
    return data[key]


def _optional(data: dict[str, Any], key: str, default: Any = None) -> Any:
    return data.get(key, default)


def _float(value: Any, path: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SchemaError(f"{path}: expected number")
    return float(value)


def _int(value: Any, path: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or int(value) != value:
        raise SchemaError(f"{path}: expected integer")
    return int(value)


def _bool(value: Any, path: str) -> bool:
    if not isinstance(value, bool):
        raise SchemaError(f"{path}: expected boolean")
    return value


def _str(value: Any, path: str) -> str:
    if not isinstance(value, str):
        raise SchemaError(f"{path}: expected string")
    return value


def _date(value: Any, path: str) -> date:
    parsed = parse_iso_date(_str(value, path))
    if parsed is None:
        raise SchemaError(f"{path}: expected ISO date (YYYY-MM-DD)")
    return parsed


def _optional_date(data: dict[str, Any], key: str, path: str) -> date | None:
    value = data.get(key)
    if value in (None, ""):
        return None
    return _date(value, f"{path}.{key}")


def _field(data: dict[str, Any], key: str, default: Any, path: str, convert) -> Any:
    """Return ``convert(data[key])`` when present, otherwise ``default``."""
    if key not in data or data[key] is None:
        return default
    return convert(data[key], f"{path}.{key}")
