"""Checked field decoding for status and health payloads.

Every accessor raises MalformedResponseError naming the offending field
instead of letting a KeyError or TypeError escape.
"""

from typing import Any, List, Mapping

from .exceptions import MalformedResponseError

_MISSING = object()


def require(data: Mapping[str, Any], field: str) -> Any:
    value = data.get(field, _MISSING)
    if value is _MISSING:
        raise MalformedResponseError(field)
    return value


def require_str(data: Mapping[str, Any], field: str) -> str:
    value = require(data, field)
    if not isinstance(value, str):
        raise MalformedResponseError(field, "a string", value)
    return value


def require_list(data: Mapping[str, Any], field: str) -> List[Any]:
    value = require(data, field)
    if not isinstance(value, list):
        raise MalformedResponseError(field, "a list", value)
    return value


def require_str_list(data: Mapping[str, Any], field: str) -> List[str]:
    items = require_list(data, field)
    for i, item in enumerate(items):
        if not isinstance(item, str):
            raise MalformedResponseError(f"{field}[{i}]", "a string", item)
    return items


def optional_str(data: Mapping[str, Any], field: str, default: str = "") -> str:
    """Absent or null -> default; present with another type -> error."""
    value = data.get(field)
    if value is None:
        return default
    if not isinstance(value, str):
        raise MalformedResponseError(field, "a string", value)
    return value


def optional_list(data: Mapping[str, Any], field: str) -> List[Any]:
    value = data.get(field)
    if value is None:
        return []
    if not isinstance(value, list):
        raise MalformedResponseError(field, "a list", value)
    return value


def optional_str_list(data: Mapping[str, Any], field: str) -> List[str]:
    items = optional_list(data, field)
    for i, item in enumerate(items):
        if not isinstance(item, str):
            raise MalformedResponseError(f"{field}[{i}]", "a string", item)
    return items


def optional_int(data: Mapping[str, Any], field: str, default: int = 0) -> int:
    value = data.get(field)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedResponseError(field, "an integer", value)
    return value


def as_mapping(value: Any, field: str) -> Mapping[str, Any]:
    if not isinstance(value, dict):
        raise MalformedResponseError(field, "an object", value)
    return value
