"""Helpers for dict keys and for sorting homogeneous lists."""

from __future__ import annotations

import math
from typing import Any, Callable, Hashable, Mapping


def get_map_keys(mapping: Mapping[Any, Any]) -> list[Any]:
    """The keys of ``mapping`` as a list."""
    return list(mapping)


def _kind(value: Any) -> str | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "str"
    return None


def _nan_first(value: Any) -> tuple[int, Any]:
    if isinstance(value, float) and math.isnan(value):
        return (0, 0)
    return (1, value)


def sort_values(values: list[Any] | bytearray) -> list[Any] | bytearray:
    """Sort a list of numbers or of strings in place and return it.

    Raises TypeError for other inputs or mixed element kinds.
    """
    if isinstance(values, bytearray):
        values[:] = bytes(sorted(values))
        return values
    if not isinstance(values, list):
        raise TypeError("sort must input list")
    kinds = {_kind(v) for v in values}
    if None in kinds or len(kinds) > 1:
        raise TypeError("sort list type unsupported")
    if kinds == {"number"}:
        values.sort(key=_nan_first)
    else:
        values.sort()
    return values


def sorted_items(mapping: Mapping[Any, Any]) -> list[tuple[Any, Any]]:
    """The items of ``mapping`` in key order."""
    keys = sort_values(list(mapping))
    return [(key, mapping[key]) for key in keys]


def map_sorted_range(mapping: Mapping[Any, Any], func: Callable[[Any, Any], Any]) -> None:
    """Call ``func(key, value)`` for each item in key order."""
    for key, value in sorted_items(mapping):
        func(key, value)


def map_diff(first: Mapping[Hashable, Any], second: Mapping[Hashable, Any]) -> list[Any]:
    """Keys of ``first`` that are not in ``second``."""
    return [key for key in first if key not in second]