"""Helpers for notification templates."""

from __future__ import annotations

from collections.abc import Mapping, Sequence, Set
from typing import Any


def last(index: int, value: Any) -> bool:
    """Whether index is the last position in a sized collection or string."""
    if isinstance(value, (str, bytes, Sequence, Mapping, Set)):
        return index == len(value) - 1
    raise TypeError(f"unsupported type: {type(value).__name__}")