"""Helpers for list-valued settings.

Lists may be stored either as YAML sequences or as newline-separated strings
(the format the console and older configs use); both read the same way.
"""

from __future__ import annotations

import re
from typing import Any, Iterable

SNOWFLAKE_PATTERN = re.compile(r"^\d{17,19}$")


def get_newline_list(value: Any) -> list[str]:
    """Return the non-empty, stripped entries of a list or newline string."""
    if value is None:
        return []
    if isinstance(value, str):
        items: Iterable[Any] = value.splitlines()
    elif isinstance(value, (list, tuple, set)):
        items = value
    else:
        items = [value]
    return [str(item).strip() for item in items if str(item).strip()]


def get_user_id_list(value: Any) -> list[str]:
    """Like ``get_newline_list`` but keeps only valid user IDs."""
    return [item for item in get_newline_list(value) if SNOWFLAKE_PATTERN.match(item)]


def dedupe(values: Iterable[str]) -> list[str]:
    """Drop duplicates while keeping first-seen order."""
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result
