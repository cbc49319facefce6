"""Small helpers over collections."""

from typing import Any, Iterable, Mapping


def get_unique_strings(items: Iterable[str]) -> list[str]:
    """Return the items without duplicates, keeping first occurrences in order."""
    return list(dict.fromkeys(items))


def extract_string_map(data: Mapping[str, Any] | None, key: str) -> dict | None:
    """Return data[key] if it is a mapping, otherwise None."""
    if data is None:
        return None
    value = data.get(key)
    if isinstance(value, dict):
        return value
    return None