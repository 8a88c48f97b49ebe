"""Layered merging of gateway send options.

Send options are resolved from several layers (global defaults, stored
record values, per-call overrides). Later layers take precedence and nested
mappings are merged recursively rather than replaced.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping

__all__ = ["is_truthy_option", "merge_options"]


def merge_options(*layers: Mapping[str, object] | None) -> dict[str, object]:
    """Merge option layers with left-to-right precedence.

    Args:
        *layers: Option mappings; ``None`` layers are skipped

    Returns:
        New merged dictionary; inputs are never modified

    Examples:
        >>> merge_options({"priority": "normal", "retries": 5}, {"priority": "high"})
        {'priority': 'high', 'retries': 5}
        >>> merge_options({"headers": {"a": 1}}, None, {"headers": {"b": 2}})
        {'headers': {'a': 1, 'b': 2}}
    """
    result: dict[str, object] = {}
    for layer in layers:
        if layer:
            _deep_merge(result, layer)
    return result


def _deep_merge(target: dict[str, object], source: Mapping[str, object]) -> None:
    for key, value in source.items():
        current = target.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            _deep_merge(current, value)  # pyright: ignore[reportUnknownArgumentType]  # nested option mapping
        elif isinstance(value, Mapping):
            nested: dict[str, object] = {}
            _deep_merge(nested, value)  # pyright: ignore[reportUnknownArgumentType]
            target[key] = nested
        else:
            target[key] = copy.deepcopy(value)


def is_truthy_option(options: Mapping[str, object] | None, key: str) -> bool:
    """Return True when the option is present and truthy."""
    if not options:
        return False
    return bool(options.get(key))
