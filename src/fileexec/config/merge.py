"""Deep merge of configuration layers.

A base config file can be combined with site-specific overlays; later layers
override earlier ones.
"""

from __future__ import annotations

from typing import Any


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge ``override`` into a copy of ``base``.

    - Nested dicts merge recursively
    - Lists (e.g. ``inputs``, ``files``) are replaced as a whole
    - None in ``override`` leaves the base value alone

    Args:
        base: Lower-priority layer.
        override: Higher-priority layer.

    Returns:
        A new merged dictionary; neither argument is modified.
    """
    merged = dict(base)
    for key, value in override.items():
        if value is None:
            continue
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def merge_configs(*layers: dict[str, Any]) -> dict[str, Any]:
    """Fold layers left to right with ``deep_merge``."""
    merged: dict[str, Any] = {}
    for layer in layers:
        if layer:
            merged = deep_merge(merged, layer)
    return merged
