"""Dotted-path access into nested configuration trees.

A configuration tree is a plain ``dict`` whose values are numbers, strings,
booleans, lists of strings or further dicts.  Fields are addressed with
dotted paths such as ``risk_management.atr_params.sl_multiplier``.  Keys
that themselves contain ``.`` cannot be addressed.
"""

from __future__ import annotations

from copy import deepcopy
from typing import Any, Dict, List, Mapping, MutableMapping, Tuple

PATH_DELIMITER = "."


class _Missing:
    __slots__ = ()

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


class InvalidPathError(ValueError):
    """Raised for empty or malformed dotted paths."""


def split_path(path: str) -> List[str]:
    """Return the segments of ``path`` or raise :class:`InvalidPathError`."""

    if not isinstance(path, str) or not path:
        raise InvalidPathError(f"Configuration path must be a non-empty string, got {path!r}")
    segments = path.split(PATH_DELIMITER)
    if any(segment == "" for segment in segments):
        raise InvalidPathError(f"Configuration path {path!r} contains an empty segment")
    return segments


def read_path(tree: Mapping[str, Any] | None, path: str, default: Any = MISSING) -> Any:
    """Return the value at ``path`` or ``default`` when any segment is absent."""

    current: Any = tree
    for key in split_path(path):
        if not isinstance(current, Mapping) or key not in current:
            return default
        current = current[key]
    return current


def write_path(tree: MutableMapping[str, Any], path: str, value: Any) -> MutableMapping[str, Any]:
    """Set the leaf at ``path`` in ``tree`` and return ``tree``.

    Missing intermediate nodes are created as empty dicts.  An intermediate
    holding a scalar (or an empty/falsy value) is replaced by an empty dict.
    """

    keys = split_path(path)
    current = tree
    for key in keys[:-1]:
        child = current.get(key)
        if not child or not isinstance(child, MutableMapping):
            child = {}
            current[key] = child
        current = child
    current[keys[-1]] = value
    return tree


def deep_copy_tree(tree: Mapping[str, Any] | None) -> Dict[str, Any] | None:
    """Return a structural clone of ``tree`` sharing no mutable containers."""

    if tree is None:
        return None
    return deepcopy(dict(tree))


def with_path(tree: Mapping[str, Any], path: str, value: Any) -> Dict[str, Any]:
    """Copy-on-write variant of :func:`write_path`; ``tree`` is left untouched."""

    split_path(path)
    updated = deep_copy_tree(tree) or {}
    write_path(updated, path, deepcopy(value))
    return updated


def flatten_tree(tree: Mapping[str, Any] | None, prefix: str = "") -> Dict[str, Any]:
    """Return ``{dotted_path: leaf}`` for every non-mapping leaf in ``tree``."""

    flat: Dict[str, Any] = {}
    if not tree:
        return flat
    for key, value in tree.items():
        path = f"{prefix}{PATH_DELIMITER}{key}" if prefix else str(key)
        if isinstance(value, Mapping) and value:
            flat.update(flatten_tree(value, path))
        else:
            flat[path] = value
    return flat


def diff_trees(
    before: Mapping[str, Any] | None, after: Mapping[str, Any] | None
) -> List[Tuple[str, Any, Any]]:
    """Return sorted ``(path, old, new)`` triples for leaves that differ."""

    old_flat = flatten_tree(before)
    new_flat = flatten_tree(after)
    changes: List[Tuple[str, Any, Any]] = []
    for path in sorted(set(old_flat) | set(new_flat)):
        old = old_flat.get(path, MISSING)
        new = new_flat.get(path, MISSING)
        if old is MISSING or new is MISSING or old != new:
            changes.append((path, old, new))
    return changes


__all__ = [
    "InvalidPathError",
    "MISSING",
    "PATH_DELIMITER",
    "deep_copy_tree",
    "diff_trees",
    "flatten_tree",
    "read_path",
    "split_path",
    "with_path",
    "write_path",
]
