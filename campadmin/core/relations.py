from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any


def unwrap_relation(value: Any) -> dict[str, Any] | None:
    """Normalize an embedded relation to a single object or ``None``.

    PostgREST embeds a to-one relation either as an object or as a one-element
    list depending on how it resolves the foreign key.
    """
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        if not value:
            return None
        value = value[0]
    if isinstance(value, Mapping):
        return dict(value)
    return None


def unwrap_relations(row: Mapping[str, Any], paths: Iterable[str]) -> dict[str, Any]:
    normalized = dict(row)
    nested: dict[str, list[str]] = {}
    for path in paths:
        head, _, rest = path.partition(".")
        nested.setdefault(head, [])
        if rest:
            nested[head].append(rest)

    for key, child_paths in nested.items():
        if key not in normalized:
            continue
        related = unwrap_relation(normalized[key])
        if related is not None and child_paths:
            related = unwrap_relations(related, child_paths)
        normalized[key] = related
    return normalized
