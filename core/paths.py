"""
Helpers for Formik-style field names such as ``inventory[0].quantity``.

Writes are copy-on-write: every container on the path to the changed leaf is
copied, everything else is shared with the previous structure.
"""
import re
from typing import Any, List, Union

PathSegment = Union[str, int]

_SEGMENT_RE = re.compile(r'[^.\[\]]+')

_MISSING = object()


def to_path(name: str) -> List[PathSegment]:
    """
    Split a field name into segments. Numeric segments become list indices.

    >>> to_path('inventory[0].quantity')
    ['inventory', 0, 'quantity']
    """
    segments: List[PathSegment] = []
    for token in _SEGMENT_RE.findall(name):
        segments.append(int(token) if token.isdigit() else token)
    if not segments:
        raise ValueError(f"Invalid field name: {name!r}")
    return segments


def join_path(*segments: PathSegment) -> str:
    """Inverse of `to_path`: ('employee', 1, 'role') -> 'employee[1].role'."""
    name = ''
    for segment in segments:
        if isinstance(segment, int):
            name += f'[{segment}]'
        elif name:
            name += f'.{segment}'
        else:
            name = segment
    return name


def get_in(obj: Any, name: str, default: Any = None) -> Any:
    current = obj
    for segment in to_path(name):
        current = _child(current, segment)
        if current is _MISSING:
            return default
    return current


def set_in(obj: Any, name: str, value: Any) -> Any:
    """
    Return a copy of `obj` with the value at `name` replaced.
    Missing containers are created (a list when the next segment is an index).
    """
    return _set(obj, to_path(name), value)


def _child(container: Any, segment: PathSegment) -> Any:
    if isinstance(segment, int) and not isinstance(container, dict):
        if isinstance(container, list) and 0 <= segment < len(container):
            return container[segment]
        return _MISSING
    if isinstance(container, dict):
        return container.get(segment, _MISSING)
    return _MISSING


def _set(container: Any, path: List[PathSegment], value: Any) -> Any:
    segment, rest = path[0], path[1:]

    # Row-indexed error mappings are dicts with int keys
    if isinstance(segment, int) and not isinstance(container, dict):
        items = list(container) if isinstance(container, list) else []
        if segment > len(items):
            # Lists are kept without gaps
            raise IndexError(f"Index {segment} out of range for list of length {len(items)}")
        current = items[segment] if segment < len(items) else _MISSING
        new_value = _set(_blank_for(rest, current), rest, value) if rest else value
        if segment == len(items):
            items.append(new_value)
        else:
            items[segment] = new_value
        return items

    mapping = dict(container) if isinstance(container, dict) else {}
    current = mapping.get(segment, _MISSING)
    mapping[segment] = _set(_blank_for(rest, current), rest, value) if rest else value
    return mapping


def _blank_for(rest: List[PathSegment], current: Any) -> Any:
    if current is not _MISSING and current is not None:
        return current
    return [] if isinstance(rest[0], int) else {}
