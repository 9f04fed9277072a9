"""Field Path Resolution

Resolves dotted, optionally indexed paths (``Inner.Start``, ``Items[0].Name``,
``Labels[en]``) against a value. Resolution never raises for missing data:
``None`` intermediates, absent attributes, out-of-range indices and missing
keys all come back as ``found=False``.
"""
from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Callable

from tagrules.errors import TagSyntaxError

_SEGMENT = re.compile(r"([^.\[\]]+)|\[([^\[\]]*)\]|(\.)")
_MISSING = object()


@dataclass(frozen=True, slots=True)
class Segment:
    name: str
    subscript: bool = False

    def __str__(self) -> str:
        return f"[{self.name}]" if self.subscript else self.name


@dataclass(frozen=True, slots=True)
class FieldPath:
    """Parsed path; the empty path addresses the start value itself."""
    source: str
    segments: tuple[Segment, ...]

    def __str__(self) -> str:
        return self.source

    def __bool__(self) -> bool:
        return bool(self.segments)


def parse_path(path: str) -> FieldPath:
    """Split ``path`` into attribute and subscript segments.

    Raises:
        TagSyntaxError: for unbalanced brackets, empty names or a leading,
            trailing or doubled dot.
    """
    path = path.strip()
    if not path: return FieldPath(path, ())

    segments: list[Segment] = []
    pos, expect_name = 0, True
    while pos < len(path):
        m = _SEGMENT.match(path, pos)
        if m is None:
            raise TagSyntaxError(path, "malformed field path")
        name, key, dot = m.groups()
        if dot:
            if expect_name: raise TagSyntaxError(path, "empty segment in field path")
            expect_name = True
        elif key is not None:
            if expect_name and segments: raise TagSyntaxError(path, "subscript after '.' in field path")
            if key == "": raise TagSyntaxError(path, "empty subscript in field path")
            segments.append(Segment(key, subscript=True))
            expect_name = False
        else:
            if not expect_name: raise TagSyntaxError(path, "missing '.' between names in field path")
            segments.append(Segment(name))
            expect_name = False
        pos = m.end()
    if expect_name:
        raise TagSyntaxError(path, "field path ends with '.'")
    return FieldPath(path, tuple(segments))


def _step(current: Any, segment: Segment) -> Any:
    if not segment.subscript:
        if isinstance(current, Mapping): return current.get(segment.name, _MISSING)
        return getattr(current, segment.name, _MISSING)

    if isinstance(current, Mapping):
        if segment.name in current: return current[segment.name]
        try: key = int(segment.name)
        except ValueError: return _MISSING
        return current.get(key, _MISSING)
    if isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
        try: return current[int(segment.name)]
        except (ValueError, IndexError): return _MISSING
    return _MISSING


def walk(path: FieldPath, start: Any, extract: Callable[[Any], Any] | None = None) -> tuple[Any, bool]:
    """Follow a parsed path from ``start``; ``extract`` unwraps custom types at each hop."""
    current = extract(start) if extract else start
    for segment in path.segments:
        if current is None: return None, False
        current = _step(current, segment)
        if current is _MISSING: return None, False
        if extract: current = extract(current)
    return current, True


def resolve(path: str | FieldPath, current: Any, root: Any = None, *, cross_struct: bool = False,
            extract: Callable[[Any], Any] | None = None) -> tuple[Any, bool]:
    """Resolve ``path`` from ``current`` (relative) or from ``root`` (cross-struct)."""
    parsed = path if isinstance(path, FieldPath) else parse_path(path)
    return walk(parsed, root if cross_struct else current, extract)
