"""Dot-path queries over loosely-typed documents.

Documents are what the cluster API returns once decoded: dicts, lists and
scalars. Supported expressions::

    .                                   identity
    .spec.template.spec.volumes         field access
    .metadata.annotations."a.b/c"       quoted field (any characters)
    .spec.containers[0].name            list index (negative counts from the end)
    .spec.template.spec.volumes // []   default when missing or null

A path that does not exist evaluates to ``MISSING``, which is distinct from a
key that exists with a null value (``None``).
"""

from __future__ import annotations

import copy
import functools
import json
import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Tuple, Type, Union

from clusterbackup.core.exceptions import DocumentQueryError, QueryNotFoundError


class _Missing:
    _instance: Optional["_Missing"] = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()

Segment = Union[str, int]

_IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_INDEX = re.compile(r"\[\s*(-?\d+)\s*\]")


@dataclass(frozen=True)
class Query:
    expression: str
    segments: Tuple[Segment, ...]
    has_default: bool = False
    default: Any = None

    def evaluate(self, doc: Any) -> Any:
        current = _walk(doc, self.segments, self.expression)
        if self.has_default and (current is MISSING or current is None):
            return copy.deepcopy(self.default)
        return current


def _split_default(expression: str) -> Tuple[str, Optional[str]]:
    in_quotes = False
    escaped = False
    for i, ch in enumerate(expression):
        if escaped:
            escaped = False
            continue
        if ch == "\\" and in_quotes:
            escaped = True
        elif ch == '"':
            in_quotes = not in_quotes
        elif not in_quotes and expression.startswith("//", i):
            return expression[:i].strip(), expression[i + 2:].strip()
    return expression.strip(), None


def _read_quoted(path: str, start: int, expression: str) -> Tuple[str, int]:
    i = start + 1
    escaped = False
    while i < len(path):
        ch = path[i]
        if escaped:
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch == '"':
            try:
                return json.loads(path[start:i + 1]), i + 1
            except json.JSONDecodeError as exc:
                raise DocumentQueryError(f"invalid quoted field in {expression!r}") from exc
        i += 1
    raise DocumentQueryError(f"unterminated quoted field in {expression!r}")


def _parse_path(path: str, expression: str) -> Tuple[Segment, ...]:
    if not path.startswith("."):
        raise DocumentQueryError(f"query must start with '.': {expression!r}")
    if path == ".":
        return ()

    segments = []
    i = 0
    while i < len(path):
        ch = path[i]
        if ch == ".":
            i += 1
            if i >= len(path):
                raise DocumentQueryError(f"dangling '.' in {expression!r}")
            if path[i] == '"':
                name, i = _read_quoted(path, i, expression)
                segments.append(name)
                continue
            if path[i] == "[":
                continue
            match = _IDENTIFIER.match(path, i)
            if not match:
                raise DocumentQueryError(f"invalid field at offset {i} in {expression!r}")
            segments.append(match.group(0))
            i = match.end()
        elif ch == "[":
            match = _INDEX.match(path, i)
            if match:
                segments.append(int(match.group(1)))
                i = match.end()
                continue
            # ["quoted key"] form
            j = i + 1
            while j < len(path) and path[j] == " ":
                j += 1
            if j < len(path) and path[j] == '"':
                name, j = _read_quoted(path, j, expression)
                while j < len(path) and path[j] == " ":
                    j += 1
                if j < len(path) and path[j] == "]":
                    segments.append(name)
                    i = j + 1
                    continue
            raise DocumentQueryError(f"invalid index at offset {i} in {expression!r}")
        else:
            raise DocumentQueryError(f"unexpected {ch!r} at offset {i} in {expression!r}")
    return tuple(segments)


@functools.lru_cache(maxsize=256)
def compile_query(expression: str) -> Query:
    """Parse an expression once; compiled queries are immutable and cached."""
    if not isinstance(expression, str) or not expression.strip():
        raise DocumentQueryError("query expression must be a non-empty string")

    path, default_text = _split_default(expression)
    segments = _parse_path(path, expression)
    if default_text is None:
        return Query(expression=expression, segments=segments)
    if not default_text:
        raise DocumentQueryError(f"missing default after '//' in {expression!r}")
    try:
        default = json.loads(default_text)
    except json.JSONDecodeError as exc:
        raise DocumentQueryError(f"default must be a JSON literal in {expression!r}") from exc
    return Query(expression=expression, segments=segments, has_default=True, default=default)


def _walk(doc: Any, segments: Iterable[Segment], expression: str) -> Any:
    current = doc
    for segment in segments:
        if current is MISSING or current is None:
            return MISSING
        if isinstance(segment, str):
            if not isinstance(current, Mapping):
                raise DocumentQueryError(
                    f"cannot index {type(current).__name__} with {segment!r} in {expression!r}"
                )
            current = current[segment] if segment in current else MISSING
        else:
            if not isinstance(current, list):
                raise DocumentQueryError(
                    f"cannot index {type(current).__name__} with [{segment}] in {expression!r}"
                )
            if -len(current) <= segment < len(current):
                current = current[segment]
            else:
                current = MISSING
    return current


def lookup(doc: Any, expression: str) -> Any:
    """Evaluate ``expression``; returns ``MISSING`` when the path does not exist."""
    return compile_query(expression).evaluate(doc)


def query(doc: Any, expression: str, expected: Optional[Type[Any]] = None) -> Any:
    """Evaluate ``expression`` and optionally check the result type.

    Raises QueryNotFoundError when the path does not exist and no default is
    given, and DocumentQueryError when the value has the wrong type. A null
    value passes the type check.
    """
    value = lookup(doc, expression)
    if value is MISSING:
        raise QueryNotFoundError(expression)
    if expected is not None and value is not None:
        wrong_bool = isinstance(value, bool) and expected is not bool and expected is not object
        if wrong_bool or not isinstance(value, expected):
            raise DocumentQueryError(
                f"{expression!r}: expected {expected.__name__}, got {type(value).__name__}"
            )
    return value


def delete(doc: Any, expression: str) -> bool:
    """Remove the key or list element addressed by ``expression`` in place.

    A path that does not exist, or runs through a value of the wrong shape, is a
    no-op. Returns True when something was removed.
    """
    compiled = compile_query(expression)
    if compiled.has_default:
        raise DocumentQueryError(f"cannot delete a path with a default: {expression!r}")
    if not compiled.segments:
        raise DocumentQueryError("cannot delete the document root")

    try:
        parent = _walk(doc, compiled.segments[:-1], expression)
    except DocumentQueryError:
        return False

    last = compiled.segments[-1]
    if isinstance(last, str):
        if isinstance(parent, dict) and last in parent:
            del parent[last]
            return True
        return False
    if isinstance(parent, list) and -len(parent) <= last < len(parent):
        del parent[last]
        return True
    return False


def strip_fields(doc: Mapping[str, Any], paths: Iterable[str]) -> dict:
    """Return a deep copy of ``doc`` with every path in ``paths`` removed.

    Strip paths address keys only; a list index raises DocumentQueryError.
    """
    paths = list(paths)
    for path in paths:
        if any(isinstance(s, int) for s in compile_query(path).segments):
            raise DocumentQueryError(f"strip path must not contain a list index: {path!r}")
    stripped = copy.deepcopy(dict(doc))
    for path in paths:
        delete(stripped, path)
    return stripped
