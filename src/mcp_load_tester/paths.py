# paths.py
# Path queries over JSON-shaped values, and scoped writes into dicts.
#
# A query is one of two things:
#
#   "$"-rooted path, evaluated here:
#     $            root
#     .name        field access
#     ['a b']      quoted field access
#     [0] [-1]     list index
#     .* [*]       wildcard over list items or dict values
#   Exact paths resolve to a single value. Any wildcard makes the query a
#   multi-match query, which always resolves to a list.
#
#   anything else is a jq program (".specs[0].title", "keys_unsorted[0]",
#   ".[keys_unsorted[0]] | keys_unsorted[0]"), run through the jq binding.
#   A program with no output, a null output or a runtime error has no
#   match. One output is the value; several outputs become a list.
#
# Assignment keys ("a.b[0].c") always use the path syntax above.

import re
from functools import lru_cache
from typing import Any, Iterator, NamedTuple

import jq

from mcp_load_tester.errors import InvalidMappingError, PathNotFoundError, PathSyntaxError
from mcp_load_tester.models import PathOptions

FIELD = "field"
INDEX = "index"
WILDCARD = "wildcard"

_TOKEN = re.compile(
    r"""
      \.(?P<field>[^.\[\]\s*][^.\[\]\s]*)
    | \.(?P<dot_wild>\*)
    | \[\s*(?P<index>-?\d+)\s*\]
    | \[\s*(?P<bracket_wild>\*)\s*\]
    | \[\s*(?P<quote>['"])(?P<key>.*?)(?P=quote)\s*\]
    """,
    re.VERBOSE,
)

_MISSING = object()


class Segment(NamedTuple):
    kind: str
    key: str | int | None = None


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _tokenize(expr: str, body: str) -> tuple[Segment, ...]:
    segments: list[Segment] = []
    pos = 0
    while pos < len(body):
        match = _TOKEN.match(body, pos)
        if not match:
            raise PathSyntaxError(f"Invalid path {expr!r}: unexpected {body[pos:]!r}")
        if match.group("field") is not None:
            segments.append(Segment(FIELD, match.group("field")))
        elif match.group("index") is not None:
            segments.append(Segment(INDEX, int(match.group("index"))))
        elif match.group("key") is not None:
            segments.append(Segment(FIELD, match.group("key")))
        else:
            segments.append(Segment(WILDCARD))
        pos = match.end()
    return tuple(segments)


@lru_cache(maxsize=512)
def parse_path(expr: str) -> tuple[Segment, ...]:
    """
    Parse a root-anchored query into segments.

    Raises PathSyntaxError for anything that is not a well-formed query.
    """
    if not isinstance(expr, str):
        raise PathSyntaxError(f"Path must be a string, got {type(expr).__name__}")

    text = expr.strip()
    if text.startswith("$"):
        body = text[1:]
    elif text == ".":
        body = ""
    elif text.startswith(".["):
        body = text[1:]
    elif text.startswith("."):
        body = text
    else:
        raise PathSyntaxError(f"Invalid path {expr!r}: must start with '$' or '.'")

    return _tokenize(expr, body)


@lru_cache(maxsize=512)
def _parse_key(key_path: str) -> tuple[Segment, ...]:
    """Parse an assignment key ('a.b[0].c', optionally '$'-anchored)."""
    if not isinstance(key_path, str) or not key_path.strip():
        raise PathSyntaxError(f"Invalid assignment key {key_path!r}")

    text = key_path.strip()
    if text.startswith("$") or text.startswith("."):
        segments = parse_path(text)
    elif text.startswith("["):
        segments = parse_path("$" + text)
    else:
        segments = parse_path("$." + text)

    if not segments:
        raise PathSyntaxError(f"Invalid assignment key {key_path!r}: cannot assign to the root")
    if any(seg.kind == WILDCARD for seg in segments):
        raise PathSyntaxError(f"Invalid assignment key {key_path!r}: wildcards are not assignable")
    return segments


def _is_program(expr: str) -> bool:
    return isinstance(expr, str) and not expr.strip().startswith("$")


@lru_cache(maxsize=256)
def _compile(program: str) -> Any:
    """Compile a jq program, raising PathSyntaxError if it does not parse."""
    try:
        return jq.compile(program)
    except ValueError as exc:
        raise PathSyntaxError(f"Invalid jq program {program!r}: {exc}") from exc


def _check_query(expr: Any) -> None:
    """Raise PathSyntaxError unless `expr` is a well-formed query."""
    if _is_program(expr):
        _compile(expr)
    else:
        parse_path(expr)


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------


def _child(node: Any, seg: Segment) -> Any:
    if seg.kind == FIELD:
        if isinstance(node, dict) and seg.key in node:
            return node[seg.key]
        return _MISSING
    if isinstance(node, list):
        if -len(node) <= seg.key < len(node):
            return node[seg.key]
        return _MISSING
    if isinstance(node, dict) and str(seg.key) in node:
        return node[str(seg.key)]
    return _MISSING


def _children(node: Any) -> list[Any]:
    if isinstance(node, dict):
        return list(node.values())
    if isinstance(node, list):
        return list(node)
    return []


def _iter_matches(segments: tuple[Segment, ...], node: Any) -> Iterator[Any]:
    if not segments:
        yield node
        return
    head, rest = segments[0], segments[1:]
    if head.kind == WILDCARD:
        for child in _children(node):
            yield from _iter_matches(rest, child)
        return
    child = _child(node, head)
    if child is not _MISSING:
        yield from _iter_matches(rest, child)


def _evaluate_program(program: str, value: Any, options: PathOptions) -> tuple[bool, Any]:
    compiled = _compile(program)
    try:
        outputs = compiled.input_value(value).all()
    except ValueError as exc:
        if options.required:
            raise PathNotFoundError(f"No match for {program!r}: {exc}") from exc
        return False, None

    matches = [output for output in outputs if output is not None]
    if not matches:
        if options.required:
            raise PathNotFoundError(f"No match for {program!r}")
        return False, None
    if len(matches) == 1:
        return True, matches[0]
    return True, matches


def _evaluate(path: str, value: Any, options: PathOptions) -> tuple[bool, Any]:
    """Return (found, result) for a query against `value`."""
    if _is_program(path):
        return _evaluate_program(path, value, options)

    segments = parse_path(path)
    multi = any(seg.kind == WILDCARD for seg in segments)
    matches = list(_iter_matches(segments, value))

    if not multi:
        if not matches:
            if options.required:
                raise PathNotFoundError(f"No match for {path!r}")
            return False, None
        return True, matches[0]

    if not matches and options.required:
        raise PathNotFoundError(f"No match for {path!r}")
    if options.unwrap and len(matches) == 1:
        return True, matches[0]
    return True, matches


def resolve(path: str, value: Any, required: bool = False, unwrap: bool = False) -> Any:
    """
    Evaluate `path` against `value`.

    Exact paths return the matched value, or None when there is no match
    (PathNotFoundError instead when `required`). Wildcard paths return a
    list of every match in document order; `unwrap` collapses a
    single-element list to its element. jq programs follow the rules in
    the module header.
    """
    _, result = _evaluate(path, value, PathOptions(required=required, unwrap=unwrap))
    return result


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------


def _get_slot(node: dict | list, seg: Segment) -> Any:
    if isinstance(node, list):
        if seg.kind == INDEX and -len(node) <= seg.key < len(node):
            return node[seg.key]
        return None
    return node.get(seg.key if seg.kind == FIELD else str(seg.key))


def _set_slot(node: dict | list, seg: Segment, value: Any) -> None:
    if isinstance(node, dict):
        node[seg.key if seg.kind == FIELD else str(seg.key)] = value
        return

    if seg.kind != INDEX:
        raise InvalidMappingError(f"Cannot assign field {seg.key!r} inside a list")
    index = seg.key
    if index < -len(node):
        raise InvalidMappingError(f"List index {index} out of range")
    if index >= len(node):
        node.extend([None] * (index + 1 - len(node)))
    node[index] = value


def write(target: dict, key_path: str, value: Any) -> None:
    """
    Assign `value` at `key_path` inside `target`, creating intermediate
    containers as needed. The container created for a missing (or
    non-container) intermediate is a list when the next segment is a numeric
    index, otherwise a dict.
    """
    segments = _parse_key(key_path)
    node: dict | list = target
    for seg, following in zip(segments, segments[1:]):
        child = _get_slot(node, seg)
        if not isinstance(child, (dict, list)):
            child = [] if following.kind == INDEX else {}
            _set_slot(node, seg, child)
        node = child
    _set_slot(node, segments[-1], value)


# ---------------------------------------------------------------------------
# Mappings
# ---------------------------------------------------------------------------


def validate_mapping(mapping: Any) -> None:
    """
    Check a mapping without evaluating it.

    Keys must be assignment keys; values must be path strings or nested
    mappings. Raises a ConfigurationError subclass on the first offender.
    """
    if not isinstance(mapping, dict):
        raise InvalidMappingError(f"Mapping must be an object, got {type(mapping).__name__}")
    for key, ref in mapping.items():
        _parse_key(key)
        if isinstance(ref, dict):
            validate_mapping(ref)
        elif isinstance(ref, str):
            _check_query(ref)
        else:
            raise InvalidMappingError(
                f"Mapping value for {key!r} must be a path string or an object, "
                f"got {type(ref).__name__}"
            )


def _build(mapping: dict, source: Any, target: dict, options: PathOptions) -> None:
    for key, ref in mapping.items():
        if isinstance(ref, dict):
            nested: dict = {}
            _build(ref, source, nested, options)
            write(target, key, nested)
            continue
        found, value = _evaluate(ref, source, options)
        if found:
            write(target, key, value)


def apply_mapping(
    mapping: dict,
    source: Any,
    target: dict,
    options: PathOptions | None = None,
) -> dict:
    """
    Evaluate every path in `mapping` against `source` and point-write the
    results into `target` under the mapping's keys.

    Nested mappings are evaluated against the same `source` and assembled
    into an object that mirrors the mapping's shape. Keys whose path has no
    match are left unset. The whole mapping is validated before anything is
    written. Returns `target`.
    """
    validate_mapping(mapping)
    _build(mapping, source, target, options or PathOptions())
    return target
