"""Route patterns, the segment matcher, and route table entries.

Patterns are "/"-delimited. A segment written ":name" captures one path
segment under that name; every other segment matches literally. A pattern
of "*" matches any path, and a trailing "*" segment matches its prefix and
anything below it.
"""
import re
import urllib.parse
from dataclasses import dataclass, field, replace
from types import MappingProxyType

import typing as t

WILDCARD = "*"
ALL_METHODS = frozenset([WILDCARD])
DEFAULT_PARAM_PATTERN = r"[\w\-+%;&]+"
STRICT_PARAM_PATTERN = r"[\w\-]+"

_PARAM_NAME = re.compile(r":(\w+)")


def normalize_path(path: str) -> str:
    """Leading slash, no repeated or trailing slashes; "" becomes "/"."""
    if path == WILDCARD:
        return path
    path = re.sub(r"//+", "/", "/" + path)
    return path.rstrip("/") or "/"


def join_path(*parts: str) -> str:
    """Compose group prefixes and a local pattern into a full pattern."""
    parts = tuple(p for p in parts if p and p != "/")
    if not parts:
        return "/"
    if parts == (WILDCARD,):
        return WILDCARD
    return normalize_path("/".join(parts))


def parse_methods(methods: str | t.Iterable[str]) -> frozenset[str]:
    if isinstance(methods, str):
        methods = methods.split("|")
    tokens = frozenset(m.strip() for m in methods if m and m.strip())
    if not tokens:
        raise ValueError("a route needs at least one HTTP method")
    return ALL_METHODS if WILDCARD in tokens else tokens


@dataclass(frozen=True, slots=True)
class Match:
    params: tuple[tuple[str, str], ...] = ()
    tail: str = ""  # raw path below a trailing "*"

    @property
    def vars(self) -> t.Mapping[str, str]:
        return MappingProxyType(dict(self.params))


_EMPTY_MATCH = Match()


def match_path(pattern: str, path: str,
               param_pattern: str = DEFAULT_PARAM_PATTERN) -> Match | None:
    """Match a normalized request path against a normalized pattern.

    Returns None when the path doesn't match. Matching is anchored at both
    ends: "/users/:id" does not match "/users/42/extra".
    """
    if pattern == WILDCARD:
        return Match(tail=path.lstrip("/")) if path != "/" else _EMPTY_MATCH
    if pattern == path:
        return _EMPTY_MATCH
    want = pattern.split("/")[1:]
    got = path.split("/")[1:] if path != "/" else []
    tail = ""
    if want and want[-1] == WILDCARD:
        want = want[:-1]
        if len(got) < len(want):
            return None
        got, tail = got[:len(want)], "/".join(got[len(want):])
    elif len(want) != len(got):
        return None

    value_re = re.compile(param_pattern)
    params: list[tuple[str, str]] = []
    for seg, actual in zip(want, got):
        if (m := _PARAM_NAME.fullmatch(seg)):
            if not value_re.fullmatch(actual):
                return None
            params.append((m.group(1), urllib.parse.unquote(actual)))
        elif seg != actual and seg != urllib.parse.unquote(actual):
            return None
    return Match(tuple(params), tail) if params or tail else _EMPTY_MATCH


def covers(prefix: str, path: str) -> bool:
    """True if `path` is `prefix` or falls beneath it."""
    return prefix == "/" or path == prefix or path.startswith(prefix + "/")


@dataclass(frozen=True, slots=True)
class RouteEntry:
    methods: frozenset[str]
    pattern: str
    handlers: tuple[t.Callable, ...] = field(default_factory=tuple)

    def allows(self, method: str) -> bool:
        return WILDCARD in self.methods or method in self.methods

    def match(self, method: str, path: str,
              param_pattern: str = DEFAULT_PARAM_PATTERN) -> Match | None:
        if not self.allows(method):
            return None
        return match_path(self.pattern, path, param_pattern)

    def with_prefix(self, prefix: str,
                    middleware: t.Sequence[t.Callable] = ()) -> "RouteEntry":
        """Copy mounted under `prefix`, with `middleware` run first."""
        pattern = self.pattern
        if pattern == WILDCARD:
            pattern = "/" + WILDCARD
        return replace(self, pattern=join_path(prefix, pattern),
                       handlers=(*middleware, *self.handlers))

    def __repr__(self):
        methods = WILDCARD if WILDCARD in self.methods else "|".join(sorted(self.methods))
        return f"<RouteEntry {methods} {self.pattern} x{len(self.handlers)}>"


@dataclass(frozen=True, slots=True)
class Fallback:
    """Not-found handler chain scoped to a path prefix."""
    prefix: str
    handlers: tuple[t.Callable, ...] = field(default_factory=tuple)

    def covers(self, path: str) -> bool:
        return covers(self.prefix, path)

    def with_prefix(self, prefix: str,
                    middleware: t.Sequence[t.Callable] = ()) -> "Fallback":
        return replace(self, prefix=join_path(prefix, self.prefix),
                       handlers=(*middleware, *self.handlers))
