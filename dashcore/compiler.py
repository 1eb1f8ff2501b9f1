from __future__ import annotations

import logging
import re
import threading
import weakref
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from dashcore.filters import And, Filter, FilterError, Leaf, Operator, Or, parse_filter
from dashcore.normalize import is_null, normalize_value, ordered, values_equal


logger = logging.getLogger(__name__)
diagnostics = logging.getLogger("dashcore.diagnostics")

Record = Mapping[str, Any]
Matcher = Callable[[Record], bool]


def _always(_row: Record) -> bool:
    return True


def _never(_row: Record) -> bool:
    return False


def _members(operand: Any) -> list:
    if operand is None:
        return []
    if isinstance(operand, (str, bytes, Mapping)) or not isinstance(operand, Iterable):
        return [operand]
    return list(operand)


def _regex(pattern: Any, strict: bool) -> Optional["re.Pattern[str]"]:
    try:
        return re.compile(str(pattern))
    except re.error as exc:
        if strict:
            raise FilterError(f"invalid regex {pattern!r}: {exc}") from exc
        logger.warning("invalid regex %r compiles to a never-matching filter: %s", pattern, exc)
        return None


def _regex_subject(value: Any) -> str:
    return "" if value is None else str(value)


def _compile_leaf(leaf: Leaf, strict: bool) -> Matcher:
    col = leaf.column
    op = leaf.op
    operand = leaf.operand

    if op is None:
        if strict:
            raise FilterError(f"filter on column {col!r} has no recognised operator")
        diagnostics.debug("filter on column %r has no operator; matching every row", col)
        return _always

    if op is Operator.IS_NULL or op is Operator.IS_NOT_NULL:
        want_null = (op is Operator.IS_NULL) == (operand is not False)
        return lambda row: is_null(row.get(col)) == want_null

    if op is Operator.EQUALS:
        return lambda row: values_equal(row.get(col), operand)
    if op is Operator.NOT_EQUALS:
        return lambda row: not values_equal(row.get(col), operand)

    if op in (Operator.LT, Operator.LTE, Operator.GT, Operator.GTE):
        name = op.value
        return lambda row: ordered(row.get(col), operand, name)

    if op is Operator.CONTAINS or op is Operator.NOT_CONTAINS:
        if operand is None:
            diagnostics.debug("%s with a null operand on column %r never matches", op.value, col)
            return _never
        needle = normalize_value(operand)
        needle = needle if isinstance(needle, str) else str(needle)
        negate = op is Operator.NOT_CONTAINS

        def contains(row: Record) -> bool:
            value = normalize_value(row.get(col))
            if not isinstance(value, str):
                diagnostics.debug("%s on non-string value %r in column %r", op.value, value, col)
                return False
            return (needle not in value) if negate else (needle in value)

        return contains

    if op is Operator.MATCHES or op is Operator.NOT_MATCHES:
        pattern = _regex(operand, strict)
        if pattern is None:
            return _never
        if op is Operator.MATCHES:
            return lambda row: pattern.search(_regex_subject(row.get(col))) is not None
        return lambda row: pattern.search(_regex_subject(row.get(col))) is None

    if op is Operator.IN or op is Operator.NOT_IN:
        members = _members(operand)
        negate = op is Operator.NOT_IN

        def member_of(row: Record) -> bool:
            value = row.get(col)
            found = any(values_equal(value, m) for m in members)
            return not found if negate else found

        return member_of

    raise FilterError(f"unsupported operator {op!r}")


class MatcherCache:
    """Compiled matchers keyed by filter-node identity.

    Entries live as long as the caller keeps the node alive. Two nodes with the
    same structure are separate entries.
    """

    def __init__(self, *, strict: bool = False) -> None:
        self.strict = strict
        self._entries: "weakref.WeakKeyDictionary[Filter, Matcher]" = weakref.WeakKeyDictionary()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, node: object) -> bool:
        with self._lock:
            try:
                return node in self._entries
            except TypeError:
                return False

    def get(self, node: Filter) -> Matcher:
        with self._lock:
            matcher = self._entries.get(node)
        if matcher is not None:
            return matcher
        matcher = self._build(node)
        with self._lock:
            # Another thread may have compiled the same node meanwhile; keep the first.
            return self._entries.setdefault(node, matcher)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _build(self, node: Filter) -> Matcher:
        if isinstance(node, And):
            subs = [self.get(sub) for sub in node.subfilters]
            return lambda row: all(m(row) for m in subs)
        if isinstance(node, Or):
            subs = [self.get(sub) for sub in node.subfilters]
            return lambda row: any(m(row) for m in subs)
        if isinstance(node, Leaf):
            return _compile_leaf(node, self.strict)
        raise FilterError(f"not a filter node: {type(node).__name__}")


default_cache = MatcherCache()
_strict_cache = MatcherCache(strict=True)


def cache_for(strict: bool) -> MatcherCache:
    return _strict_cache if strict else default_cache


def compile_filter(
    node: Union[Filter, Mapping[str, Any]],
    *,
    cache: Optional[MatcherCache] = None,
    strict: Optional[bool] = None,
) -> Matcher:
    """Compile a filter into a single-argument predicate over a record.

    Parsed nodes go through the identity cache. Raw dicts are parsed and
    compiled fresh each call, since a dict has no identity worth caching on.
    """
    if cache is None:
        cache = cache_for(bool(strict))
    if isinstance(node, Mapping):
        return MatcherCache(strict=cache.strict).get(parse_filter(node))
    return cache.get(node)
