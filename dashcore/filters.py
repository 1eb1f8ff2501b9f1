from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Tuple, Union


class FilterError(ValueError):
    """Raised for filter config that cannot be turned into a matcher."""


class Operator(str, Enum):
    IS_NULL = "isNull"
    IS_NOT_NULL = "isNotNull"
    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    LT = "lt"
    LTE = "lte"
    GT = "gt"
    GTE = "gte"
    CONTAINS = "contains"
    NOT_CONTAINS = "notContains"
    MATCHES = "matches"
    NOT_MATCHES = "notMatches"
    IN = "in"
    NOT_IN = "notIn"


# Declaration order above is the resolution order for leaves carrying several keys.
OPERATOR_PRECEDENCE: Tuple[Operator, ...] = tuple(Operator)
GROUP_KEYS: Tuple[str, ...] = ("and", "or")


@dataclass(frozen=True, eq=False)
class Leaf:
    column: Optional[str]
    op: Optional[Operator] = None
    operand: Any = None


@dataclass(frozen=True, eq=False)
class And:
    subfilters: Tuple["Filter", ...] = ()


@dataclass(frozen=True, eq=False)
class Or:
    subfilters: Tuple["Filter", ...] = ()


Filter = Union[Leaf, And, Or]
FILTER_TYPES = (Leaf, And, Or)


def _parse_group(body: Any, key: str) -> Tuple[Filter, ...]:
    if body is None:
        return ()
    if isinstance(body, (str, bytes, Mapping)) or not isinstance(body, Iterable):
        raise FilterError(f"'{key}' expects a list of filters, got {type(body).__name__}")
    return tuple(parse_filter(sub) for sub in body)


def parse_filter(raw: Union[Filter, Mapping[str, Any]]) -> Filter:
    """Turn a JSON-shaped filter dict into Leaf/And/Or nodes.

    Parsed nodes are returned as-is so callers keep their identity for caching.
    """
    if isinstance(raw, FILTER_TYPES):
        return raw
    if not isinstance(raw, Mapping):
        raise FilterError(f"filter must be a mapping, got {type(raw).__name__}")
    if "and" in raw:
        return And(_parse_group(raw["and"], "and"))
    if "or" in raw:
        return Or(_parse_group(raw["or"], "or"))

    column = raw.get("column")
    for op in OPERATOR_PRECEDENCE:
        if op.value in raw:
            return Leaf(column=column, op=op, operand=raw[op.value])
    return Leaf(column=column)


def parse_filters(raw: Optional[Iterable[Any]]) -> List[Filter]:
    if not raw:
        return []
    return [parse_filter(f) for f in raw]


def filter_to_dict(node: Filter) -> dict:
    if isinstance(node, And):
        return {"and": [filter_to_dict(sub) for sub in node.subfilters]}
    if isinstance(node, Or):
        return {"or": [filter_to_dict(sub) for sub in node.subfilters]}
    out: dict = {"column": node.column}
    if node.op is not None:
        out[node.op.value] = node.operand
    return out


@dataclass(frozen=True)
class Bound:
    lt: Optional[float] = None
    gt: Optional[float] = None


@dataclass(frozen=True)
class Thresholds:
    ok: Optional[Bound] = None
    warning: Optional[Bound] = None
    danger: Optional[Bound] = None


def _as_float(value: object) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except Exception:
        return None


def _as_bool(value: object, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def normalize_thresholds(raw: Optional[Mapping[str, Any]]) -> Optional[Thresholds]:
    if not raw:
        return None

    def bound(name: str) -> Optional[Bound]:
        b = raw.get(name)
        if not isinstance(b, Mapping):
            return None
        return Bound(lt=_as_float(b.get("lt")), gt=_as_float(b.get("gt")))

    return Thresholds(ok=bound("ok"), warning=bound("warning"), danger=bound("danger"))


@dataclass(frozen=True)
class EngineSettings:
    strict_operators: bool = False
    date_column: str = "order_date"
    data_dir: Path = field(default_factory=lambda: Path.cwd() / "data")


def normalize_settings(raw: Optional[Mapping[str, Any]] = None) -> EngineSettings:
    raw = raw or {}
    date_column = (raw.get("date_column") or "").strip() or "order_date"
    data_dir = raw.get("data_dir")
    return EngineSettings(
        strict_operators=_as_bool(raw.get("strict_operators"), False),
        date_column=date_column,
        data_dir=Path(data_dir) if data_dir else Path.cwd() / "data",
    )


def settings_from_env() -> EngineSettings:
    return normalize_settings(
        {
            "strict_operators": os.environ.get("DASHCORE_STRICT"),
            "date_column": os.environ.get("DASHCORE_DATE_COLUMN"),
            "data_dir": os.environ.get("DASHCORE_DATA_DIR"),
        }
    )
