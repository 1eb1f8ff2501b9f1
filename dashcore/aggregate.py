from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Literal, Mapping, Optional, Sequence, Tuple

import numpy as np

from dashcore.compiler import MatcherCache, compile_filter
from dashcore.data import round_half_up
from dashcore.filters import Filter, Leaf, Operator, filter_to_dict
from dashcore.normalize import days_between, is_date_string


diagnostics = logging.getLogger("dashcore.diagnostics")

Record = Mapping[str, Any]
Direction = Literal["up", "down"]

AGGREGATION_METRICS = ("sum", "min", "max", "median", "average")


def format_number(value: float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclass(frozen=True)
class Trend:
    """Period-over-period change: a percentage, or an absolute count when there is no base."""

    kind: Literal["percentage", "absolute"]
    amount: float

    def render(self) -> str:
        if self.kind == "percentage":
            return f"{round_half_up(self.amount, 1):.1f}%"
        return f"+{format_number(self.amount)}"


@dataclass
class TileOutcome:
    value: Any = 0
    previous: Any = 0
    trend: Optional[Trend] = None
    direction: Optional[Direction] = None
    percent: Optional[float] = None
    tiles: Optional[List[Dict[str, Any]]] = None

    @property
    def trend_text(self) -> Optional[str]:
        return self.trend.render() if self.trend is not None else None


def compute_trend(value: float, previous: float) -> Tuple[Optional[Trend], Optional[Direction], float]:
    """Trend, direction and signed percent change between two period values."""
    if previous > 0:
        delta = (value - previous) / previous * 100
        direction: Direction = "up" if delta >= 0 else "down"
        return Trend("percentage", abs(delta)), direction, round_half_up(delta, 1)
    if value > 0:
        return Trend("absolute", value), "up", 100.0
    return None, None, 0.0


def _matcher(node: Optional[Filter], cache: Optional[MatcherCache]) -> Callable[[Record], bool]:
    if node is None:
        return lambda _row: True
    return compile_filter(node, cache=cache)


def count_tile(
    node: Filter,
    active: Sequence[Record],
    previous: Sequence[Record],
    *,
    distinct_column: Optional[str] = None,
    share_of_base: bool = False,
    cache: Optional[MatcherCache] = None,
) -> TileOutcome:
    """Matching-row counts for both windows.

    With `share_of_base` (fixed-window tiles) no trend is produced; `percent`
    is the share of the active rows instead.
    """
    match = compile_filter(node, cache=cache)
    matches = [r for r in active if match(r)]
    prev_matches = [r for r in previous if match(r)]

    if distinct_column:
        value = len({str(r.get(distinct_column)) for r in matches})
        prev_value = len({str(r.get(distinct_column)) for r in prev_matches})
    else:
        value = len(matches)
        prev_value = len(prev_matches)

    if share_of_base:
        if distinct_column:
            base = len({str(r.get(distinct_column)) for r in active})
        else:
            base = len(active)
        base = base or 1
        return TileOutcome(value=value, previous=prev_value, percent=round_half_up(value / base * 100, 1))

    trend, direction, percent = compute_trend(value, prev_value)
    return TileOutcome(value=value, previous=prev_value, trend=trend, direction=direction, percent=percent)


def percentage_tile(
    numerator: Filter,
    denominator: Filter,
    active: Sequence[Record],
    *,
    cache: Optional[MatcherCache] = None,
) -> TileOutcome:
    num_match = compile_filter(numerator, cache=cache)
    den_match = compile_filter(denominator, cache=cache)
    num = sum(1 for r in active if num_match(r))
    den = sum(1 for r in active if den_match(r))
    if den == 0:
        diagnostics.debug("percentage denominator matched no rows; dividing by 1")
        den = 1
    return TileOutcome(value=round_half_up(num / den * 100, 1), previous=0)


def _day_deltas(rows: Sequence[Record], start: str, end: str, node: Optional[Filter], cache: Optional[MatcherCache]) -> List[float]:
    match = _matcher(node, cache)
    deltas: List[float] = []
    dropped = 0
    for row in rows:
        if not (is_date_string(row.get(start)) and is_date_string(row.get(end))):
            dropped += 1
            continue
        if not match(row):
            continue
        days = days_between(row.get(start), row.get(end))
        if days is None or np.isnan(days):
            dropped += 1
            continue
        deltas.append(days)
    if dropped:
        diagnostics.debug("average %s -> %s skipped %d rows without usable dates", start, end, dropped)
    return deltas


def average_days(rows: Sequence[Record], start: str, end: str, *, cache: Optional[MatcherCache] = None) -> TileOutcome:
    """Mean gap in days between two date columns, to one decimal."""
    deltas = _day_deltas(rows, start, end, None, cache)
    value = round_half_up(float(np.mean(deltas)), 1) if deltas else 0
    return TileOutcome(value=value, previous=0)


def average_duration_days(
    rows: Sequence[Record],
    start: str,
    end: str,
    node: Optional[Filter] = None,
    *,
    cache: Optional[MatcherCache] = None,
) -> TileOutcome:
    """Mean gap in whole days between two date columns, optionally pre-filtered."""
    deltas = _day_deltas(rows, start, end, node, cache)
    value = int(round_half_up(float(np.mean(deltas)))) if deltas else 0
    return TileOutcome(value=value, previous=0)


def numeric_values(rows: Sequence[Record], field_name: str) -> List[float]:
    out: List[float] = []
    for row in rows:
        raw = row.get(field_name)
        if raw is None:
            raw = 0
        if isinstance(raw, bool):
            continue
        try:
            num = float(raw)
        except (TypeError, ValueError):
            continue
        if not np.isfinite(num):
            continue
        out.append(num)
    return out


def aggregate_values(values: Sequence[float], metric: str) -> float:
    if not values:
        return 0
    arr = np.asarray(values, dtype=float)
    if metric == "sum":
        return float(arr.sum())
    if metric == "min":
        return float(arr.min())
    if metric == "max":
        return float(arr.max())
    if metric == "median":
        return float(np.median(arr))
    if metric == "average":
        return int(round_half_up(float(arr.mean())))
    return 0


def aggregation_tile(
    node: Optional[Filter],
    field_name: str,
    metric: str,
    active: Sequence[Record],
    previous: Sequence[Record],
    *,
    with_trend: bool = True,
    cache: Optional[MatcherCache] = None,
) -> TileOutcome:
    match = _matcher(node, cache)
    value = aggregate_values(numeric_values([r for r in active if match(r)], field_name), metric)
    prev_value = aggregate_values(numeric_values([r for r in previous if match(r)], field_name), metric)
    if not with_trend:
        return TileOutcome(value=value, previous=prev_value)
    trend, direction, percent = compute_trend(value, prev_value)
    return TileOutcome(value=value, previous=prev_value, trend=trend, direction=direction, percent=percent)


def grouped_aggregation(
    node: Optional[Filter],
    column: str,
    field_name: str,
    metric: str,
    active: Sequence[Record],
    *,
    filter_type: Optional[str] = None,
    cache: Optional[MatcherCache] = None,
) -> TileOutcome:
    """One clickable sub-tile per distinct value of `column`, in first-seen order."""
    match = _matcher(node, cache)
    groups: Dict[Any, List[float]] = {}
    for row in active:
        if not match(row):
            continue
        key = row.get(column)
        if key is None:
            key = "Unknown"
        values = numeric_values([row], field_name)
        if values:
            groups.setdefault(key, []).extend(values)

    tiles = [
        {
            "key": str(key),
            "title": str(key),
            "value": aggregate_values(values, metric),
            "filterType": filter_type,
            "clickable": True,
            "filter": filter_to_dict(Leaf(column=column, op=Operator.EQUALS, operand=key)),
        }
        for key, values in groups.items()
    ]
    return TileOutcome(value=None, previous=None, tiles=tiles)
