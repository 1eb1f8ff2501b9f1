from __future__ import annotations

from dataclasses import dataclass, field as dc_field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple, Union

from dashcore.aggregate import (
    AGGREGATION_METRICS,
    TileOutcome,
    aggregation_tile,
    average_days,
    average_duration_days,
    count_tile,
    grouped_aggregation,
    percentage_tile,
)
from dashcore.compiler import MatcherCache
from dashcore.filters import Filter, Thresholds, normalize_thresholds, parse_filter


Record = Mapping[str, Any]
GROUPED_COMPONENTS = ("ChartBar", "ChartPie")


@dataclass(frozen=True)
class TileSpec:
    key: str
    title: str = ""
    subtitle: Optional[str] = None
    match_key: Optional[str] = None
    filter: Optional[Filter] = None
    percentage: Optional[Tuple[Filter, Filter]] = None
    average: Optional[Tuple[str, str]] = None
    metric: Optional[str] = None
    field: Optional[str] = None
    column: Optional[str] = None
    component: Optional[str] = None
    distinct: bool = False
    distinct_column: Optional[str] = None
    pre_calculated: bool = False
    value: Any = None
    click_filter: Optional[Mapping[str, Any]] = None
    clickable: Optional[bool] = None
    no_range_filter: bool = False
    filter_type: Optional[str] = None
    thresholds: Optional[Thresholds] = None
    raw: Mapping[str, Any] = dc_field(default_factory=dict, repr=False)

    @property
    def is_grouped(self) -> bool:
        component = self.component or ""
        return bool(self.metric and self.field and self.column) and any(c in component for c in GROUPED_COMPONENTS)


def parse_tile(raw: Union[TileSpec, Mapping[str, Any]]) -> TileSpec:
    if isinstance(raw, TileSpec):
        return raw
    pct = raw.get("percentage")
    avg = raw.get("average")
    return TileSpec(
        key=str(raw.get("key", "")),
        title=str(raw.get("title", "")),
        subtitle=raw.get("subtitle"),
        match_key=raw.get("matchKey"),
        filter=parse_filter(raw["filter"]) if raw.get("filter") is not None else None,
        percentage=(parse_filter(pct["numerator"]), parse_filter(pct["denominator"])) if pct else None,
        average=(avg["start"], avg["end"]) if avg else None,
        metric=raw.get("metric"),
        field=raw.get("field"),
        column=raw.get("column"),
        component=raw.get("component"),
        distinct=bool(raw.get("distinct", False)),
        distinct_column=raw.get("distinctColumn"),
        pre_calculated=bool(raw.get("preCalculated", False)),
        value=raw.get("value"),
        click_filter=raw.get("clickFilter"),
        clickable=raw.get("clickable"),
        no_range_filter=bool(raw.get("noRangeFilter", False)),
        filter_type=raw.get("filterType"),
        thresholds=normalize_thresholds(raw.get("thresholds")),
        raw=dict(raw),
    )


def parse_tiles(raw: Optional[Iterable[Any]]) -> List[TileSpec]:
    return [parse_tile(t) for t in (raw or [])]


class MetricSource(Protocol):
    def subtitle_for(self, key: str, match_key: Optional[str]) -> Optional[str]:
        ...


class MetricTiles:
    """Externally fetched metric tiles, looked up by a tile's matchKey or key."""

    def __init__(self, tiles: Optional[Iterable[Mapping[str, Any]]] = None) -> None:
        self.tiles = list(tiles or [])

    def find(self, key: str, match_key: Optional[str]) -> Optional[Mapping[str, Any]]:
        for m in self.tiles:
            mk = m.get("key")
            if (match_key is not None and mk == match_key) or mk == key:
                return m
        return None

    def subtitle_for(self, key: str, match_key: Optional[str]) -> Optional[str]:
        match = self.find(key, match_key)
        return match.get("subtitle") if match is not None else None


def _metric_source(metrics: Union[MetricSource, Iterable[Mapping[str, Any]], None]) -> MetricSource:
    if metrics is None:
        return MetricTiles()
    if hasattr(metrics, "subtitle_for"):
        return metrics  # type: ignore[return-value]
    return MetricTiles(metrics)  # type: ignore[arg-type]


def active_records(tile: TileSpec, range_filtered: Sequence[Record], full: Sequence[Record]) -> Sequence[Record]:
    return full if tile.no_range_filter else range_filtered


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def resolve_tile(tile: TileSpec, active: Sequence[Record], previous: Sequence[Record], *, cache: Optional[MatcherCache] = None) -> TileOutcome:
    if tile.pre_calculated:
        return TileOutcome(value=tile.value if _is_number(tile.value) else 0, previous=0)

    if tile.is_grouped:
        return grouped_aggregation(
            tile.filter, tile.column, tile.field, tile.metric, active, filter_type=tile.filter_type, cache=cache
        )

    if tile.metric in AGGREGATION_METRICS and tile.field:
        return aggregation_tile(
            tile.filter, tile.field, tile.metric, active, previous, with_trend=not tile.no_range_filter, cache=cache
        )

    if tile.filter is not None and not tile.average and not tile.percentage and not tile.metric:
        return count_tile(
            tile.filter,
            active,
            previous,
            distinct_column=tile.distinct_column if tile.distinct else None,
            share_of_base=tile.no_range_filter,
            cache=cache,
        )

    if tile.percentage:
        return percentage_tile(tile.percentage[0], tile.percentage[1], active, cache=cache)

    if tile.average:
        start, end = tile.average
        return average_duration_days(active, start, end, tile.filter, cache=cache)

    if _is_number(tile.value):
        return TileOutcome(value=tile.value, previous=0)

    return TileOutcome(value=0, previous=0)


def _assemble(tile: TileSpec, outcome: TileOutcome, metrics: MetricSource, click_filter: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    subtitle = tile.subtitle if tile.subtitle is not None else metrics.subtitle_for(tile.key, tile.match_key)
    result: Dict[str, Any] = {
        **tile.raw,
        "value": outcome.value,
        "previous": outcome.previous,
        "trend": outcome.trend_text,
        "direction": outcome.direction,
        "percent": outcome.percent,
        "subtitle": subtitle,
        "clickFilter": click_filter,
        "clickable": tile.clickable if tile.clickable is not None else bool(click_filter),
    }
    if outcome.tiles is not None:
        result["tiles"] = outcome.tiles
    return result


def tile_calculations(
    config_tiles: Iterable[Union[TileSpec, Mapping[str, Any]]],
    metric_tiles: Union[MetricSource, Iterable[Mapping[str, Any]], None],
    range_filtered: Sequence[Record],
    previous_range_filtered: Sequence[Record],
    all_records: Sequence[Record],
    *,
    cache: Optional[MatcherCache] = None,
) -> List[Dict[str, Any]]:
    """Compute every configured tile against the reporting windows.

    Count tiles get a drill-down filter of `{column: matchKey, contains: key}`
    unless one is configured.
    """
    metrics = _metric_source(metric_tiles)
    out: List[Dict[str, Any]] = []
    for tile in parse_tiles(config_tiles):
        active = active_records(tile, range_filtered, all_records)
        previous = active_records(tile, previous_range_filtered, all_records)
        outcome = resolve_tile(tile, active, previous, cache=cache)
        click_filter = tile.click_filter
        if click_filter is None and tile.filter is not None and tile.match_key:
            click_filter = {"column": tile.match_key, "contains": tile.key}
        out.append(_assemble(tile, outcome, metrics, click_filter))
    return out


def build_tiles(
    config_tiles: Iterable[Union[TileSpec, Mapping[str, Any]]],
    metric_tiles: Union[MetricSource, Iterable[Mapping[str, Any]], None],
    range_filtered: Sequence[Record],
    previous_range_filtered: Sequence[Record],
    all_records: Sequence[Record],
    *,
    cache: Optional[MatcherCache] = None,
) -> List[Dict[str, Any]]:
    """Simpler tile pass: count, percentage or one-decimal average, with `{type, value}` click filters."""
    metrics = _metric_source(metric_tiles)
    out: List[Dict[str, Any]] = []
    for tile in parse_tiles(config_tiles):
        active = active_records(tile, range_filtered, all_records)
        previous = active_records(tile, previous_range_filtered, all_records)

        if tile.filter is not None:
            outcome = count_tile(tile.filter, active, previous, cache=cache)
            outcome.percent = None
        elif tile.percentage:
            outcome = percentage_tile(tile.percentage[0], tile.percentage[1], active, cache=cache)
            outcome.previous = None
        elif tile.average:
            outcome = average_days(active, tile.average[0], tile.average[1], cache=cache)
            outcome.previous = None
        else:
            outcome = TileOutcome(value=tile.value if tile.value is not None else 0, previous=None)

        click_filter = tile.click_filter
        if not click_filter and tile.filter is not None and tile.match_key:
            click_filter = {"type": tile.match_key, "value": tile.key}
        out.append(_assemble(tile, outcome, metrics, click_filter))
    return out
