from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

from dashcore.charts import grouped_tiles_chart
from dashcore.compiler import MatcherCache, cache_for
from dashcore.filters import EngineSettings
from dashcore.normalize import parse_date
from dashcore.tiles import build_tiles, parse_tiles, tile_calculations
from dashcore.windows import RecordWindows, select_windows


TILE_GROUPS = ("tiles", "summary", "trends")


def resolve_windows(records: Sequence[Mapping[str, Any]], settings: EngineSettings, from_: Optional[str], to: Optional[str]) -> RecordWindows:
    if from_ and to:
        return select_windows(records, date_column=settings.date_column, from_=from_, to=to)
    rows = list(records)
    # Without a reporting range every tile sees the full set in both windows.
    return RecordWindows(current=rows, previous=rows, all=rows)


def compute_dashboard(
    config: Mapping[str, Any],
    metrics: Optional[Mapping[str, Any]],
    records: Sequence[Mapping[str, Any]],
    *,
    from_: Optional[str] = None,
    to: Optional[str] = None,
    settings: Optional[EngineSettings] = None,
    cache: Optional[MatcherCache] = None,
    simple: bool = False,
) -> Dict[str, Any]:
    settings = settings or EngineSettings()
    if cache is None:
        cache = cache_for(settings.strict_operators)
    metrics = metrics or {}
    windows = resolve_windows(records, settings, from_, to)
    compute = build_tiles if simple else tile_calculations

    payload: Dict[str, Any] = {
        "range": {"from": from_, "to": to, "date_column": settings.date_column},
        "windows": windows.counts(),
        "charts": {},
    }
    for group in TILE_GROUPS:
        tiles = compute(
            parse_tiles(config.get(group)),
            metrics.get(group) or [],
            windows.current,
            windows.previous,
            windows.all,
            cache=cache,
        )
        payload[group] = tiles
        for tile in tiles:
            if tile.get("tiles"):
                spec = grouped_tiles_chart(
                    tile["tiles"],
                    title=tile.get("title"),
                    horizontal="Horizontal" in str(tile.get("component") or ""),
                )
                if spec is not None:
                    payload["charts"][tile["key"]] = spec
    return payload


def compute_debug(
    config: Mapping[str, Any],
    records: Sequence[Mapping[str, Any]],
    *,
    from_: Optional[str] = None,
    to: Optional[str] = None,
    settings: Optional[EngineSettings] = None,
    cache: Optional[MatcherCache] = None,
) -> Dict[str, Any]:
    settings = settings or EngineSettings()
    if cache is None:
        cache = cache_for(settings.strict_operators)
    windows = resolve_windows(records, settings, from_, to)
    undated = sum(1 for r in records if parse_date(r.get(settings.date_column)) is None)
    columns: List[str] = sorted({str(k) for r in records for k in r.keys()})
    return {
        "settings": {"strict_operators": settings.strict_operators, "date_column": settings.date_column},
        "row_counts": {**windows.counts(), "undated": undated},
        "columns": columns,
        "tile_counts": {group: len(config.get(group) or []) for group in TILE_GROUPS},
        "cached_matchers": len(cache),
    }
