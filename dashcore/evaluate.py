from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import pandas as pd

from dashcore.compiler import MatcherCache, compile_filter
from dashcore.filters import Filter, Leaf, Operator, parse_filter


FilterLike = Union[Filter, Mapping[str, Any]]


def _matchers(filters: Iterable[FilterLike], cache: Optional[MatcherCache]):
    return [compile_filter(parse_filter(f), cache=cache) for f in filters]


def apply_filters(records: Sequence[Mapping[str, Any]], filters: Sequence[FilterLike], *, cache: Optional[MatcherCache] = None):
    """Rows passing every filter, in their original order.

    With no filters or no rows the input itself is returned.
    """
    if not filters or not records:
        return records
    matchers = _matchers(filters, cache)
    return [row for row in records if all(m(row) for m in matchers)]


def filter_frame(df: pd.DataFrame, filters: Sequence[FilterLike], *, cache: Optional[MatcherCache] = None) -> pd.DataFrame:
    if df.empty or not filters:
        return df
    matchers = _matchers(filters, cache)
    rows = df.to_dict(orient="records")
    mask = [all(m(row) for m in matchers) for row in rows]
    return df[pd.Series(mask, index=df.index, dtype=bool)]


@dataclass(frozen=True)
class DataFilter:
    """A drill-down pair: `type` names a configured filter slot, `value` the search text."""

    type: str
    value: str

    def to_dict(self) -> Dict[str, str]:
        return {"type": self.type, "value": self.value}


def apply_data_filters(
    records: Sequence[Mapping[str, Any]],
    pairs: Sequence[DataFilter],
    field_map: Mapping[str, Any],
    *,
    quality_keys: Iterable[str] = (),
) -> List[Mapping[str, Any]]:
    issues = set(quality_keys)

    def keep(row: Mapping[str, Any]) -> bool:
        for f in pairs:
            if f.type == "issue":
                if f.value not in issues:
                    return False
                continue
            column = field_map.get(f.type)
            if not column or not isinstance(column, str):
                continue
            if f.value == "":
                continue
            value = row.get(column)
            if isinstance(value, str):
                if f.value.lower() not in value.lower():
                    return False
            elif value != f.value:
                return False
        return True

    return [row for row in records if keep(row)]


def get_click_filter(tile: Mapping[str, Any]) -> Optional[DataFilter]:
    raw = tile.get("filter")
    if not tile.get("clickable") or not raw:
        return None
    node = parse_filter(raw)
    if not isinstance(node, Leaf) or node.column is None:
        return None
    if node.op is Operator.CONTAINS:
        return DataFilter(type=node.column, value=node.operand)
    if node.op is Operator.EQUALS:
        return DataFilter(type=node.column, value=str(node.operand))
    return None


def drill_down_filters(
    click_filter: FilterLike,
    *,
    date_column: str,
    from_: Optional[str] = None,
    to: Optional[str] = None,
    use_range: bool = True,
) -> List[Filter]:
    """Filters that reproduce a tile's records: the reporting range plus the click filter."""
    node = parse_filter(click_filter)
    if not use_range or not from_ or not to:
        return [node]
    return [
        Leaf(column=date_column, op=Operator.GTE, operand=from_),
        Leaf(column=date_column, op=Operator.LTE, operand=to),
        node,
    ]
