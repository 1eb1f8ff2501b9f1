from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from dashcore.normalize import parse_date


Record = Mapping[str, Any]


@dataclass(frozen=True)
class RecordWindows:
    current: List[Record] = field(default_factory=list)
    previous: List[Record] = field(default_factory=list)
    all: List[Record] = field(default_factory=list)

    def counts(self) -> Dict[str, int]:
        return {"current": len(self.current), "previous": len(self.previous), "all": len(self.all)}


def previous_range(from_: Any, to: Any) -> Tuple[Optional[pd.Timestamp], Optional[pd.Timestamp]]:
    """The range of equal length ending where `from_` ends, shifted back by the duration."""
    start = parse_date(from_)
    end = parse_date(to)
    if start is None or end is None:
        return None, None
    duration = end - start
    return start - duration, end - duration


def select_windows(records: Sequence[Record], *, date_column: str, from_: Any, to: Any) -> RecordWindows:
    rows = list(records)
    start = parse_date(from_)
    end = parse_date(to)
    if start is None or end is None:
        return RecordWindows(current=[], previous=[], all=rows)
    prev_start, prev_end = previous_range(start, end)

    current: List[Record] = []
    previous: List[Record] = []
    for row in rows:
        ts = parse_date(row.get(date_column))
        if ts is None:
            continue
        if start <= ts <= end:
            current.append(row)
        if prev_start <= ts <= prev_end:
            previous.append(row)
    return RecordWindows(current=current, previous=previous, all=rows)
