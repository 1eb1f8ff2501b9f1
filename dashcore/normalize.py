from __future__ import annotations

import logging
import re
from typing import Any, Optional

import pandas as pd


diagnostics = logging.getLogger("dashcore.diagnostics")

DATE_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")


def normalize_value(value: Any) -> Any:
    """Canonical form for the equality family: trimmed, lower-cased strings.

    Numbers, booleans and None pass through untouched.
    """
    if isinstance(value, str):
        return value.strip().lower()
    return value


def values_equal(left: Any, right: Any) -> bool:
    a = normalize_value(left)
    b = normalize_value(right)
    # True == 1 in Python; config authors treat booleans and numbers as distinct.
    if isinstance(a, bool) != isinstance(b, bool):
        return False
    return a == b


def is_null(value: Any) -> bool:
    return value is None


def is_date_string(value: Any) -> bool:
    return isinstance(value, str) and DATE_PREFIX.match(value) is not None


def parse_date(value: Any) -> Optional[pd.Timestamp]:
    if value is None:
        return None
    ts = pd.to_datetime(value, errors="coerce")
    if ts is None or pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC").tz_localize(None)
    return ts


def days_between(start: Any, end: Any) -> Optional[float]:
    start_ts = parse_date(start)
    end_ts = parse_date(end)
    if start_ts is None or end_ts is None:
        return None
    return (end_ts - start_ts).total_seconds() / 86400.0


def ordered(left: Any, right: Any, op: str) -> bool:
    """Compare raw values with Python's ordering; incomparable pairs never match."""
    try:
        if op == "lt":
            return bool(left < right)
        if op == "lte":
            return bool(left <= right)
        if op == "gt":
            return bool(left > right)
        if op == "gte":
            return bool(left >= right)
    except TypeError:
        diagnostics.debug("incomparable values for %s: %r vs %r", op, left, right)
        return False
    raise ValueError(f"unknown ordering operator: {op}")
