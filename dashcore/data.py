from __future__ import annotations

import logging
import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd


logger = logging.getLogger(__name__)

RECORD_SUFFIXES = {".csv", ".json", ".xlsx"}
LEADING_ZERO = re.compile(r"^-?0\d")


def round_half_up(value: object, ndigits: int = 0) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    q = Decimal(10) ** -ndigits
    return float(Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP))


def _plain(value: Any) -> Any:
    if value is None or value is pd.NaT or value is pd.NA:
        return None
    if isinstance(value, (np.integer,)):
        return int(value)
    if isinstance(value, (np.floating,)):
        return None if np.isnan(value) else float(value)
    if isinstance(value, np.bool_):
        return bool(value)
    if isinstance(value, (pd.Timestamp, datetime, date)):
        return value.isoformat()
    if isinstance(value, float) and np.isnan(value):
        return None
    return value


def records_from_frame(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """Plain-Python rows from a frame; NaN/NaT/NA become None so null filters see them."""
    if df is None or df.empty:
        return []
    out: List[Dict[str, Any]] = []
    for row in df.to_dict(orient="records"):
        out.append({str(k): _plain(v) for k, v in row.items()})
    return out


def numericize_text(df: pd.DataFrame) -> pd.DataFrame:
    """Convert text columns whose every value is a number.

    Columns with zero-padded values (item numbers, zip codes) stay text.
    """
    for col in df.columns:
        series = df[col]
        if series.dtype != object:
            continue
        present = series.dropna().astype(str).str.strip()
        if present.empty or present.str.match(LEADING_ZERO).any():
            continue
        if pd.to_numeric(present, errors="coerce").isna().any():
            continue
        df[col] = pd.to_numeric(series.astype(str).str.strip().where(series.notna()), errors="coerce")
    return df


def file_signature(path: Path) -> Tuple[str, float]:
    return (str(path), path.stat().st_mtime)


def read_frame(path: Path) -> pd.DataFrame:
    suffix = path.suffix.lower()
    if suffix == ".csv":
        # Read as text first so zero-padded identifiers survive.
        return numericize_text(pd.read_csv(path, dtype=object, keep_default_na=True))
    if suffix == ".json":
        return pd.read_json(path, orient="records", dtype=False, convert_dates=False)
    if suffix == ".xlsx":
        return pd.read_excel(path, dtype=object)
    raise ValueError(f"unsupported record file type: {path.suffix}")


@lru_cache(maxsize=8)
def _load_records_cached(signature: Tuple[str, float]) -> Tuple[Dict[str, Any], ...]:
    path = Path(signature[0])
    df = read_frame(path)
    logger.info("loaded %d rows from %s", len(df), path.name)
    return tuple(records_from_frame(df))


def resolve_source(data_dir: Path, source: str) -> Path:
    base = data_dir.resolve()
    path = (base / source).resolve()
    if base not in path.parents:
        raise ValueError(f"source {source!r} is outside the data directory")
    if path.suffix.lower() not in RECORD_SUFFIXES:
        raise ValueError(f"unsupported record file type: {path.suffix}")
    if not path.is_file():
        raise FileNotFoundError(f"record source not found: {source}")
    return path


def load_records(data_dir: Path, source: str) -> List[Dict[str, Any]]:
    path = resolve_source(data_dir, source)
    return list(_load_records_cached(file_signature(path)))


def list_sources(data_dir: Path) -> List[str]:
    if not data_dir.is_dir():
        return []
    return sorted(p.name for p in data_dir.iterdir() if p.is_file() and p.suffix.lower() in RECORD_SUFFIXES)
