from __future__ import annotations

import logging
import math
from typing import Any, Dict, List

import numpy as np
import pandas as pd
from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.schemas import DashboardRequest, FilterRecordsRequest, RecordsSourceModel, TilesRequest
from dashcore.compiler import cache_for
from dashcore.dashboard import compute_dashboard, compute_debug, resolve_windows
from dashcore.data import list_sources, load_records
from dashcore.evaluate import apply_filters, drill_down_filters
from dashcore.filters import GROUP_KEYS, OPERATOR_PRECEDENCE, parse_filters, settings_from_env
from dashcore.tiles import build_tiles, tile_calculations


app = FastAPI(title="Dashboard Tile Engine API", version="0.1.0")
logger = logging.getLogger(__name__)
settings = settings_from_env()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        )
    )


def _error(exc: Exception, status_code: int = 500) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__})


def _records(body: RecordsSourceModel) -> List[Dict[str, Any]]:
    if body.records is not None:
        return body.records
    if body.source:
        return load_records(settings.data_dir, body.source)
    return []


@app.get("/meta/operators")
def meta_operators():
    return _json({"operators": [op.value for op in OPERATOR_PRECEDENCE], "groups": list(GROUP_KEYS)})


@app.get("/meta/sources")
def meta_sources():
    try:
        return _json({"sources": list_sources(settings.data_dir)})
    except Exception as exc:
        logger.exception("meta_sources failed")
        return _error(exc)


def _tiles(body: TilesRequest, *, simple: bool) -> JSONResponse:
    try:
        records = _records(body)
        windows = resolve_windows(records, settings, body.range.from_, body.range.to)
        compute = build_tiles if simple else tile_calculations
        tiles = compute(
            body.tiles,
            body.metric_tiles,
            windows.current,
            windows.previous,
            windows.all,
            cache=cache_for(settings.strict_operators),
        )
        return _json({"windows": windows.counts(), "tiles": tiles})
    except (ValueError, FileNotFoundError) as exc:
        logger.warning("tiles request rejected: %s", exc)
        return _error(exc, 400)
    except Exception as exc:
        logger.exception("tiles failed")
        return _error(exc)


@app.post("/tiles")
def tiles(body: TilesRequest):
    return _tiles(body, simple=False)


@app.post("/tiles/simple")
def tiles_simple(body: TilesRequest):
    return _tiles(body, simple=True)


@app.post("/records/filter")
def records_filter(body: FilterRecordsRequest):
    try:
        records = _records(body)
        filters = parse_filters(body.filters)
        if body.click_filter:
            filters += drill_down_filters(
                body.click_filter,
                date_column=settings.date_column,
                from_=body.range.from_,
                to=body.range.to,
                use_range=body.use_range,
            )
        matched = apply_filters(records, filters, cache=cache_for(settings.strict_operators))
        limit = max(0, int(body.limit))
        return _json({"total": len(matched), "records": list(matched)[:limit]})
    except (ValueError, FileNotFoundError) as exc:
        logger.warning("records_filter request rejected: %s", exc)
        return _error(exc, 400)
    except Exception as exc:
        logger.exception("records_filter failed")
        return _error(exc)


@app.post("/dashboard")
def dashboard(body: DashboardRequest):
    try:
        records = _records(body)
        payload = compute_dashboard(
            body.config.model_dump(),
            body.metrics,
            records,
            from_=body.range.from_,
            to=body.range.to,
            settings=settings,
        )
        return _json(payload)
    except (ValueError, FileNotFoundError) as exc:
        logger.warning("dashboard request rejected: %s", exc)
        return _error(exc, 400)
    except Exception as exc:
        logger.exception("dashboard failed")
        return _error(exc)


@app.post("/debug")
def debug(body: DashboardRequest):
    try:
        records = _records(body)
        return _json(
            compute_debug(body.config.model_dump(), records, from_=body.range.from_, to=body.range.to, settings=settings)
        )
    except Exception as exc:
        logger.exception("debug failed")
        return _error(exc)
