from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class RangeModel(BaseModel):
    from_: Optional[str] = Field(default=None, alias="from")
    to: Optional[str] = None

    model_config = {"populate_by_name": True}


class RecordsSourceModel(BaseModel):
    records: Optional[List[Dict[str, Any]]] = None
    source: Optional[str] = None


class TilesRequest(RecordsSourceModel):
    tiles: List[Dict[str, Any]] = Field(default_factory=list)
    metric_tiles: List[Dict[str, Any]] = Field(default_factory=list, alias="metricTiles")
    range: RangeModel = Field(default_factory=RangeModel)

    model_config = {"populate_by_name": True}


class DashboardConfigModel(BaseModel):
    tiles: List[Dict[str, Any]] = Field(default_factory=list)
    summary: List[Dict[str, Any]] = Field(default_factory=list)
    trends: List[Dict[str, Any]] = Field(default_factory=list)


class DashboardRequest(RecordsSourceModel):
    config: DashboardConfigModel = Field(default_factory=DashboardConfigModel)
    metrics: Dict[str, List[Dict[str, Any]]] = Field(default_factory=dict)
    range: RangeModel = Field(default_factory=RangeModel)


class FilterRecordsRequest(RecordsSourceModel):
    filters: List[Dict[str, Any]] = Field(default_factory=list)
    click_filter: Optional[Dict[str, Any]] = Field(default=None, alias="clickFilter")
    range: RangeModel = Field(default_factory=RangeModel)
    use_range: bool = Field(default=True, alias="useRange")
    limit: int = 1000

    model_config = {"populate_by_name": True}
