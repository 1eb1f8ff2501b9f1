from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

import altair as alt
import pandas as pd

alt.data_transformers.disable_max_rows()


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def grouped_tiles_chart(tiles: List[Mapping[str, Any]], *, title: Optional[str] = None, horizontal: bool = False) -> Optional[Dict[str, Any]]:
    """Bar chart of grouped-aggregation sub-tiles, one bar per group key."""
    if not tiles:
        return None
    df = pd.DataFrame([{"label": str(t.get("title")), "value": t.get("value")} for t in tiles])
    df["value"] = pd.to_numeric(df["value"], errors="coerce").fillna(0)
    df = df.sort_values("value", ascending=False)
    if horizontal:
        x = alt.X("value:Q", title=title, axis=alt.Axis(format="~s"))
        y = alt.Y("label:N", title=None, sort="-x")
    else:
        x = alt.X("label:N", title=None, sort="-y", axis=alt.Axis(labelAngle=-30))
        y = alt.Y("value:Q", title=title, axis=alt.Axis(format="~s"))
    hover = alt.selection_point(fields=["label"], on="mouseover", empty="all")
    chart = (
        alt.Chart(df)
        .mark_bar()
        .encode(
            x=x,
            y=y,
            opacity=alt.condition(hover, alt.value(1), alt.value(0.4)),
            tooltip=[alt.Tooltip("label:N", title="Group"), alt.Tooltip("value:Q", title="Value", format=",")],
        )
        .add_params(hover)
        .properties(height=260)
    )
    return to_vega_spec(chart)
