from __future__ import annotations

from typing import Any, Dict, List

import altair as alt
import pandas as pd

alt.data_transformers.disable_max_rows()


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def status_counts_chart(groups: List[Dict[str, Any]], *, title: str = "Works by status") -> Dict[str, Any]:
    df = pd.DataFrame(
        [{"label": g["label"], "count": g["stats"]["count"], "order": i} for i, g in enumerate(groups)],
        columns=["label", "count", "order"],
    )
    chart = (
        alt.Chart(df, title=title)
        .mark_bar()
        .encode(
            x=alt.X("count:Q", title="Works"),
            y=alt.Y("label:N", title=None, sort=alt.EncodingSortField(field="order", order="ascending")),
            tooltip=["label:N", "count:Q"],
        )
    )
    return to_vega_spec(chart)


def group_totals_chart(groups: List[Dict[str, Any]], numeric_label: str) -> Dict[str, Any]:
    df = pd.DataFrame(
        [{"label": g["label"], "total": g["stats"]["total"], "order": i} for i, g in enumerate(groups)],
        columns=["label", "total", "order"],
    )
    chart = (
        alt.Chart(df, title=f"{numeric_label} by status")
        .mark_bar()
        .encode(
            x=alt.X("total:Q", title=numeric_label),
            y=alt.Y("label:N", title=None, sort=alt.EncodingSortField(field="order", order="ascending")),
            tooltip=["label:N", alt.Tooltip("total:Q", format=",.0f")],
        )
    )
    return to_vega_spec(chart)
