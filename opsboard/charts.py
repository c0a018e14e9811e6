from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

import altair as alt
import pandas as pd

alt.data_transformers.disable_max_rows()


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def hours_per_day_chart(daily: pd.DataFrame, goal_per_day: Optional[float] = None) -> Optional[Dict[str, Any]]:
    if daily is None or daily.empty:
        return None
    bars = (
        alt.Chart(daily)
        .mark_bar(color="#2563eb", cornerRadiusTopLeft=3, cornerRadiusTopRight=3)
        .encode(
            x=alt.X("day:O", title="Day"),
            y=alt.Y("hours:Q", title="Hours", axis=alt.Axis(gridDash=[4, 4], domain=False, ticks=False)),
            tooltip=["day", alt.Tooltip("hours:Q", format=".1f")],
        )
        .properties(height=220)
    )
    if goal_per_day:
        rule = alt.Chart(pd.DataFrame({"goal": [goal_per_day]})).mark_rule(color="#dc2626", strokeDash=[4, 4]).encode(y="goal:Q")
        return to_vega_spec(alt.layer(bars, rule))
    return to_vega_spec(bars)


def state_breakdown_chart(counts: Mapping[str, int], *, title: str = "State") -> Optional[Dict[str, Any]]:
    rows: List[Dict[str, Any]] = [{"state": k, "count": int(v)} for k, v in counts.items()]
    if not rows or not any(r["count"] for r in rows):
        return None
    order = [r["state"] for r in rows]
    chart = (
        alt.Chart(pd.DataFrame(rows))
        .mark_bar()
        .encode(
            y=alt.Y("state:N", title=title, sort=order),
            x=alt.X("count:Q", title="Count", axis=alt.Axis(format="d")),
            color=alt.Color("state:N", legend=None),
            tooltip=["state", "count"],
        )
        .properties(height=max(120, 28 * len(rows)))
    )
    return to_vega_spec(chart)


def monthly_trend_chart(trend: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not trend:
        return None
    long_df = pd.DataFrame(trend).melt(id_vars="month", value_vars=["created", "resolved"], var_name="series", value_name="tickets")
    hover = alt.selection_point(fields=["series"], on="mouseover", empty="all")
    chart = (
        alt.Chart(long_df)
        .mark_line(point={"filled": True, "size": 60})
        .encode(
            x=alt.X("month:O", title="Month"),
            y=alt.Y("tickets:Q", title="Tickets", axis=alt.Axis(format="d", gridDash=[4, 4])),
            color=alt.Color("series:N", title=None, scale=alt.Scale(domain=["created", "resolved"], range=["#2563eb", "#16a34a"])),
            opacity=alt.condition(hover, alt.value(1), alt.value(0.2)),
            tooltip=["month", "series", "tickets"],
        )
        .add_params(hover)
        .properties(height=260)
    )
    return to_vega_spec(chart)
