from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Optional

import pandas as pd

from opsboard.aggregations import (
    company_stats,
    group_totals,
    hours_rollup,
    monthly_ticket_trend,
    priority_distribution,
    project_stats,
    sla_compliance,
    ticket_counts_by_project,
    ticket_stats,
    to_records,
)
from opsboard.charts import monthly_trend_chart
from opsboard.filters import FILTER_SPECS, EntityFilters, apply_filters
from opsboard.windows import Window, days_until


def project_health(progress: int, days_remaining: Optional[int]) -> str:
    if days_remaining is None:
        return "on_track"
    if days_remaining < 0:
        return "overdue"
    if days_remaining < 7 and progress < 80:
        return "at_risk"
    return "on_track"


def compute_analytics(filters: EntityFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    settings = ctx["settings"]
    reference = ctx["reference"]
    tz = settings.timezone

    projects: pd.DataFrame = ctx.get("projects", pd.DataFrame())
    entries: pd.DataFrame = ctx.get("time_entries", pd.DataFrame())
    # The date window narrows the ticket population every figure below is computed from.
    tickets = apply_filters(ctx.get("tickets", pd.DataFrame()), filters, FILTER_SPECS["tickets"], reference=reference, tz=tz)

    counts = ticket_counts_by_project(tickets)
    hours = group_totals(entries, "project_id", "hours")
    active = projects[projects["state"].astype("string").eq("in_progress").fillna(False).astype(bool)] if not projects.empty else projects

    health = []
    for rec in to_records(active):
        pid = str(rec.get("id"))
        progress = counts.get(pid, {}).get("progress", 0)
        remaining = days_until(rec.get("estimated_end_date") or rec.get("target_end_date"), reference, tz)
        health.append(
            {
                "project_id": pid,
                "name": rec.get("name"),
                "progress": progress,
                "days_remaining": remaining,
                "hours_logged": float(hours.get(pid, 0.0)),
                "health": project_health(progress, remaining),
            }
        )

    trend = monthly_ticket_trend(tickets, tz)
    return {
        "filters": asdict(filters),
        "kpis": {
            **project_stats(projects),
            **{f"tickets_{k}": v for k, v in ticket_stats(tickets).items()},
            "active_clients": company_stats(ctx.get("companies", pd.DataFrame()), projects)["active_clients"],
            "hours_this_month": hours_rollup(entries, Window.MONTH, reference, tz),
        },
        "sla": sla_compliance(tickets, tz),
        "priority_distribution": priority_distribution(tickets),
        "monthly_trend": trend,
        "project_health": health,
        "charts": {"monthly_trend": monthly_trend_chart(trend)},
    }
