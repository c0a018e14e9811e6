from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

import pandas as pd

from opsboard.aggregations import group_records, hours_by_day, time_summary, weekly_goal_progress
from opsboard.charts import hours_per_day_chart
from opsboard.filters import FILTER_SPECS, EntityFilters, apply_filters, filter_summary, sort_by_date_desc, with_defaults
from opsboard.roles import CanonicalRole
from opsboard.windows import Window


VIEW_MODES = ("week", "month")


def _with_project_names(entries: pd.DataFrame, projects: pd.DataFrame) -> pd.DataFrame:
    entries = entries.copy()
    if entries.empty:
        entries["project_name"] = pd.Series(dtype=object)
        return entries
    names = {}
    if not projects.empty:
        names = dict(zip(projects["id"].astype(str), projects["name"]))
    entries["project_name"] = entries["project_id"].map(lambda pid: names.get(str(pid)) if pd.notna(pid) else None)
    return entries


def scoped_time_entries(ctx: Dict[str, Any]) -> pd.DataFrame:
    """Entries with project names; developers only get their own."""
    entries = _with_project_names(ctx.get("time_entries", pd.DataFrame()), ctx.get("projects", pd.DataFrame()))
    user = ctx["user"]
    if ctx["role"] == CanonicalRole.DEVELOPER and user.id is not None and not entries.empty:
        entries = entries[entries["user_id"].astype("string").eq(user.id).fillna(False).astype(bool)]
    return entries


def _view_window(view_mode: str) -> Window:
    return Window.MONTH if view_mode == "month" else Window.WEEK


def _filter_entries(entries: pd.DataFrame, filters: EntityFilters, ctx: Dict[str, Any], window: Window) -> pd.DataFrame:
    tz = ctx["settings"].timezone
    effective = with_defaults(filters, date_window=window.value)
    visible = apply_filters(entries, effective, FILTER_SPECS["time_entries"], reference=ctx["reference"], tz=tz)
    return sort_by_date_desc(visible, "date", tz)


def visible_time_entries(filters: EntityFilters, ctx: Dict[str, Any], *, view_mode: str = "week") -> pd.DataFrame:
    return _filter_entries(scoped_time_entries(ctx), filters, ctx, _view_window(view_mode))


def compute_time_entries(
    filters: EntityFilters,
    ctx: Dict[str, Any],
    *,
    view_mode: str = "week",
) -> Dict[str, Any]:
    """Time tracking page: rollups, weekly goal and entries grouped by project.

    The view mode picks the window the entry list is restricted to; the
    rollups always report today, this week and this month side by side.
    """
    settings = ctx["settings"]
    reference = ctx["reference"]
    tz = settings.timezone
    view_mode = view_mode if view_mode in VIEW_MODES else "week"

    entries = scoped_time_entries(ctx)
    summary = time_summary(entries, reference, tz, view_mode)
    goal = weekly_goal_progress(summary["week_hours"], settings.weekly_goal_hours)

    window = _view_window(view_mode)
    visible = _filter_entries(entries, filters, ctx, window)

    groups = group_records(visible, "project_id")
    grouped = [
        {
            "project_id": key if pd.notna(key) else None,
            "project_name": rows[0].get("project_name") if rows else None,
            "total_hours": float(sum(r.get("hours") or 0 for r in rows)),
            "entries": rows,
        }
        for key, rows in groups.items()
    ]

    daily = hours_by_day(visible, window, reference, tz)
    return {
        "filters": asdict(filters),
        "active_filters": filter_summary(with_defaults(filters, date_window=window.value)),
        "view_mode": view_mode,
        "summary": summary,
        "weekly_goal": goal,
        "total_hours": float(visible["hours"].sum()) if not visible.empty else 0.0,
        "entry_count": int(len(visible)),
        "groups": grouped,
        "charts": {"hours_per_day": hours_per_day_chart(daily, settings.weekly_goal_hours / 5 if settings.weekly_goal_hours else None)},
    }
