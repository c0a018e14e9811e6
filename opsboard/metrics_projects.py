from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Optional

import pandas as pd

from opsboard.aggregations import (
    COMPLETED_TICKET_STATES,
    OPEN_TICKET_STATES,
    PROJECT_STATES,
    project_stats,
    state_breakdown,
    ticket_counts_by_project,
    to_records,
)
from opsboard.charts import state_breakdown_chart
from opsboard.filters import FILTER_SPECS, EntityFilters, apply_filters, filter_summary, sort_by_date_desc
from opsboard.roles import Capability, has_capability
from opsboard.windows import days_until


def progress_band(progress: int, days_remaining: Optional[int] = None) -> str:
    if days_remaining is not None and days_remaining < 7 and progress < 80:
        return "red"
    if progress >= 80:
        return "green"
    if progress >= 50:
        return "blue"
    if progress >= 25:
        return "amber"
    return "slate"


def _company_names(companies: pd.DataFrame) -> Dict[str, Any]:
    if companies.empty:
        return {}
    return dict(zip(companies["id"].astype(str), companies["name"]))


def visible_projects(filters: EntityFilters, ctx: Dict[str, Any]) -> pd.DataFrame:
    projects: pd.DataFrame = ctx.get("projects", pd.DataFrame())
    return apply_filters(projects, filters, FILTER_SPECS["projects"], reference=ctx["reference"], tz=ctx["settings"].timezone)


def compute_projects(filters: EntityFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    projects: pd.DataFrame = ctx.get("projects", pd.DataFrame())
    tickets: pd.DataFrame = ctx.get("tickets", pd.DataFrame())
    settings = ctx["settings"]
    reference = ctx["reference"]

    counts = ticket_counts_by_project(tickets)
    names = _company_names(ctx.get("companies", pd.DataFrame()))
    visible = visible_projects(filters, ctx)

    rows = []
    for rec in to_records(visible):
        pid = str(rec.get("id"))
        c = counts.get(pid, {"total": 0, "completed": 0, "progress": 0})
        remaining = days_until(rec.get("estimated_end_date") or rec.get("target_end_date"), reference, settings.timezone)
        rows.append(
            {
                **rec,
                "company_name": names.get(str(rec.get("company_id"))),
                "ticket_count": c["total"],
                "progress": c["progress"],
                "days_remaining": remaining,
                "progress_band": progress_band(c["progress"], remaining),
            }
        )

    by_state = state_breakdown(projects, "state", PROJECT_STATES)
    return {
        "filters": asdict(filters),
        "active_filters": filter_summary(filters),
        "stats": project_stats(projects),
        "can_create": has_capability(ctx["role"], Capability.CREATE_PROJECT),
        "projects": rows,
        "empty": not rows,
        "charts": {"projects_by_state": state_breakdown_chart(by_state, title="Project state")},
    }


def _for_project(df: pd.DataFrame, project_id: Any) -> pd.DataFrame:
    if df.empty:
        return df
    return df[df["project_id"].astype("string").eq(str(project_id)).fillna(False).astype(bool)]


def project_tickets(filters: EntityFilters, ctx: Dict[str, Any], *, project_id: Any) -> pd.DataFrame:
    """Filtered tickets of one project, newest first; empty outside the user's scope."""
    tz = ctx["settings"].timezone
    tickets = _for_project(ctx.get("tickets", pd.DataFrame()), project_id)
    visible = apply_filters(tickets, filters, FILTER_SPECS["tickets"], reference=ctx["reference"], tz=tz)
    return sort_by_date_desc(visible, "created_at", tz)


def compute_project_detail(filters: EntityFilters, ctx: Dict[str, Any], *, project_id: str) -> Dict[str, Any]:
    """Single project with its tickets, logged hours and documents.

    A project outside the user's scope is reported as not found.
    """
    projects: pd.DataFrame = ctx.get("projects", pd.DataFrame())
    settings = ctx["settings"]
    tz = settings.timezone

    match = projects[projects["id"].astype("string").eq(str(project_id)).fillna(False).astype(bool)] if not projects.empty else projects
    if match.empty:
        return {"filters": asdict(filters), "project_id": project_id, "found": False}
    project = to_records(match, 1)[0]

    tickets = _for_project(ctx.get("tickets", pd.DataFrame()), project_id)
    entries = _for_project(ctx.get("time_entries", pd.DataFrame()), project_id)
    documents = _for_project(ctx.get("documents", pd.DataFrame()), project_id)

    visible = project_tickets(filters, ctx, project_id=project_id)
    completed = int(tickets["state"].astype("string").isin(COMPLETED_TICKET_STATES).fillna(False).sum()) if not tickets.empty else 0
    progress = ticket_counts_by_project(tickets).get(str(project_id), {}).get("progress", 0)
    remaining = days_until(project.get("estimated_end_date") or project.get("target_end_date"), ctx["reference"], tz)

    budget = project.get("budget")
    spent = project.get("spent")
    budget_used = None
    if budget and spent is not None and float(budget) > 0:
        budget_used = float(spent) / float(budget)

    return {
        "filters": asdict(filters),
        "project_id": project_id,
        "found": True,
        "project": project,
        "can_edit": has_capability(ctx["role"], Capability.EDIT_PROJECT),
        "kpis": {
            "total_tickets": int(len(tickets)),
            "open_tickets": int(tickets["state"].astype("string").isin(OPEN_TICKET_STATES).fillna(False).sum()) if not tickets.empty else 0,
            "completed_tickets": completed,
            "progress": progress,
            "days_remaining": remaining,
            "hours_logged": float(entries["hours"].sum()) if not entries.empty else 0.0,
            "documents": int(len(documents)),
            "budget_used": budget_used,
        },
        "progress_band": progress_band(progress, remaining),
        "tickets": to_records(visible),
        "time_entries": to_records(sort_by_date_desc(entries, "date", tz), settings.recent_items),
        "documents": to_records(sort_by_date_desc(documents, "uploaded_at", tz)),
    }
