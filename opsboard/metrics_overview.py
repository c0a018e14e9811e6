from __future__ import annotations

from dataclasses import asdict
from typing import Any, Callable, Dict

import pandas as pd

from opsboard.aggregations import (
    COMPLETED_TICKET_STATES,
    OPEN_TICKET_STATES,
    PROJECT_STATES,
    URGENT_PRIORITIES,
    company_project_stats,
    count_where,
    hours_rollup,
    invitation_stats,
    pending_invitations,
    project_progress,
    state_breakdown,
    to_records,
    weekly_goal_progress,
)
from opsboard.charts import state_breakdown_chart
from opsboard.filters import EntityFilters, sort_by_date_desc
from opsboard.roles import CanonicalRole
from opsboard.windows import Window


def _truthy(value: Any) -> bool:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return False
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


def _open_tickets(tickets: pd.DataFrame) -> pd.DataFrame:
    if tickets.empty:
        return tickets
    return tickets[tickets["state"].astype("string").isin(OPEN_TICKET_STATES).fillna(False).astype(bool)]


def _ticket_kpis(tickets: pd.DataFrame) -> Dict[str, int]:
    return {
        "open_tickets": count_where(tickets, "state", OPEN_TICKET_STATES),
        "critical_tickets": count_where(tickets, "priority", URGENT_PRIORITIES),
    }


def _project_cards(projects: pd.DataFrame, tickets: pd.DataFrame, limit: int) -> list:
    cards = []
    for rec in to_records(projects, limit):
        cards.append({**rec, "progress": project_progress(tickets, rec.get("id"))})
    return cards


def compute_admin_overview(filters: EntityFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    companies: pd.DataFrame = ctx.get("companies", pd.DataFrame())
    projects: pd.DataFrame = ctx.get("projects", pd.DataFrame())
    tickets: pd.DataFrame = ctx.get("tickets", pd.DataFrame())
    invitations: pd.DataFrame = ctx.get("invitations", pd.DataFrame())
    limit = ctx["settings"].recent_items

    active_companies = int(companies["is_active"].map(_truthy).sum()) if not companies.empty else 0
    by_state = state_breakdown(projects, "state", PROJECT_STATES)
    return {
        "filters": asdict(filters),
        "kpis": {
            "active_companies": active_companies,
            "total_companies": int(len(companies)),
            "active_projects": by_state["in_progress"],
            **_ticket_kpis(tickets),
            "pending_invitations": invitation_stats(invitations)["pending_invitations"],
        },
        "projects_by_state": by_state,
        "recent_companies": to_records(companies, limit),
        "pending_invitations": to_records(pending_invitations(invitations), limit),
        "charts": {"projects_by_state": state_breakdown_chart(by_state, title="Project state")},
    }


def compute_kam_overview(filters: EntityFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    companies: pd.DataFrame = ctx.get("companies", pd.DataFrame())
    projects: pd.DataFrame = ctx.get("projects", pd.DataFrame())
    tickets: pd.DataFrame = ctx.get("tickets", pd.DataFrame())
    limit = ctx["settings"].recent_items

    company_rows = []
    for rec in to_records(companies, limit):
        company_rows.append({**rec, **company_project_stats(projects, rec.get("id"))})
    pending = projects[projects["state"].astype("string").eq("pending_approval").fillna(False).astype(bool)] if not projects.empty else projects

    return {
        "filters": asdict(filters),
        "kpis": {
            "companies": int(len(companies)),
            "total_projects": int(len(projects)),
            "active_projects": count_where(projects, "state", "in_progress"),
            "pending_approval": int(len(pending)),
            **_ticket_kpis(tickets),
        },
        "companies": company_rows,
        "pending_approval": to_records(pending, limit),
        "recent_tickets": to_records(sort_by_date_desc(tickets, "created_at", ctx["settings"].timezone), limit),
    }


def compute_project_leader_overview(filters: EntityFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    projects: pd.DataFrame = ctx.get("projects", pd.DataFrame())
    tickets: pd.DataFrame = ctx.get("tickets", pd.DataFrame())
    entries: pd.DataFrame = ctx.get("time_entries", pd.DataFrame())
    settings = ctx["settings"]
    limit = settings.recent_items

    in_review = tickets[tickets["state"].astype("string").eq("in_review").fillna(False).astype(bool)] if not tickets.empty else tickets
    pending = projects[projects["state"].astype("string").eq("pending_approval").fillna(False).astype(bool)] if not projects.empty else projects

    return {
        "filters": asdict(filters),
        "kpis": {
            "active_projects": count_where(projects, "state", "in_progress"),
            "pending_approval": int(len(pending)),
            "open_tickets": count_where(tickets, "state", OPEN_TICKET_STATES),
            "in_review": int(len(in_review)),
            "hours_this_month": hours_rollup(entries, Window.MONTH, ctx["reference"], settings.timezone),
            "resolved_tickets": count_where(tickets, "state", "resolved"),
            "completed_projects": count_where(projects, "state", "completed"),
        },
        "projects": _project_cards(projects, tickets, limit),
        "pending_approval": to_records(pending),
        "review_queue": to_records(in_review, limit),
    }


def compute_developer_overview(filters: EntityFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    user = ctx["user"]
    projects: pd.DataFrame = ctx.get("projects", pd.DataFrame())
    tickets: pd.DataFrame = ctx.get("tickets", pd.DataFrame())
    entries: pd.DataFrame = ctx.get("time_entries", pd.DataFrame())
    settings = ctx["settings"]
    limit = settings.recent_items

    if tickets.empty or user.id is None:
        mine = tickets.iloc[0:0]
    else:
        mine = tickets[tickets["assignee_id"].astype("string").eq(user.id).fillna(False).astype(bool)]
    if not entries.empty and user.id is not None:
        entries = entries[entries["user_id"].astype("string").eq(user.id).fillna(False).astype(bool)]

    unfinished = mine[~mine["state"].astype("string").isin(COMPLETED_TICKET_STATES).fillna(False).astype(bool)] if not mine.empty else mine
    active = projects[projects["state"].astype("string").eq("in_progress").fillna(False).astype(bool)] if not projects.empty else projects
    assigned = mine["project_id"].value_counts().to_dict() if not mine.empty else {}

    week_hours = hours_rollup(entries, Window.WEEK, ctx["reference"], settings.timezone)
    return {
        "filters": asdict(filters),
        "kpis": {
            "my_tickets": int(len(mine)),
            "in_progress": count_where(mine, "state", "in_progress"),
            "in_review": count_where(mine, "state", "in_review"),
            "hours_this_week": week_hours,
        },
        "weekly_goal": weekly_goal_progress(week_hours, settings.weekly_goal_hours),
        "my_open_tickets": to_records(unfinished, limit),
        "active_projects": [
            {**rec, "assigned_tickets": int(assigned.get(rec.get("id"), 0))} for rec in to_records(active, limit)
        ],
        "recent_time_entries": to_records(sort_by_date_desc(entries, "date", settings.timezone), limit),
    }


def compute_customer_overview(filters: EntityFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    projects: pd.DataFrame = ctx.get("projects", pd.DataFrame())
    tickets: pd.DataFrame = ctx.get("tickets", pd.DataFrame())
    limit = ctx["settings"].recent_items

    return {
        "filters": asdict(filters),
        "company_id": ctx.get("scope"),
        "kpis": {
            "total_projects": int(len(projects)),
            "active_projects": count_where(projects, "state", "in_progress"),
            **_ticket_kpis(tickets),
        },
        "recent_tickets": to_records(sort_by_date_desc(tickets, "created_at", ctx["settings"].timezone), limit),
        "open_tickets": to_records(_open_tickets(tickets), limit),
        "projects": _project_cards(projects, tickets, limit),
    }


OVERVIEW_BUILDERS: Dict[CanonicalRole, Callable[[EntityFilters, Dict[str, Any]], Dict[str, Any]]] = {
    CanonicalRole.ADMIN: compute_admin_overview,
    CanonicalRole.KAM: compute_kam_overview,
    CanonicalRole.PROJECT_LEADER: compute_project_leader_overview,
    CanonicalRole.DEVELOPER: compute_developer_overview,
    CanonicalRole.CUSTOMER: compute_customer_overview,
}


def compute_overview(filters: EntityFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    return OVERVIEW_BUILDERS[ctx["role"]](filters, ctx)
