"""Pure reductions over entity frames.

Every function here is deterministic in its inputs (frame, window, reference
instant, timezone) and safe to recompute on each refresh. Empty inputs and
zero denominators yield zeros, never exceptions.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

import pandas as pd

from opsboard.data import round_half_up
from opsboard.roles import CanonicalRole, resolve_role
from opsboard.windows import DEFAULT_TZ, Window, calendar_dates, is_within_days, to_timestamp, window_mask


PROJECT_STATES = ["draft", "pending_approval", "planning", "in_progress", "on_hold", "completed", "cancelled"]
TICKET_STATES = ["open", "in_progress", "in_review", "resolved", "closed"]
TICKET_PRIORITIES = ["low", "medium", "high", "critical"]

COMPLETED_TICKET_STATES = ("resolved", "closed")
OPEN_TICKET_STATES = ("open", "in_progress")
URGENT_PRIORITIES = ("critical", "high")

KeyFunc = Callable[[Dict[str, Any]], Any]


# ---------------- Primitives ----------------
def _column(df: pd.DataFrame, col: str) -> pd.Series:
    if col not in df.columns:
        return pd.Series(dtype=object, index=df.index)
    return df[col]


def count_where(df: pd.DataFrame, column: str, values: Union[str, Iterable[str]]) -> int:
    if df.empty or column not in df.columns:
        return 0
    wanted = {values} if isinstance(values, str) else set(values)
    return int(df[column].astype("string").isin(wanted).fillna(False).sum())


def distinct_count(df: pd.DataFrame, column: str) -> int:
    if df.empty or column not in df.columns:
        return 0
    return int(df[column].dropna().nunique())


def state_breakdown(df: pd.DataFrame, column: str, states: Sequence[str]) -> Dict[str, int]:
    return {state: count_where(df, column, state) for state in states}


def percentage(part: float, total: float) -> int:
    if not total:
        return 0
    return int(round_half_up(float(part) * 100 / float(total)))


def progress_percentage(completed: int, total: int) -> int:
    """``round(completed / total * 100)``; 0 when there is nothing to complete."""
    if total <= 0:
        return 0
    return max(0, min(100, percentage(completed, total)))


# ---------------- Time tracking ----------------
def _in_window(df: pd.DataFrame, window: Any, reference: Any, tz: str, date_col: str = "date") -> pd.DataFrame:
    if df.empty:
        return df
    return df[window_mask(_column(df, date_col), window, reference, tz)]


def hours_rollup(entries: pd.DataFrame, window: Any, reference: Any = None, tz: str = DEFAULT_TZ) -> float:
    rows = _in_window(entries, window, reference, tz)
    if rows.empty or "hours" not in rows.columns:
        return 0.0
    return float(pd.to_numeric(rows["hours"], errors="coerce").fillna(0).clip(lower=0).sum())


def active_project_count(entries: pd.DataFrame, window: Any, reference: Any = None, tz: str = DEFAULT_TZ) -> int:
    return distinct_count(_in_window(entries, window, reference, tz), "project_id")


def time_summary(entries: pd.DataFrame, reference: Any = None, tz: str = DEFAULT_TZ, view_mode: str = "week") -> Dict[str, Any]:
    window = Window.MONTH if view_mode == "month" else Window.WEEK
    return {
        "today_hours": hours_rollup(entries, Window.TODAY, reference, tz),
        "week_hours": hours_rollup(entries, Window.WEEK, reference, tz),
        "month_hours": hours_rollup(entries, Window.MONTH, reference, tz),
        "active_projects": active_project_count(entries, window, reference, tz),
        "view_mode": window.value,
    }


def weekly_goal_progress(current: float, goal: float) -> Dict[str, Any]:
    current = max(0.0, float(current or 0))
    goal = float(goal or 0)
    if goal > 0:
        pct = min(100.0, current * 100 / goal)
    else:
        pct = 100.0 if current > 0 else 0.0
    is_overtime = current > goal
    if is_overtime:
        band = "overtime"
    elif pct >= 80:
        band = "on_track"
    else:
        band = "in_progress"
    return {
        "current": current,
        "goal": goal,
        "percentage": pct,
        "is_overtime": is_overtime,
        "overtime_hours": current - goal if is_overtime else 0.0,
        "band": band,
    }


def hours_by_day(entries: pd.DataFrame, window: Any, reference: Any = None, tz: str = DEFAULT_TZ) -> pd.DataFrame:
    rows = _in_window(entries, window, reference, tz)
    if rows.empty:
        return pd.DataFrame(columns=["day", "hours"])
    out = pd.DataFrame({"day": calendar_dates(rows["date"], tz), "hours": rows["hours"].astype(float)})
    out = out.dropna(subset=["day"]).groupby("day", sort=True)["hours"].sum().reset_index()
    out["day"] = out["day"].astype(str)
    return out


# ---------------- Grouping ----------------
def _keys(df: pd.DataFrame, key: Union[str, KeyFunc]) -> pd.Series:
    if callable(key):
        return pd.Series([key(rec) for rec in df.to_dict(orient="records")], index=df.index, dtype=object)
    return _column(df, key)


def group_records(df: pd.DataFrame, key: Union[str, KeyFunc]) -> Dict[Any, List[Dict[str, Any]]]:
    """Partition rows by key, keeping first-seen key order and row order."""
    if df.empty:
        return {}
    keys = _keys(df, key)
    return {k: g.to_dict(orient="records") for k, g in df.groupby(keys, sort=False, dropna=False)}


def group_totals(df: pd.DataFrame, key: Union[str, KeyFunc], value: str) -> Dict[Any, float]:
    if df.empty or value not in df.columns:
        return {}
    keys = _keys(df, key)
    values = pd.to_numeric(df[value], errors="coerce").fillna(0)
    return {k: float(v) for k, v in values.groupby(keys, sort=False, dropna=False).sum().items()}


# ---------------- Projects & tickets ----------------
def project_progress(tickets: pd.DataFrame, project_id: str) -> int:
    if tickets.empty:
        return 0
    rows = tickets[_column(tickets, "project_id").astype("string").eq(str(project_id)).fillna(False).astype(bool)]
    return progress_percentage(count_where(rows, "state", COMPLETED_TICKET_STATES), len(rows))


def ticket_counts_by_project(tickets: pd.DataFrame) -> Dict[str, Dict[str, int]]:
    if tickets.empty:
        return {}
    out: Dict[str, Dict[str, int]] = {}
    for project_id, rows in tickets.dropna(subset=["project_id"]).groupby("project_id", sort=False):
        total = len(rows)
        completed = count_where(rows, "state", COMPLETED_TICKET_STATES)
        out[str(project_id)] = {"total": total, "completed": completed, "progress": progress_percentage(completed, total)}
    return out


def project_stats(projects: pd.DataFrame) -> Dict[str, int]:
    return {
        "total_projects": int(len(projects)),
        "active_projects": count_where(projects, "state", "in_progress"),
        "completed_projects": count_where(projects, "state", "completed"),
        "on_hold_projects": count_where(projects, "state", "on_hold"),
        "pending_approval": count_where(projects, "state", "pending_approval"),
    }


def ticket_stats(tickets: pd.DataFrame) -> Dict[str, int]:
    return {
        "total": int(len(tickets)),
        "open": count_where(tickets, "state", "open"),
        "in_progress": count_where(tickets, "state", "in_progress"),
        "in_review": count_where(tickets, "state", "in_review"),
        "resolved": count_where(tickets, "state", COMPLETED_TICKET_STATES),
        "open_work": count_where(tickets, "state", OPEN_TICKET_STATES),
        "critical": count_where(tickets, "priority", "critical"),
        "urgent": count_where(tickets, "priority", URGENT_PRIORITIES),
    }


def sla_compliance(tickets: pd.DataFrame, tz: str = DEFAULT_TZ, due_column: str = "sla_resolution_due_at") -> Dict[str, Any]:
    total = 0
    within = 0
    if not tickets.empty and "resolved_at" in tickets.columns and due_column in tickets.columns:
        for resolved, due in zip(tickets["resolved_at"], tickets[due_column]):
            resolved_ts = to_timestamp(resolved, tz)
            due_ts = to_timestamp(due, tz)
            if resolved_ts is None or due_ts is None:
                continue
            total += 1
            if resolved_ts <= due_ts:
                within += 1
    return {"total_resolved": total, "within_sla": within, "percentage": percentage(within, total)}


def sla_status(
    due_at: Any,
    completed_at: Any = None,
    reference: Any = None,
    tz: str = DEFAULT_TZ,
    *,
    warning_hours: float = 4.0,
    critical_hours: float = 1.0,
) -> Dict[str, Any]:
    due = to_timestamp(due_at, tz)
    if due is None:
        return {"status": "none", "minutes_remaining": None}
    if to_timestamp(completed_at, tz) is not None:
        return {"status": "met", "minutes_remaining": None}
    ref = to_timestamp(reference, tz) if reference is not None else pd.Timestamp.now(tz=tz)
    remaining = (due - ref).total_seconds() / 60
    if remaining < 0:
        status = "breached"
    elif remaining <= critical_hours * 60:
        status = "critical"
    elif remaining <= warning_hours * 60:
        status = "warning"
    else:
        status = "safe"
    return {"status": status, "minutes_remaining": int(remaining)}


def priority_distribution(tickets: pd.DataFrame) -> List[Dict[str, Any]]:
    total = len(tickets)
    rows = []
    for priority in reversed(TICKET_PRIORITIES):
        count = count_where(tickets, "priority", priority)
        rows.append({"priority": priority, "count": count, "percentage": percentage(count, total)})
    return rows


def monthly_ticket_trend(tickets: pd.DataFrame, tz: str = DEFAULT_TZ) -> List[Dict[str, Any]]:
    if tickets.empty:
        return []

    def _month(value: Any) -> Optional[str]:
        ts = to_timestamp(value, tz)
        return ts.strftime("%Y-%m") if ts is not None else None

    created = _column(tickets, "created_at").map(_month).dropna().value_counts()
    resolved = _column(tickets, "resolved_at").map(_month).dropna().value_counts()
    months = sorted(set(created.index) | set(resolved.index))
    return [{"month": m, "created": int(created.get(m, 0)), "resolved": int(resolved.get(m, 0))} for m in months]


# ---------------- Directory entities ----------------
def company_stats(companies: pd.DataFrame, projects: pd.DataFrame) -> Dict[str, int]:
    active = projects[_column(projects, "state").astype("string").eq("in_progress").fillna(False).astype(bool)] if not projects.empty else projects
    return {
        "total_companies": int(len(companies)),
        "active_clients": distinct_count(active, "company_id"),
        "total_projects": int(len(projects)),
        "active_projects": int(len(active)),
    }


def company_project_stats(projects: pd.DataFrame, company_id: str) -> Dict[str, int]:
    rows = projects[_column(projects, "company_id").astype("string").eq(str(company_id)).fillna(False).astype(bool)] if not projects.empty else projects
    return {
        "total_projects": int(len(rows)),
        "active_projects": count_where(rows, "state", "in_progress"),
        "completed_projects": count_where(rows, "state", "completed"),
    }


def team_stats(members: pd.DataFrame) -> Dict[str, int]:
    roles = _column(members, "role").map(resolve_role) if not members.empty else pd.Series(dtype=object)
    return {
        "total_members": int(len(members)),
        "active_members": count_where(members, "status", "active"),
        "admins": int((roles == CanonicalRole.ADMIN).sum()),
        "developers": int((roles == CanonicalRole.DEVELOPER).sum()),
    }


def document_stats(documents: pd.DataFrame, reference: Any = None, tz: str = DEFAULT_TZ, recent_days: int = 7) -> Dict[str, Any]:
    if documents.empty:
        return {"total_documents": 0, "total_size": 0, "starred_documents": 0, "recent_uploads": 0}
    starred = _column(documents, "starred").map(lambda v: v is True or str(v).lower() == "true")
    recent = _column(documents, "uploaded_at").map(lambda v: is_within_days(v, recent_days, reference, tz))
    return {
        "total_documents": int(len(documents)),
        "total_size": int(pd.to_numeric(_column(documents, "size"), errors="coerce").fillna(0).sum()),
        "starred_documents": int(starred.sum()),
        "recent_uploads": int(recent.sum()),
    }


def integration_stats(integrations: pd.DataFrame) -> Dict[str, int]:
    return {
        "connected": count_where(integrations, "status", "connected"),
        "available": count_where(integrations, "status", "disconnected"),
        "errors": count_where(integrations, "status", "error"),
    }


def api_key_stats(api_keys: pd.DataFrame) -> Dict[str, int]:
    total_requests = pd.to_numeric(_column(api_keys, "request_count"), errors="coerce").fillna(0).sum() if not api_keys.empty else 0
    return {
        "total_keys": int(len(api_keys)),
        "active_keys": count_where(api_keys, "status", "active"),
        "total_requests": int(total_requests),
    }


def audit_stats(events: pd.DataFrame, reference: Any = None, tz: str = DEFAULT_TZ) -> Dict[str, int]:
    today = int(window_mask(_column(events, "timestamp"), Window.TODAY, reference, tz).sum()) if not events.empty else 0
    return {
        "total_events": int(len(events)),
        "today_events": today,
        "failed_events": count_where(events, "status", "failure"),
        "api_events": count_where(events, "category", "api"),
    }


def pending_invitations(invitations: pd.DataFrame) -> pd.DataFrame:
    if invitations.empty:
        return invitations
    accepted = _column(invitations, "accepted_at").isna()
    cancelled = _column(invitations, "cancelled_at").isna()
    return invitations[accepted & cancelled]


def invitation_stats(invitations: pd.DataFrame) -> Dict[str, int]:
    pending = pending_invitations(invitations)
    return {
        "total_invitations": int(len(invitations)),
        "pending_invitations": int(len(pending)),
        "accepted_invitations": int(_column(invitations, "accepted_at").notna().sum()) if not invitations.empty else 0,
    }


def to_records(df: pd.DataFrame, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    if df is None or df.empty:
        return []
    rows = df.head(limit) if limit is not None else df
    return rows.astype(object).where(rows.notna(), None).to_dict(orient="records")
