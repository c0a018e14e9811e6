from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

import pandas as pd

from opsboard.aggregations import TICKET_STATES, sla_compliance, sla_status, state_breakdown, ticket_stats, to_records
from opsboard.charts import state_breakdown_chart
from opsboard.filters import FILTER_SPECS, EntityFilters, apply_filters, filter_summary, sort_by_date_desc


def visible_tickets(filters: EntityFilters, ctx: Dict[str, Any]) -> pd.DataFrame:
    tz = ctx["settings"].timezone
    tickets: pd.DataFrame = ctx.get("tickets", pd.DataFrame())
    visible = apply_filters(tickets, filters, FILTER_SPECS["tickets"], reference=ctx["reference"], tz=tz)
    return sort_by_date_desc(visible, "created_at", tz)


def compute_tickets(filters: EntityFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    # Scoping already happened in prepare_context: non-privileged users only
    # receive tickets that belong to their company's projects.
    tickets: pd.DataFrame = ctx.get("tickets", pd.DataFrame())
    projects: pd.DataFrame = ctx.get("projects", pd.DataFrame())
    settings = ctx["settings"]
    reference = ctx["reference"]
    tz = settings.timezone

    names = dict(zip(projects["id"].astype(str), projects["name"])) if not projects.empty else {}
    visible = visible_tickets(filters, ctx)

    rows = []
    for rec in to_records(visible):
        sla = sla_status(
            rec.get("sla_resolution_due_at"),
            rec.get("resolved_at"),
            reference,
            tz,
            warning_hours=settings.sla_warning_hours,
            critical_hours=settings.sla_critical_hours,
        )
        rows.append({**rec, "project_name": names.get(str(rec.get("project_id"))), "sla": sla})

    by_state = state_breakdown(tickets, "state", TICKET_STATES)
    project_options = [{"id": pid, "name": name} for pid, name in names.items()]
    return {
        "filters": asdict(filters),
        "active_filters": filter_summary(filters),
        "stats": ticket_stats(tickets),
        "sla": sla_compliance(tickets, tz),
        "can_create": ctx["user"].is_authenticated,
        "project_options": project_options,
        "tickets": rows,
        "empty": not rows,
        "charts": {"tickets_by_state": state_breakdown_chart(by_state, title="Ticket state")},
    }
