from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

import pandas as pd

from opsboard.aggregations import company_project_stats, company_stats, document_stats, team_stats, to_records
from opsboard.data import to_frame
from opsboard.filters import FILTER_SPECS, EntityFilters, apply_filters, filter_summary, sort_by_date_desc
from opsboard.roles import Capability, has_capability, resolve_role


def with_activity_status(companies: pd.DataFrame, projects: pd.DataFrame) -> pd.DataFrame:
    """Tag each company ``active`` when it has at least one in-progress project."""
    companies = companies.copy()
    if companies.empty:
        companies["activity_status"] = pd.Series(dtype=object)
        return companies
    active_ids = set()
    if not projects.empty:
        in_progress = projects[projects["state"].astype("string").eq("in_progress").fillna(False).astype(bool)]
        active_ids = set(in_progress["company_id"].dropna().astype(str))
    companies["activity_status"] = companies["id"].map(lambda cid: "active" if str(cid) in active_ids else "inactive")
    return companies


def visible_companies(filters: EntityFilters, ctx: Dict[str, Any]) -> pd.DataFrame:
    tagged = with_activity_status(ctx.get("companies", pd.DataFrame()), ctx.get("projects", pd.DataFrame()))
    return apply_filters(tagged, filters, FILTER_SPECS["companies"], reference=ctx["reference"], tz=ctx["settings"].timezone)


def compute_companies(filters: EntityFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    companies: pd.DataFrame = ctx.get("companies", pd.DataFrame())
    projects: pd.DataFrame = ctx.get("projects", pd.DataFrame())

    visible = visible_companies(filters, ctx)
    rows = [{**rec, **company_project_stats(projects, rec.get("id"))} for rec in to_records(visible)]

    return {
        "filters": asdict(filters),
        "active_filters": filter_summary(filters),
        "stats": company_stats(companies, projects),
        "can_create": has_capability(ctx["role"], Capability.CREATE_COMPANY),
        "companies": rows,
        "showing": len(rows),
        "total": int(len(companies)),
        "empty": not rows,
    }


def _self_member(ctx: Dict[str, Any]) -> pd.DataFrame:
    user = ctx["user"]
    if user.id is None:
        return to_frame("team", [])
    record = {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role.value,
        "company_id": user.company_id,
        "status": "active",
        "last_active": ctx["reference"],
    }
    return to_frame("team", [record])


def team_members(ctx: Dict[str, Any]) -> pd.DataFrame:
    """Everybody for members with ``manage-team``, otherwise just the user."""
    if not has_capability(ctx["role"], Capability.MANAGE_TEAM):
        return _self_member(ctx)
    members: pd.DataFrame = ctx.get("team", pd.DataFrame())
    if not members.empty:
        members = members.copy()
        members["role"] = members["role"].map(lambda r: resolve_role(r).value)
    return members


def visible_members(filters: EntityFilters, ctx: Dict[str, Any]) -> pd.DataFrame:
    return apply_filters(team_members(ctx), filters, FILTER_SPECS["team"], reference=ctx["reference"], tz=ctx["settings"].timezone)


def compute_team(filters: EntityFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    members = team_members(ctx)
    visible = visible_members(filters, ctx)
    return {
        "filters": asdict(filters),
        "active_filters": filter_summary(filters),
        "stats": team_stats(members),
        "can_manage": has_capability(ctx["role"], Capability.MANAGE_TEAM),
        "can_invite": has_capability(ctx["role"], Capability.INVITE_MEMBER),
        "members": to_records(visible),
        "empty": visible.empty,
    }


def visible_documents(filters: EntityFilters, ctx: Dict[str, Any]) -> pd.DataFrame:
    tz = ctx["settings"].timezone
    documents: pd.DataFrame = ctx.get("documents", pd.DataFrame())
    visible = apply_filters(documents, filters, FILTER_SPECS["documents"], reference=ctx["reference"], tz=tz)
    return sort_by_date_desc(visible, "uploaded_at", tz)


def compute_documents(filters: EntityFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    documents: pd.DataFrame = ctx.get("documents", pd.DataFrame())
    projects: pd.DataFrame = ctx.get("projects", pd.DataFrame())
    settings = ctx["settings"]

    names = dict(zip(projects["id"].astype(str), projects["name"])) if not projects.empty else {}
    visible = visible_documents(filters, ctx)
    rows = [{**rec, "project_name": names.get(str(rec.get("project_id")))} for rec in to_records(visible)]

    return {
        "filters": asdict(filters),
        "active_filters": filter_summary(filters),
        "stats": document_stats(documents, ctx["reference"], settings.timezone, settings.recent_upload_days),
        "can_upload": has_capability(ctx["role"], Capability.UPLOAD_DOCUMENT),
        "documents": rows,
        "empty": not rows,
    }
