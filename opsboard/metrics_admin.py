from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

import pandas as pd

from opsboard.aggregations import api_key_stats, audit_stats, integration_stats, to_records
from opsboard.data import ENTITY_COLUMNS
from opsboard.filters import FILTER_SPECS, EntityFilters, apply_filters, filter_summary, sort_by_date_desc
from opsboard.roles import Capability, capabilities_for, has_capability, role_label


def visible_audit_events(filters: EntityFilters, ctx: Dict[str, Any]) -> pd.DataFrame:
    tz = ctx["settings"].timezone
    events: pd.DataFrame = ctx.get("audit_events", pd.DataFrame())
    visible = apply_filters(events, filters, FILTER_SPECS["audit_events"], reference=ctx["reference"], tz=tz)
    return sort_by_date_desc(visible, "timestamp", tz)


def compute_audit_log(filters: EntityFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    events: pd.DataFrame = ctx.get("audit_events", pd.DataFrame())
    visible = visible_audit_events(filters, ctx)
    return {
        "filters": asdict(filters),
        "active_filters": filter_summary(filters),
        "stats": audit_stats(events, ctx["reference"], ctx["settings"].timezone),
        "events": to_records(visible),
        "showing": int(len(visible)),
        "total": int(len(events)),
        "empty": visible.empty,
    }


def visible_integrations(filters: EntityFilters, ctx: Dict[str, Any]) -> pd.DataFrame:
    integrations: pd.DataFrame = ctx.get("integrations", pd.DataFrame())
    return apply_filters(integrations, filters, FILTER_SPECS["integrations"], reference=ctx["reference"], tz=ctx["settings"].timezone)


def compute_integrations(filters: EntityFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    integrations: pd.DataFrame = ctx.get("integrations", pd.DataFrame())
    visible = visible_integrations(filters, ctx)

    # Connected and failing integrations are listed first, then the available ones.
    if visible.empty:
        connected, available = visible, visible
    else:
        status = visible["status"].astype("string")
        connected = visible[status.isin(["connected", "error"]).fillna(False).astype(bool)]
        available = visible[status.eq("disconnected").fillna(False).astype(bool)]

    return {
        "filters": asdict(filters),
        "active_filters": filter_summary(filters),
        "stats": integration_stats(integrations),
        "can_manage": has_capability(ctx["role"], Capability.MANAGE_INTEGRATIONS),
        "connected": to_records(connected),
        "available": to_records(available),
        "empty": visible.empty,
    }


def visible_api_keys(filters: EntityFilters, ctx: Dict[str, Any]) -> pd.DataFrame:
    """Filtered key metadata, newest first.

    Only the declared columns leave this function; secrets or any other field
    the data layer attaches to a key are dropped.
    """
    tz = ctx["settings"].timezone
    api_keys: pd.DataFrame = ctx.get("api_keys", pd.DataFrame())
    visible = apply_filters(api_keys, filters, FILTER_SPECS["api_keys"], reference=ctx["reference"], tz=tz)
    visible = sort_by_date_desc(visible, "created_at", tz)
    return visible.reindex(columns=ENTITY_COLUMNS["api_keys"])


def compute_api_portal(filters: EntityFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    api_keys: pd.DataFrame = ctx.get("api_keys", pd.DataFrame())
    visible = visible_api_keys(filters, ctx)
    return {
        "filters": asdict(filters),
        "active_filters": filter_summary(filters),
        "stats": api_key_stats(api_keys),
        "can_manage": has_capability(ctx["role"], Capability.MANAGE_API_KEYS),
        "api_keys": to_records(visible),
        "empty": visible.empty,
    }


def compute_settings(filters: EntityFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    user = ctx["user"]
    settings = ctx["settings"]
    return {
        "filters": asdict(filters),
        "profile": {
            "id": user.id,
            "name": user.name,
            "email": user.email,
            "company_id": user.company_id,
        },
        "role": user.role.value,
        "role_label": role_label(user.role),
        "capabilities": sorted(c.value for c in capabilities_for(user.role)),
        "preferences": asdict(settings),
    }
