"""Compose a page for a user: pick the view, prepare scoped data, build the payload."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

import pandas as pd

from opsboard.data import QueryResult, QueryStatus, overall_status, prepare_context
from opsboard.filters import DashboardSettings, normalize_filters
from opsboard.metrics_admin import (
    compute_api_portal,
    compute_audit_log,
    compute_integrations,
    compute_settings,
    visible_api_keys,
    visible_audit_events,
    visible_integrations,
)
from opsboard.metrics_analytics import compute_analytics
from opsboard.metrics_directory import (
    compute_companies,
    compute_documents,
    compute_team,
    visible_companies,
    visible_documents,
    visible_members,
)
from opsboard.metrics_overview import compute_overview
from opsboard.metrics_projects import compute_project_detail, compute_projects, project_tickets, visible_projects
from opsboard.metrics_tickets import compute_tickets, visible_tickets
from opsboard.metrics_time import compute_time_entries, visible_time_entries
from opsboard.roles import AuthUser, has_capability, user_from_record
from opsboard.views import PageId, ViewDescriptor, select_view


logger = logging.getLogger(__name__)

PageBuilder = Callable[..., Dict[str, Any]]

PAGE_BUILDERS: Dict[PageId, PageBuilder] = {
    PageId.OVERVIEW: compute_overview,
    PageId.PROJECTS: compute_projects,
    PageId.PROJECT_DETAIL: compute_project_detail,
    PageId.TICKETS: compute_tickets,
    PageId.TIME_ENTRIES: compute_time_entries,
    PageId.DOCUMENTS: compute_documents,
    PageId.TEAM: compute_team,
    PageId.COMPANIES: compute_companies,
    PageId.SETTINGS: compute_settings,
    PageId.INTEGRATIONS: compute_integrations,
    PageId.API_PORTAL: compute_api_portal,
    PageId.AUDIT_LOG: compute_audit_log,
    PageId.ANALYTICS: compute_analytics,
}

# Pages that are hidden entirely (not just their actions) without the capability.
GATED_PAGES = frozenset({PageId.AUDIT_LOG, PageId.ANALYTICS, PageId.INTEGRATIONS, PageId.API_PORTAL})

# Entity queries each page depends on; their statuses decide the page status.
PAGE_ENTITIES: Dict[PageId, List[str]] = {
    PageId.OVERVIEW: ["companies", "projects", "tickets", "time_entries", "invitations"],
    PageId.PROJECTS: ["projects", "tickets", "companies"],
    PageId.PROJECT_DETAIL: ["projects", "tickets", "time_entries", "documents"],
    PageId.TICKETS: ["tickets", "projects"],
    PageId.TIME_ENTRIES: ["time_entries", "projects"],
    PageId.DOCUMENTS: ["documents", "projects"],
    PageId.TEAM: ["team"],
    PageId.COMPANIES: ["companies", "projects"],
    PageId.INTEGRATIONS: ["integrations"],
    PageId.API_PORTAL: ["api_keys"],
    PageId.AUDIT_LOG: ["audit_events"],
    PageId.ANALYTICS: ["projects", "tickets", "time_entries", "companies"],
}

FrameBuilder = Callable[..., pd.DataFrame]

# Frame behind each page's CSV export: the same scoped, filtered rows the page lists.
EXPORT_BUILDERS: Dict[PageId, FrameBuilder] = {
    PageId.OVERVIEW: visible_projects,
    PageId.PROJECTS: visible_projects,
    PageId.PROJECT_DETAIL: project_tickets,
    PageId.TICKETS: visible_tickets,
    PageId.TIME_ENTRIES: visible_time_entries,
    PageId.DOCUMENTS: visible_documents,
    PageId.TEAM: visible_members,
    PageId.COMPANIES: visible_companies,
    PageId.INTEGRATIONS: visible_integrations,
    PageId.API_PORTAL: visible_api_keys,
    PageId.AUDIT_LOG: visible_audit_events,
    PageId.ANALYTICS: visible_tickets,
}


def _as_user(user: Any) -> AuthUser:
    return user if isinstance(user, AuthUser) else user_from_record(user)


def access_denied(descriptor: ViewDescriptor) -> Optional[Dict[str, Any]]:
    if descriptor.page not in GATED_PAGES:
        return None
    if has_capability(descriptor.role, descriptor.required_capability):
        return None
    return {"access_denied": True, "required_capability": descriptor.required_capability.value}


def compose_dashboard(
    user: Any,
    page: Any,
    raw_filters: Optional[Mapping[str, Any]],
    snapshot: Mapping[str, QueryResult],
    *,
    reference: Any = None,
    settings: Optional[DashboardSettings] = None,
    view_mode: Optional[str] = None,
    sub_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Build the full view for ``page`` as seen by ``user``.

    Returns ``{"view", "status", "errors", "payload"}``. The payload is empty
    while any query the page depends on is still loading or has failed, and
    for pages whose content is owned by another service.
    """
    auth = _as_user(user)
    descriptor = select_view(auth.role, page, sub_id)
    filters = normalize_filters(raw_filters)
    out: Dict[str, Any] = {"view": descriptor.to_dict(), "status": QueryStatus.READY.value, "errors": {}, "payload": {}}

    denied = access_denied(descriptor)
    if denied is not None:
        logger.debug("%s denied for role %s", descriptor.page.value, descriptor.role.value)
        out["payload"] = denied
        return out

    builder = PAGE_BUILDERS.get(descriptor.page)
    if builder is None:
        return out

    status, errors = overall_status(snapshot, PAGE_ENTITIES.get(descriptor.page, []))
    out["status"] = status.value
    out["errors"] = errors
    if status != QueryStatus.READY:
        return out

    ctx = prepare_context(auth, snapshot, reference=reference, settings=settings)
    out["payload"] = builder(filters, ctx, **_page_kwargs(descriptor, view_mode))
    return out


def _page_kwargs(descriptor: ViewDescriptor, view_mode: Optional[str]) -> Dict[str, Any]:
    if descriptor.page == PageId.TIME_ENTRIES:
        return {"view_mode": view_mode or "week"}
    if descriptor.page == PageId.PROJECT_DETAIL:
        return {"project_id": descriptor.sub_id}
    return {}


def export_frame(
    user: Any,
    page: Any,
    raw_filters: Optional[Mapping[str, Any]],
    snapshot: Mapping[str, QueryResult],
    *,
    reference: Any = None,
    settings: Optional[DashboardSettings] = None,
    view_mode: Optional[str] = None,
    sub_id: Optional[str] = None,
) -> pd.DataFrame:
    """The rows ``page`` lists for ``user``, for CSV export.

    Built by the same helpers the page payload uses, so scoping, the view
    mode window and the selected project apply identically.
    """
    auth = _as_user(user)
    descriptor = select_view(auth.role, page, sub_id)
    if access_denied(descriptor) is not None:
        raise PermissionError(descriptor.required_capability.value)
    builder = EXPORT_BUILDERS.get(descriptor.page)
    if builder is None:
        return pd.DataFrame()

    ctx = prepare_context(auth, snapshot, reference=reference, settings=settings)
    return builder(normalize_filters(raw_filters), ctx, **_page_kwargs(descriptor, view_mode))
