from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, Mapping, Optional, Tuple

import pandas as pd

from opsboard.config import OpsboardSettings
from opsboard.windows import DEFAULT_TZ, Window, normalize_window, to_timestamp, window_mask


logger = logging.getLogger(__name__)

ALL = "all"


@dataclass(frozen=True)
class DashboardSettings:
    timezone: str = DEFAULT_TZ
    weekly_goal_hours: float = 40.0
    recent_upload_days: int = 7
    recent_items: int = 5
    sla_warning_hours: float = 4.0
    sla_critical_hours: float = 1.0


@dataclass(frozen=True)
class EntityFilters:
    search: str = ""
    category_filter: str = ALL
    status_filter: str = ALL
    priority_filter: str = ALL
    project_filter: str = ALL
    date_window: str = Window.ALL.value


@dataclass(frozen=True)
class FilterSpec:
    search_fields: Tuple[str, ...] = ()
    category_field: Optional[str] = None
    status_field: Optional[str] = None
    priority_field: Optional[str] = None
    project_field: Optional[str] = None
    date_field: Optional[str] = None


FILTER_SPECS: Dict[str, FilterSpec] = {
    "projects": FilterSpec(search_fields=("name", "description"), category_field="company_id", status_field="state", date_field="start_date"),
    "tickets": FilterSpec(
        search_fields=("title", "description"),
        status_field="state",
        priority_field="priority",
        project_field="project_id",
        date_field="created_at",
    ),
    "time_entries": FilterSpec(search_fields=("description", "project_name"), project_field="project_id", date_field="date"),
    "companies": FilterSpec(search_fields=("name", "org_number"), status_field="activity_status"),
    "team": FilterSpec(search_fields=("name", "email"), category_field="role", status_field="status", date_field="last_active"),
    "documents": FilterSpec(search_fields=("name",), category_field="type", project_field="project_id", date_field="uploaded_at"),
    "audit_events": FilterSpec(
        search_fields=("user_name", "user_email", "action", "resource_name"),
        category_field="category",
        status_field="status",
        date_field="timestamp",
    ),
    "integrations": FilterSpec(search_fields=("name", "description"), category_field="category", status_field="status"),
    "api_keys": FilterSpec(search_fields=("name",), status_field="status", date_field="created_at"),
}


def _as_choice(value: Any) -> str:
    if value is None:
        return ALL
    s = str(value).strip()
    return s if s else ALL


def normalize_filters(raw: Optional[Mapping[str, Any]]) -> EntityFilters:
    raw = raw or {}
    search = raw.get("search")
    if search is None:
        search = raw.get("q") or ""
    return EntityFilters(
        search=str(search).strip(),
        category_filter=_as_choice(raw.get("category_filter")),
        status_filter=_as_choice(raw.get("status_filter")),
        priority_filter=_as_choice(raw.get("priority_filter")),
        project_filter=_as_choice(raw.get("project_filter")),
        date_window=normalize_window(raw.get("date_window", Window.ALL.value)).value,
    )


def normalize_settings(raw: Optional[Mapping[str, Any]] = None, *, base: Optional[DashboardSettings] = None) -> DashboardSettings:
    base = base or DashboardSettings()
    raw = raw or {}

    def _num(key: str, cast, minimum):
        value = raw.get(key, getattr(base, key))
        try:
            value = cast(value)
        except (TypeError, ValueError):
            value = getattr(base, key)
        return max(minimum, value)

    tz = str(raw.get("timezone") or base.timezone).strip() or DEFAULT_TZ
    try:
        pd.Timestamp.now(tz=tz)
    except Exception:
        logger.warning("unknown timezone %r, using %s", tz, base.timezone)
        tz = base.timezone

    return DashboardSettings(
        timezone=tz,
        weekly_goal_hours=_num("weekly_goal_hours", float, 0.0),
        recent_upload_days=_num("recent_upload_days", int, 0),
        recent_items=_num("recent_items", int, 1),
        sla_warning_hours=_num("sla_warning_hours", float, 0.0),
        sla_critical_hours=_num("sla_critical_hours", float, 0.0),
    )


def settings_from_env(env: Optional[OpsboardSettings] = None) -> DashboardSettings:
    """Dashboard defaults with the timezone and weekly goal taken from ``OPSBOARD_*``."""
    env = env or OpsboardSettings()
    return normalize_settings({"timezone": env.timezone, "weekly_goal_hours": env.weekly_goal_hours})


def _is_active(value: Optional[str]) -> bool:
    return bool(value) and value.lower() != ALL


def _search_mask(df: pd.DataFrame, fields: Tuple[str, ...], query: str) -> pd.Series:
    q = query.lower()
    mask = pd.Series(False, index=df.index, dtype=bool)
    for col in fields:
        if col not in df.columns:
            continue
        values = df[col].astype("string").str.lower()
        mask = mask | values.str.contains(q, regex=False, na=False).astype(bool)
    return mask


def _equals_mask(df: pd.DataFrame, column: Optional[str], value: str) -> pd.Series:
    if column is None:
        return pd.Series(True, index=df.index, dtype=bool)
    if column not in df.columns:
        return pd.Series(False, index=df.index, dtype=bool)
    return df[column].astype("string").eq(value).fillna(False).astype(bool)


def apply_filters(
    df: pd.DataFrame,
    filters: EntityFilters,
    spec: FilterSpec,
    *,
    reference: Any = None,
    tz: str = DEFAULT_TZ,
) -> pd.DataFrame:
    """AND together every active filter; row order of ``df`` is preserved."""
    if df.empty:
        return df
    mask = pd.Series(True, index=df.index, dtype=bool)
    if filters.search:
        mask &= _search_mask(df, spec.search_fields, filters.search)
    if _is_active(filters.category_filter):
        mask &= _equals_mask(df, spec.category_field, filters.category_filter)
    if _is_active(filters.status_filter):
        mask &= _equals_mask(df, spec.status_field, filters.status_filter)
    if _is_active(filters.priority_filter):
        mask &= _equals_mask(df, spec.priority_field, filters.priority_filter)
    if _is_active(filters.project_filter):
        mask &= _equals_mask(df, spec.project_field, filters.project_filter)
    window = normalize_window(filters.date_window)
    if window != Window.ALL and spec.date_field:
        if spec.date_field in df.columns:
            mask &= window_mask(df[spec.date_field], window, reference, tz)
        else:
            mask &= False
    return df[mask]


def sort_by_date_desc(df: pd.DataFrame, column: str, tz: str = DEFAULT_TZ) -> pd.DataFrame:
    if df.empty or column not in df.columns:
        return df
    keys = df[column].map(lambda v: to_timestamp(v, tz))
    order = pd.Series([k.value if k is not None else pd.NA for k in keys], index=df.index, dtype="Int64")
    # Stable sort; rows without a parseable date go last.
    return df.loc[order.sort_values(ascending=False, kind="mergesort", na_position="last").index]


def filter_summary(filters: EntityFilters) -> Dict[str, Any]:
    return {k: v for k, v in {
        "search": filters.search or None,
        "category": filters.category_filter if _is_active(filters.category_filter) else None,
        "status": filters.status_filter if _is_active(filters.status_filter) else None,
        "priority": filters.priority_filter if _is_active(filters.priority_filter) else None,
        "project": filters.project_filter if _is_active(filters.project_filter) else None,
        "window": filters.date_window if filters.date_window != Window.ALL.value else None,
    }.items() if v is not None}


def with_defaults(filters: EntityFilters, **overrides: Any) -> EntityFilters:
    return replace(filters, **{k: v for k, v in overrides.items() if v is not None})


__all__ = [
    "ALL",
    "DashboardSettings",
    "EntityFilters",
    "FILTER_SPECS",
    "FilterSpec",
    "apply_filters",
    "filter_summary",
    "normalize_filters",
    "normalize_settings",
    "settings_from_env",
    "sort_by_date_desc",
    "with_defaults",
]
