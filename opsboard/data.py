from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd

from opsboard.config import OpsboardSettings
from opsboard.filters import DashboardSettings
from opsboard.roles import SCOPE_NONE, AuthUser, company_scope, user_from_record


logger = logging.getLogger(__name__)

DATA_DIR = OpsboardSettings().data_dir
FILE_GLOB = "*.json"

ENTITY_COLUMNS: Dict[str, List[str]] = {
    "companies": ["id", "name", "org_number", "city", "is_active"],
    "projects": [
        "id",
        "name",
        "description",
        "company_id",
        "state",
        "budget",
        "spent",
        "start_date",
        "target_end_date",
        "estimated_end_date",
        "is_priority",
    ],
    "tickets": [
        "id",
        "project_id",
        "title",
        "description",
        "state",
        "priority",
        "assignee_id",
        "created_at",
        "resolved_at",
        "sla_resolution_due_at",
        "sla_response_due_at",
        "first_response_at",
    ],
    "time_entries": ["id", "project_id", "user_id", "date", "hours", "description"],
    "documents": ["id", "project_id", "name", "type", "size", "starred", "uploaded_at"],
    "team": ["id", "email", "first_name", "last_name", "name", "role", "company_id", "status", "last_active"],
    "invitations": ["id", "email", "role", "company_id", "accepted_at", "cancelled_at", "expires_at"],
    "audit_events": [
        "id",
        "timestamp",
        "user_name",
        "user_email",
        "action",
        "category",
        "resource_type",
        "resource_id",
        "resource_name",
        "ip_address",
        "status",
    ],
    "integrations": ["id", "name", "description", "category", "status"],
    "api_keys": ["id", "name", "status", "request_count", "created_at", "last_used_at"],
}

ID_COLUMNS = ["id", "project_id", "company_id", "user_id", "assignee_id", "resource_id"]
NUMERIC_COLUMNS = ["hours", "budget", "spent", "size", "request_count"]
NON_NEGATIVE_COLUMNS = ["hours", "size", "request_count"]

# File stems accepted for each entity ("timeEntries.json", "time-entries.json", ...).
ENTITY_ALIASES: Dict[str, str] = {
    "timeentries": "time_entries",
    "time_entries": "time_entries",
    "teammembers": "team",
    "team_members": "team",
    "users": "team",
    "auditlog": "audit_events",
    "audit_log": "audit_events",
    "auditevents": "audit_events",
    "apikeys": "api_keys",
}


class QueryStatus(str, Enum):
    LOADING = "loading"
    ERROR = "error"
    READY = "ready"


@dataclass(frozen=True)
class QueryResult:
    status: QueryStatus
    frame: pd.DataFrame = field(default_factory=pd.DataFrame)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == QueryStatus.READY


def snake_case(name: str) -> str:
    s = re.sub(r"(?<=[a-z0-9])([A-Z])", r"_\1", str(name).strip())
    return re.sub(r"[\s\-]+", "_", s).lower()


def entity_key(name: str) -> Optional[str]:
    key = snake_case(name)
    if key in ENTITY_COLUMNS:
        return key
    return ENTITY_ALIASES.get(key) or ENTITY_ALIASES.get(key.replace("_", ""))


def round_half_up(value: object, ndigits: int = 0) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    q = Decimal(10) ** -ndigits
    return float(Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP))


def numericize(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce")
    return df


def coerce_str_safe(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col in df.columns:
            series = df[col].astype("string").str.strip()
            series = series.replace({"nan": pd.NA, "None": pd.NA, "": pd.NA})
            df[col] = series
    return df


def _flatten_record(record: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, value in record.items():
        # Audit events nest the acting user: {"user": {"name": ..., "email": ...}}.
        if key == "user" and isinstance(value, Mapping):
            for sub_key, sub_value in value.items():
                out[f"user_{snake_case(sub_key)}"] = sub_value
            continue
        out[snake_case(key)] = value
    return out


def to_frame(entity: str, records: Optional[Iterable[Mapping[str, Any]]]) -> pd.DataFrame:
    key = entity_key(entity) or snake_case(entity)
    columns = ENTITY_COLUMNS.get(key, [])
    rows = [_flatten_record(r) for r in (records or []) if isinstance(r, Mapping)]
    df = pd.DataFrame(rows)
    for col in columns:
        if col not in df.columns:
            df[col] = None
    if df.empty:
        return df

    df = coerce_str_safe(df, [c for c in ID_COLUMNS if c in df.columns])
    df = numericize(df, [c for c in NUMERIC_COLUMNS if c in df.columns])
    for col in NON_NEGATIVE_COLUMNS:
        if col not in df.columns:
            continue
        values = df[col].astype("float64")
        bad = values.isna() | (values < 0)
        if bad.any():
            logger.warning("%s: %d rows with missing or negative %s coerced to 0", key, int(bad.sum()), col)
        df[col] = values.where(~bad, 0.0)
    if key == "team" and "name" in df.columns:
        full = (df["first_name"].fillna("").astype(str) + " " + df["last_name"].fillna("").astype(str)).str.strip()
        df["name"] = df["name"].where(df["name"].notna(), full.replace({"": pd.NA}))
    return df


def empty_frame(entity: str) -> pd.DataFrame:
    return to_frame(entity, [])


# ---------------- Snapshot loading ----------------
def get_source_files(data_dir: Optional[Path] = None) -> List[Path]:
    base = Path(data_dir) if data_dir else DATA_DIR
    if not base.is_dir():
        return []
    return sorted(p for p in base.glob(FILE_GLOB) if entity_key(p.stem))


def file_signature(files: List[Path]) -> Tuple[Tuple[str, float], ...]:
    return tuple((str(f), f.stat().st_mtime) for f in files)


def _read_records(path: Path) -> List[Dict[str, Any]]:
    with path.open("r", encoding="utf-8") as fh:
        payload = json.load(fh)
    if isinstance(payload, Mapping):
        payload = payload.get("data", [])
    if not isinstance(payload, list):
        raise ValueError(f"{path.name}: expected a list of records")
    return payload


@lru_cache(maxsize=4)
def _load_snapshot_cached(files_sig: Tuple[Tuple[str, float], ...]) -> Dict[str, QueryResult]:
    snapshot: Dict[str, QueryResult] = {name: QueryResult(QueryStatus.READY, empty_frame(name)) for name in ENTITY_COLUMNS}
    for name, _ in files_sig:
        path = Path(name)
        key = entity_key(path.stem)
        try:
            snapshot[key] = QueryResult(QueryStatus.READY, to_frame(key, _read_records(path)))
        except (OSError, ValueError) as exc:
            logger.warning("failed to load %s: %s", path.name, exc)
            snapshot[key] = QueryResult(QueryStatus.ERROR, empty_frame(key), error=str(exc))
    return snapshot


def load_snapshot(data_dir: Optional[Path] = None) -> Dict[str, QueryResult]:
    files = get_source_files(data_dir)
    if not files:
        return {name: QueryResult(QueryStatus.READY, empty_frame(name)) for name in ENTITY_COLUMNS}
    return _load_snapshot_cached(file_signature(files))


def snapshot_from_records(
    records: Mapping[str, Any],
    *,
    errors: Optional[Mapping[str, str]] = None,
    loading: Iterable[str] = (),
) -> Dict[str, QueryResult]:
    """Build a snapshot from in-memory records keyed by entity name."""
    snapshot: Dict[str, QueryResult] = {name: QueryResult(QueryStatus.READY, empty_frame(name)) for name in ENTITY_COLUMNS}
    for name, rows in (records or {}).items():
        key = entity_key(name)
        if key is None:
            logger.debug("ignoring unknown entity %r", name)
            continue
        snapshot[key] = QueryResult(QueryStatus.READY, to_frame(key, rows))
    for name, message in (errors or {}).items():
        key = entity_key(name)
        if key:
            snapshot[key] = QueryResult(QueryStatus.ERROR, empty_frame(key), error=message)
    for name in loading:
        key = entity_key(name)
        if key:
            snapshot[key] = QueryResult(QueryStatus.LOADING, empty_frame(key))
    return snapshot


# ---------------- Context ----------------
def _frame(snapshot: Mapping[str, QueryResult], key: str) -> pd.DataFrame:
    result = snapshot.get(key)
    if result is None:
        return empty_frame(key)
    return result.frame.copy()


def overall_status(snapshot: Mapping[str, QueryResult], keys: Iterable[str]) -> Tuple[QueryStatus, Dict[str, str]]:
    errors: Dict[str, str] = {}
    loading = False
    for key in keys:
        result = snapshot.get(key)
        if result is None:
            continue
        if result.status == QueryStatus.ERROR:
            errors[key] = result.error or "failed to fetch"
        elif result.status == QueryStatus.LOADING:
            loading = True
    if errors:
        return QueryStatus.ERROR, errors
    if loading:
        return QueryStatus.LOADING, errors
    return QueryStatus.READY, errors


def prepare_context(
    user: AuthUser | Mapping[str, Any] | None,
    snapshot: Mapping[str, QueryResult],
    *,
    reference: Any = None,
    settings: Optional[DashboardSettings] = None,
) -> Dict[str, Any]:
    auth = user if isinstance(user, AuthUser) else user_from_record(user)
    settings = settings or DashboardSettings()
    reference = reference if reference is not None else pd.Timestamp.now(tz=settings.timezone)

    projects = _frame(snapshot, "projects")
    tickets = _frame(snapshot, "tickets")
    time_entries = _frame(snapshot, "time_entries")
    documents = _frame(snapshot, "documents")
    companies = _frame(snapshot, "companies")

    scope = company_scope(auth)
    if scope is SCOPE_NONE:
        projects = projects.iloc[0:0]
    elif scope is not None:
        projects = projects[projects["company_id"].astype("string").eq(scope).fillna(False).astype(bool)]
        companies = companies[companies["id"].astype("string").eq(scope).fillna(False).astype(bool)]
    if scope is not None:
        project_ids = set(projects["id"].dropna().astype(str))
        tickets = tickets[tickets["project_id"].astype(str).isin(project_ids)]
        time_entries = time_entries[time_entries["project_id"].astype(str).isin(project_ids)]
        documents = documents[documents["project_id"].astype(str).isin(project_ids)]
        if scope is SCOPE_NONE:
            companies = companies.iloc[0:0]

    return {
        "user": auth,
        "role": auth.role,
        "scope": None if scope is SCOPE_NONE else scope,
        "scoped": scope is not None,
        "reference": reference,
        "settings": settings,
        "snapshot": snapshot,
        "companies": companies,
        "projects": projects,
        "tickets": tickets,
        "time_entries": time_entries,
        "documents": documents,
        "team": _frame(snapshot, "team"),
        "invitations": _frame(snapshot, "invitations"),
        "audit_events": _frame(snapshot, "audit_events"),
        "integrations": _frame(snapshot, "integrations"),
        "api_keys": _frame(snapshot, "api_keys"),
    }
