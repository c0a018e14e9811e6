"""Per-view UI state as a single reducer.

A view's state only changes through ``reduce(state, action)``. Fetch results
carry the ``request_seq`` they were started with; a result whose sequence is
older than the state's current one is stale and ignored.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from opsboard.filters import EntityFilters, normalize_filters


logger = logging.getLogger(__name__)


class ViewStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    ERROR = "error"
    READY = "ready"


DEFAULT_VIEW_MODES: Dict[str, str] = {
    "projects": "grid",
    "time_entries": "week",
}

FILTER_KEYS = ("search", "category_filter", "status_filter", "priority_filter", "project_filter", "date_window")


@dataclass(frozen=True)
class ViewState:
    entity: str
    status: ViewStatus = ViewStatus.IDLE
    filters: EntityFilters = field(default_factory=EntityFilters)
    view_mode: str = "list"
    expanded_id: Optional[str] = None
    selected_id: Optional[str] = None
    modal_open: bool = False
    request_seq: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entity": self.entity,
            "status": self.status.value,
            "filters": asdict(self.filters),
            "view_mode": self.view_mode,
            "expanded_id": self.expanded_id,
            "selected_id": self.selected_id,
            "modal_open": self.modal_open,
            "request_seq": self.request_seq,
            "error": self.error,
        }


def initial_state(entity: str, view_mode: Optional[str] = None) -> ViewState:
    return ViewState(entity=entity, view_mode=view_mode or DEFAULT_VIEW_MODES.get(entity, "list"))


def _is_stale(state: ViewState, action: Mapping[str, Any]) -> bool:
    seq = action.get("request_seq")
    if seq is None:
        return False
    try:
        return int(seq) < state.request_seq
    except (TypeError, ValueError):
        return True


def reduce(state: ViewState, action: Mapping[str, Any]) -> ViewState:
    kind = action.get("type") if isinstance(action, Mapping) else None

    if kind == "fetch_started":
        return replace(state, status=ViewStatus.LOADING, request_seq=state.request_seq + 1, error=None)

    if kind in ("fetch_succeeded", "fetch_failed"):
        if _is_stale(state, action):
            logger.debug("%s: dropping stale %s (seq %s < %s)", state.entity, kind, action.get("request_seq"), state.request_seq)
            return state
        if kind == "fetch_succeeded":
            return replace(state, status=ViewStatus.READY, error=None)
        return replace(state, status=ViewStatus.ERROR, error=str(action.get("error") or "failed to fetch"))

    if kind == "set_filter":
        key = action.get("key")
        if key not in FILTER_KEYS:
            return state
        merged = {**asdict(state.filters), key: action.get("value")}
        return replace(state, filters=normalize_filters(merged))

    if kind == "reset_filters":
        return replace(state, filters=EntityFilters())

    if kind == "set_view_mode":
        mode = action.get("value")
        if not mode:
            return state
        return replace(state, view_mode=str(mode))

    if kind == "toggle_expanded":
        item_id = action.get("id")
        return replace(state, expanded_id=None if item_id is None or item_id == state.expanded_id else item_id)

    if kind == "select":
        return replace(state, selected_id=action.get("id"))

    if kind == "open_modal":
        return replace(state, modal_open=True)

    if kind == "close_modal":
        return replace(state, modal_open=False)

    return state
