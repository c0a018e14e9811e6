import pandas as pd
import streamlit as st
from contextlib import contextmanager
from dataclasses import asdict
from typing import Any, Dict, Optional

from opsboard.dashboard import compose_dashboard, export_frame
from opsboard.data import DATA_DIR, _load_snapshot_cached, get_source_files, load_snapshot
from opsboard.filters import filter_summary, settings_from_env
from opsboard.roles import ROLE_PRECEDENCE, AuthUser, CanonicalRole, role_label
from opsboard.state import ViewState, ViewStatus, initial_state, reduce
from opsboard.views import PageId, visible_pages
from opsboard.windows import Window


WINDOW_OPTIONS = [w.value for w in Window]

# Payload keys rendered as tables, in display order.
TABLE_KEYS = [
    "projects",
    "tickets",
    "groups",
    "documents",
    "companies",
    "members",
    "events",
    "connected",
    "available",
    "api_keys",
    "recent_companies",
    "pending_invitations",
    "pending_approval",
    "review_queue",
    "my_open_tickets",
    "active_projects",
    "recent_tickets",
    "open_tickets",
    "recent_time_entries",
    "time_entries",
    "project_health",
    "priority_distribution",
]


# ---------- View state ----------
def view_state(page: str) -> ViewState:
    states = st.session_state.setdefault("view_states", {})
    if page not in states:
        states[page] = initial_state(page.replace("-", "_"))
    return states[page]


def dispatch(page: str, action: Dict[str, Any]) -> ViewState:
    state = reduce(view_state(page), action)
    st.session_state["view_states"][page] = state
    return state


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .app-top-bar {padding: 6px 0 4px;border-bottom: 1px solid #e5e7eb;margin-bottom: 10px;}
        .app-top-bar .breadcrumb {color: #6b7280;font-size: 0.9rem;margin-bottom: 2px;}
        .app-top-bar .page-title {font-size: 1.4rem;font-weight: 700;color: #111827;}
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-header {display: flex;justify-content: space-between;align-items: center;margin-bottom: 8px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #f3f4f6;border: 1px solid #e5e7eb;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str):
    container = st.container()
    container.markdown(
        f"""
        <div class="card">
          <div class="card-header"><div class="card-title">{title}</div></div>
        """,
        unsafe_allow_html=True,
    )
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def format_filter_summary(active: Dict[str, Any]) -> str:
    if not active:
        return "<span class='chip'>No filters</span>"
    return "".join(f"<span class='chip'>{k.title()}: {v}</span>" for k, v in active.items())


def render_page_header(title: str, breadcrumb: str, filter_summary_html: str, export_df: Optional[pd.DataFrame] = None, export_name: str = "export.csv"):
    inject_base_styles()
    c1, c2 = st.columns([8, 2])
    with c1:
        st.markdown(
            f"<div class='app-top-bar'><div class='breadcrumb'>{breadcrumb}</div><div class='page-title'>{title}</div></div>",
            unsafe_allow_html=True,
        )
    with c2:
        btn_cols = st.columns(2)
        if btn_cols[0].button("Refresh"):
            _load_snapshot_cached.cache_clear()
            st.rerun()
        if export_df is not None and not export_df.empty:
            btn_cols[1].download_button(
                "Export CSV",
                data=export_df.to_csv(index=False).encode("utf-8"),
                file_name=export_name,
                mime="text/csv",
            )
    st.markdown(f"<div class='chip-row'>{filter_summary_html}</div>", unsafe_allow_html=True)


def render_kpis(kpis: Dict[str, Any]):
    if not kpis:
        return
    items = list(kpis.items())
    for start in range(0, len(items), 4):
        cols = st.columns(4)
        for col, (key, value) in zip(cols, items[start : start + 4]):
            if isinstance(value, float):
                value = f"{value:,.1f}"
            col.metric(key.replace("_", " ").title(), "–" if value is None else value)


def render_payload(payload: Dict[str, Any]):
    if payload.get("access_denied"):
        st.warning(f"You do not have access to this page (requires `{payload.get('required_capability')}`).")
        return
    if not payload:
        st.info("This page is provided by another service.")
        return

    with card("Key figures"):
        render_kpis(payload.get("kpis") or payload.get("stats") or payload.get("summary") or {})
        goal = payload.get("weekly_goal")
        if goal:
            st.progress(int(goal["percentage"]), text=f"Weekly goal: {goal['current']:.1f} / {goal['goal']:.0f} h ({goal['band']})")
        sla = payload.get("sla")
        if sla:
            st.caption(f"SLA compliance: {sla['percentage']}% ({sla['within_sla']} of {sla['total_resolved']} resolved)")

    charts = {k: v for k, v in (payload.get("charts") or {}).items() if v}
    if charts:
        cols = st.columns(len(charts))
        for col, (name, spec) in zip(cols, charts.items()):
            with col:
                with card(name.replace("_", " ").title()):
                    st.vega_lite_chart(spec, use_container_width=True)

    for key in TABLE_KEYS:
        rows = payload.get(key)
        if not isinstance(rows, list):
            continue
        with card(key.replace("_", " ").title()):
            if not rows:
                st.info("Nothing matches the current filters.")
            elif key == "groups":
                for group in rows:
                    st.markdown(f"**{group.get('project_name') or group.get('project_id') or 'No project'}** · {group['total_hours']:.1f} h")
                    st.dataframe(pd.DataFrame(group["entries"]), use_container_width=True, hide_index=True)
            else:
                st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)

    if "profile" in payload:
        with card("Profile"):
            st.json({**payload["profile"], "role": payload.get("role_label"), "capabilities": payload.get("capabilities")})


# ---------- UI setup ----------
st.set_page_config(page_title="Opsboard", layout="wide")
inject_base_styles()
st.title("Opsboard")
st.caption("Role-based operations dashboard over the local data snapshot.")

if not get_source_files():
    st.warning(f"No data files found in {DATA_DIR}. Pages will be empty.")

settings = settings_from_env()
snapshot = load_snapshot()

# ----- Sidebar: simulated user + navigation + filters -----
with st.sidebar:
    st.markdown("### Signed in as")
    role = st.selectbox("Role", options=[r.value for r in ROLE_PRECEDENCE], format_func=role_label)
    user_id = st.text_input("User id", "u1")
    company_id = st.text_input("Company id (optional)", "")

    st.markdown("---")
    st.markdown("### Navigate")
    page = st.radio("Page", options=[p.value for p in visible_pages(role)], format_func=lambda p: p.replace("-", " ").title())
    state = view_state(page)
    if page == PageId.PROJECTS.value:
        state = dispatch(page, {"type": "select", "id": st.text_input("Open project id (optional)", "") or None})

    st.markdown("---")
    st.markdown("### Quick filters")
    widgets = {
        "search": st.text_input("Search", state.filters.search),
        "status_filter": st.text_input("Status", state.filters.status_filter),
        "priority_filter": st.text_input("Priority", state.filters.priority_filter),
        "date_window": st.selectbox("Date window", WINDOW_OPTIONS, index=WINDOW_OPTIONS.index(state.filters.date_window)),
    }
    for key, value in widgets.items():
        state = dispatch(page, {"type": "set_filter", "key": key, "value": value})
    if page == PageId.TIME_ENTRIES.value:
        modes = ["week", "month"]
        mode = st.radio("Time view", modes, index=modes.index(state.view_mode) if state.view_mode in modes else 0, horizontal=True)
        state = dispatch(page, {"type": "set_view_mode", "value": mode})

user = AuthUser(id=user_id or None, role=CanonicalRole(role), company_id=company_id or None, name=role_label(role))
raw_filters = asdict(state.filters)
target = PageId.PROJECT_DETAIL.value if state.selected_id else page

state = dispatch(page, {"type": "fetch_started"})
seq = state.request_seq
result = compose_dashboard(user, target, raw_filters, snapshot, settings=settings, view_mode=state.view_mode, sub_id=state.selected_id)
if result["status"] == "error":
    message = "; ".join(f"{k}: {v}" for k, v in result["errors"].items())
    state = dispatch(page, {"type": "fetch_failed", "request_seq": seq, "error": message})
elif result["status"] == "ready":
    state = dispatch(page, {"type": "fetch_succeeded", "request_seq": seq})
view = result["view"]

export_df = None
if not result["payload"].get("access_denied") and state.status == ViewStatus.READY:
    export_df = export_frame(user, target, raw_filters, snapshot, settings=settings, view_mode=state.view_mode, sub_id=state.selected_id)

render_page_header(
    view["view"].replace("_", " ").title(),
    f"{role_label(view['role'])} / {view['page']}",
    format_filter_summary(filter_summary(state.filters)),
    export_df=export_df,
    export_name=f"{view['page']}.csv",
)

if state.status == ViewStatus.ERROR:
    st.error("Some data failed to load: " + (state.error or ""))
elif state.status == ViewStatus.LOADING:
    st.info("Loading…")
else:
    render_payload(result["payload"])
