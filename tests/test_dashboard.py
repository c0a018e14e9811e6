"""Tests for page composition: overviews, pages, access and data status."""

import json

import pytest

from opsboard.dashboard import compose_dashboard, export_frame
from opsboard.data import snapshot_from_records


def _compose(user, page, snapshot, reference, **kwargs):
    return compose_dashboard(user, page, kwargs.pop("filters", None), snapshot, reference=reference, **kwargs)


class TestOverviews:
    def test_admin(self, users, snapshot, reference) -> None:
        out = _compose(users["admin"], "overview", snapshot, reference)
        assert out["view"]["view"] == "admin_overview"
        assert out["status"] == "ready"
        kpis = out["payload"]["kpis"]
        assert kpis["active_companies"] == 2
        assert kpis["active_projects"] == 2
        assert kpis["open_tickets"] == 2
        assert kpis["critical_tickets"] == 2
        assert kpis["pending_invitations"] == 1
        assert out["payload"]["projects_by_state"]["pending_approval"] == 1

    def test_kam(self, users, snapshot, reference) -> None:
        out = _compose(users["kam"], "dashboard", snapshot, reference)
        payload = out["payload"]
        assert payload["kpis"]["pending_approval"] == 1
        c1 = next(c for c in payload["companies"] if c["id"] == "c1")
        assert c1["total_projects"] == 2
        assert c1["active_projects"] == 1

    def test_project_leader(self, users, snapshot, reference) -> None:
        payload = _compose(users["pl"], "overview", snapshot, reference)["payload"]
        assert payload["kpis"]["in_review"] == 1
        assert payload["kpis"]["hours_this_month"] == 20.0
        progress = {p["id"]: p["progress"] for p in payload["projects"]}
        assert progress["p1"] == 33
        assert progress["p4"] == 50

    def test_developer(self, users, snapshot, reference) -> None:
        payload = _compose(users["dev"], "overview", snapshot, reference)["payload"]
        assert payload["kpis"]["my_tickets"] == 3
        assert payload["kpis"]["in_progress"] == 1
        assert payload["kpis"]["in_review"] == 1
        assert payload["kpis"]["hours_this_week"] == 12.0
        assert payload["weekly_goal"]["percentage"] == 30.0

    def test_customer_is_company_scoped(self, users, snapshot, reference) -> None:
        payload = _compose(users["customer"], "overview", snapshot, reference)["payload"]
        assert payload["kpis"] == {"total_projects": 2, "active_projects": 1, "open_tickets": 2, "critical_tickets": 2}
        assert {t["project_id"] for t in payload["recent_tickets"]} == {"p1"}

    def test_unknown_role_gets_customer_view(self, snapshot, reference) -> None:
        out = _compose({"id": "x", "role": "superuser"}, "overview", snapshot, reference)
        assert out["view"]["view"] == "customer_overview"
        assert out["payload"]["kpis"]["total_projects"] == 0


class TestPages:
    def test_time_entries_grouped_by_project(self, users, snapshot, reference) -> None:
        out = _compose(users["dev"], "dashboardTimeEntries", snapshot, reference, view_mode="week")
        payload = out["payload"]
        assert out["view"]["view"] == "time_tracking"
        assert payload["summary"]["today_hours"] == 8.0
        assert [g["project_id"] for g in payload["groups"]] == ["p1", "p4"]
        assert payload["groups"][0]["total_hours"] == 8.0
        assert payload["groups"][1]["total_hours"] == 4.0
        assert payload["charts"]["hours_per_day"] is not None

    def test_time_entries_search_by_project_name(self, users, snapshot, reference) -> None:
        payload = _compose(users["admin"], "time-entries", snapshot, reference, view_mode="month", filters={"search": "route"})["payload"]
        assert payload["entry_count"] == 2
        assert payload["total_hours"] == 6.0

    def test_projects(self, users, snapshot, reference) -> None:
        payload = _compose(users["admin"], "projects", snapshot, reference, filters={"status_filter": "in_progress"})["payload"]
        rows = {p["id"]: p for p in payload["projects"]}
        assert set(rows) == {"p1", "p4"}
        assert rows["p4"]["days_remaining"] == 2
        assert rows["p4"]["progress_band"] == "red"
        assert rows["p1"]["ticket_count"] == 3
        assert payload["can_create"] is True

    def test_project_detail(self, users, snapshot, reference) -> None:
        out = _compose(users["admin"], "project-detail", snapshot, reference, sub_id="p1")
        payload = out["payload"]
        assert out["view"]["view"] == "project_detail"
        assert payload["found"] is True
        assert payload["kpis"]["total_tickets"] == 3
        assert payload["kpis"]["hours_logged"] == 14.0
        assert payload["kpis"]["budget_used"] == 0.25

    def test_project_detail_outside_scope(self, users, snapshot, reference) -> None:
        payload = _compose(users["customer"], "project-detail", snapshot, reference, sub_id="p4")["payload"]
        assert payload["found"] is False

    def test_tickets(self, users, snapshot, reference) -> None:
        payload = _compose(users["admin"], "tickets", snapshot, reference, filters={"priority_filter": "critical"})["payload"]
        assert [t["id"] for t in payload["tickets"]] == ["t1"]
        assert payload["tickets"][0]["sla"]["status"] == "critical"
        assert payload["tickets"][0]["project_name"] == "Webshop relaunch"
        assert payload["stats"]["total"] == 5
        assert payload["sla"]["percentage"] == 50

    def test_companies_status_filter(self, users, snapshot, reference) -> None:
        payload = _compose(users["admin"], "companies", snapshot, reference, filters={"status_filter": "inactive"})["payload"]
        assert [c["id"] for c in payload["companies"]] == ["c3"]
        assert payload["stats"]["active_clients"] == 2

    def test_team_for_non_manager_is_self_only(self, users, snapshot, reference) -> None:
        payload = _compose(users["dev"], "team", snapshot, reference)["payload"]
        assert [m["id"] for m in payload["members"]] == ["u4"]
        assert payload["can_manage"] is False

    def test_team_for_manager(self, users, snapshot, reference) -> None:
        payload = _compose(users["kam"], "team", snapshot, reference, filters={"category_filter": "developer"})["payload"]
        assert [m["id"] for m in payload["members"]] == ["u4", "u5"]

    def test_documents(self, users, snapshot, reference) -> None:
        payload = _compose(users["pl"], "documents", snapshot, reference)["payload"]
        assert payload["stats"]["recent_uploads"] == 1
        assert payload["documents"][0]["id"] == "d1"
        assert payload["can_upload"] is True

    def test_integrations_and_api_portal(self, users, snapshot, reference) -> None:
        integrations = _compose(users["kam"], "integrations", snapshot, reference)["payload"]
        assert [i["id"] for i in integrations["connected"]] == ["slack", "jira"]
        api = _compose(users["kam"], "api-portal", snapshot, reference)["payload"]
        assert api["can_manage"] is True
        assert api["stats"]["total_requests"] == 1790
        assert [k["id"] for k in api["api_keys"]] == ["k2", "k1", "k3"]

    def test_api_key_secrets_never_leave_the_payload(self, users, records, reference) -> None:
        records["apiKeys"][0]["key"] = "sf_live_SECRET"
        records["apiKeys"][1]["secretHash"] = "abc123"
        snap = snapshot_from_records(records)
        payload = _compose(users["admin"], "api-portal", snap, reference)["payload"]
        for row in payload["api_keys"]:
            assert "key" not in row
            assert "secret_hash" not in row
        assert "sf_live_SECRET" not in json.dumps(payload, default=str)
        frame = export_frame(users["admin"], "api-portal", None, snap, reference=reference)
        assert "key" not in frame.columns
        assert "secret_hash" not in frame.columns

    def test_settings(self, users, snapshot, reference) -> None:
        payload = _compose(users["pl"], "settings", snapshot, reference)["payload"]
        assert payload["role_label"] == "Project Leader"
        assert "view-analytics" in payload["capabilities"]

    def test_external_pages_have_empty_payload(self, users, snapshot, reference) -> None:
        out = _compose(users["admin"], "ai-chat", snapshot, reference)
        assert out["view"]["view"] == "ai_chat"
        assert out["payload"] == {}

    def test_payload_is_json_serializable(self, users, snapshot, reference) -> None:
        for page in ("overview", "projects", "tickets", "time-entries", "analytics", "audit-log"):
            json.dumps(_compose(users["admin"], page, snapshot, reference)["payload"], default=str)


class TestAccess:
    @pytest.mark.parametrize("user_key", ["kam", "pl", "dev", "customer"])
    def test_audit_log_is_admin_only(self, users, snapshot, reference, user_key) -> None:
        payload = _compose(users[user_key], "audit-log", snapshot, reference)["payload"]
        assert payload == {"access_denied": True, "required_capability": "view-audit-log"}

    def test_admin_audit_log_sorted_newest_first(self, users, snapshot, reference) -> None:
        payload = _compose(users["admin"], "audit-log", snapshot, reference, filters={"search": "erik"})["payload"]
        assert [e["id"] for e in payload["events"]] == ["a2"]
        assert payload["stats"]["today_events"] == 2

    @pytest.mark.parametrize("page", ["api-portal", "integrations"])
    @pytest.mark.parametrize("user_key", ["pl", "dev", "customer"])
    def test_key_and_integration_pages_need_manager(self, users, snapshot, reference, page, user_key) -> None:
        payload = _compose(users[user_key], page, snapshot, reference)["payload"]
        assert payload["access_denied"] is True
        with pytest.raises(PermissionError):
            export_frame(users[user_key], page, None, snapshot, reference=reference)

    def test_analytics(self, users, snapshot, reference) -> None:
        assert _compose(users["dev"], "analytics", snapshot, reference)["payload"]["access_denied"] is True
        payload = _compose(users["pl"], "analytics", snapshot, reference)["payload"]
        health = {p["project_id"]: p["health"] for p in payload["project_health"]}
        assert health == {"p1": "on_track", "p4": "at_risk"}
        assert payload["kpis"]["tickets_total"] == 5

    def test_export_denied(self, users, snapshot, reference) -> None:
        with pytest.raises(PermissionError):
            export_frame(users["customer"], "audit-log", None, snapshot, reference=reference)

    def test_export_is_scoped_and_filtered(self, users, snapshot, reference) -> None:
        frame = export_frame(users["customer"], "tickets", {"status_filter": "open"}, snapshot, reference=reference)
        assert frame["id"].tolist() == ["t1"]


class TestStatus:
    def test_error_is_reported(self, users, records, reference) -> None:
        snap = snapshot_from_records(records, errors={"tickets": "network down"})
        out = _compose(users["admin"], "tickets", snap, reference)
        assert out["status"] == "error"
        assert out["errors"] == {"tickets": "network down"}
        assert out["payload"] == {}

    def test_unrelated_error_does_not_block_page(self, users, records, reference) -> None:
        snap = snapshot_from_records(records, errors={"api_keys": "boom"})
        assert _compose(users["admin"], "tickets", snap, reference)["status"] == "ready"

    def test_loading(self, users, records, reference) -> None:
        snap = snapshot_from_records(records, loading=["time_entries"])
        assert _compose(users["dev"], "time-entries", snap, reference)["status"] == "loading"


class TestExport:
    """The CSV holds exactly the rows the page lists."""

    def test_developer_time_export_is_own_entries_in_week(self, users, snapshot, reference) -> None:
        frame = export_frame(users["dev"], "time-entries", None, snapshot, reference=reference)
        page = _compose(users["dev"], "time-entries", snapshot, reference)["payload"]
        assert set(frame["user_id"]) == {"u4"}
        assert frame["id"].tolist() == ["e1", "e2", "e3"]
        assert len(frame) == page["entry_count"]

    def test_time_export_follows_view_mode(self, users, snapshot, reference) -> None:
        dev = export_frame(users["dev"], "time-entries", None, snapshot, reference=reference, view_mode="month")
        assert sorted(dev["id"]) == ["e1", "e2", "e3", "e4"]
        admin = export_frame(users["admin"], "time-entries", None, snapshot, reference=reference, view_mode="month")
        assert sorted(admin["id"]) == ["e1", "e2", "e3", "e4", "e5"]

    def test_project_detail_exports_its_tickets(self, users, snapshot, reference) -> None:
        frame = export_frame(users["admin"], "project-detail", None, snapshot, reference=reference, sub_id="p1")
        assert frame["id"].tolist() == ["t1", "t2", "t3"]
        assert "title" in frame.columns

    def test_project_detail_outside_scope_exports_nothing(self, users, snapshot, reference) -> None:
        frame = export_frame(users["customer"], "project-detail", None, snapshot, reference=reference, sub_id="p4")
        assert frame.empty

    def test_team_export_for_non_manager_is_self_only(self, users, snapshot, reference) -> None:
        frame = export_frame(users["dev"], "team", None, snapshot, reference=reference)
        assert frame["id"].tolist() == ["u4"]
