"""Tests for (role, page) view selection."""

import pytest

from opsboard.roles import CanonicalRole, Capability
from opsboard.views import OVERVIEW_VIEWS, PageId, resolve_page, select_view, visible_pages


class TestResolvePage:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("overview", PageId.OVERVIEW),
            ("dashboard", PageId.OVERVIEW),
            ("dashboardTimeEntries", PageId.TIME_ENTRIES),
            ("time_entries", PageId.TIME_ENTRIES),
            ("api-portal", PageId.API_PORTAL),
            ("dashboardAuditLog", PageId.AUDIT_LOG),
            ("aichat", PageId.AI_CHAT),
        ],
    )
    def test_recognized(self, raw, expected) -> None:
        assert resolve_page(raw) == expected

    @pytest.mark.parametrize("raw", ["nope", "", None, 3])
    def test_unrecognized(self, raw) -> None:
        assert resolve_page(raw) is None


class TestSelectView:
    """select_view is total and role-aware on the overview."""

    @pytest.mark.parametrize("role", list(CanonicalRole))
    def test_overview_per_role(self, role) -> None:
        view = select_view(role, "overview")
        assert view.view == OVERVIEW_VIEWS[role]
        assert view.fell_back is False

    def test_raw_role_is_resolved(self) -> None:
        assert select_view("siteflow_pl", "overview").view == "project_leader_overview"

    def test_unknown_page_falls_back_to_overview(self) -> None:
        view = select_view("siteflow_kam", "made-up-page")
        assert view.page == PageId.OVERVIEW
        assert view.view == "kam_overview"
        assert view.fell_back is True

    def test_unknown_role_and_page(self) -> None:
        view = select_view("superuser", None)
        assert view.role == CanonicalRole.CUSTOMER
        assert view.view == "customer_overview"

    def test_project_detail_needs_an_id(self) -> None:
        assert select_view("admin", "project-detail").page == PageId.PROJECTS
        view = select_view("admin", "project-detail", sub_id="p1")
        assert view.page == PageId.PROJECT_DETAIL
        assert view.sub_id == "p1"

    def test_required_capability(self) -> None:
        assert select_view("admin", "audit-log").required_capability == Capability.VIEW_AUDIT_LOG
        assert select_view("admin", "tickets").required_capability is None

    def test_to_dict(self) -> None:
        data = select_view("customer", "analytics").to_dict()
        assert data == {
            "view": "analytics",
            "page": "analytics",
            "role": "customer",
            "required_capability": "view-analytics",
            "fell_back": False,
            "sub_id": None,
        }


class TestVisiblePages:
    """Navigation shows each role only the pages it may open."""

    def test_admin_sees_everything(self) -> None:
        pages = visible_pages("siteflow_admin")
        assert PageId.AUDIT_LOG in pages
        assert PageId.FILE_BROWSER in pages
        assert PageId.PROJECT_DETAIL not in pages
        assert pages[0] == PageId.OVERVIEW
        assert pages[-1] == PageId.SETTINGS

    def test_kam(self) -> None:
        pages = set(visible_pages("siteflow_kam"))
        assert {PageId.INTEGRATIONS, PageId.API_PORTAL, PageId.TEAM, PageId.ANALYTICS} <= pages
        assert not pages & {PageId.COMPANIES, PageId.AUDIT_LOG, PageId.FORM_RESPONSES, PageId.FILE_BROWSER}

    def test_project_leader(self) -> None:
        pages = set(visible_pages("siteflow_pl"))
        assert {PageId.TIME_ENTRIES, PageId.TEAM, PageId.KNOWLEDGE, PageId.ANALYTICS} <= pages
        assert not pages & {PageId.INTEGRATIONS, PageId.API_PORTAL, PageId.AUDIT_LOG}

    def test_developer(self) -> None:
        pages = set(visible_pages("siteflow_dev_frontend"))
        assert PageId.TIME_ENTRIES in pages
        assert not pages & {PageId.TEAM, PageId.ANALYTICS, PageId.KNOWLEDGE, PageId.API_PORTAL}

    def test_customer_and_unknown_role(self) -> None:
        expected = [
            PageId.OVERVIEW,
            PageId.PROJECTS,
            PageId.TICKETS,
            PageId.DOCUMENTS,
            PageId.AI_CHAT,
            PageId.PRODUCT_PLANS,
            PageId.SETTINGS,
        ]
        assert visible_pages("customer") == expected
        assert visible_pages("superuser") == expected
