from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from opsboard.roles import Capability, CanonicalRole, has_capability, resolve_role


logger = logging.getLogger(__name__)


class PageId(str, Enum):
    OVERVIEW = "overview"
    PROJECTS = "projects"
    PROJECT_DETAIL = "project-detail"
    TICKETS = "tickets"
    TIME_ENTRIES = "time-entries"
    DOCUMENTS = "documents"
    TEAM = "team"
    COMPANIES = "companies"
    SETTINGS = "settings"
    INTEGRATIONS = "integrations"
    API_PORTAL = "api-portal"
    AUDIT_LOG = "audit-log"
    ANALYTICS = "analytics"
    AI_CHAT = "ai-chat"
    KNOWLEDGE = "knowledge"
    AI_DOCS = "ai-docs"
    PRODUCT_PLANS = "product-plans"
    FORM_RESPONSES = "form-responses"
    FILE_BROWSER = "file-browser"


OVERVIEW_VIEWS: Dict[CanonicalRole, str] = {
    CanonicalRole.ADMIN: "admin_overview",
    CanonicalRole.KAM: "kam_overview",
    CanonicalRole.PROJECT_LEADER: "project_leader_overview",
    CanonicalRole.DEVELOPER: "developer_overview",
    CanonicalRole.CUSTOMER: "customer_overview",
}

PAGE_VIEWS: Dict[PageId, str] = {
    PageId.PROJECTS: "projects",
    PageId.PROJECT_DETAIL: "project_detail",
    PageId.TICKETS: "tickets",
    PageId.TIME_ENTRIES: "time_tracking",
    PageId.DOCUMENTS: "documents",
    PageId.TEAM: "team",
    PageId.COMPANIES: "companies",
    PageId.SETTINGS: "settings",
    PageId.INTEGRATIONS: "integrations",
    PageId.API_PORTAL: "api_portal",
    PageId.AUDIT_LOG: "audit_log",
    PageId.ANALYTICS: "analytics",
    PageId.AI_CHAT: "ai_chat",
    PageId.KNOWLEDGE: "knowledge",
    PageId.AI_DOCS: "ai_docs",
    PageId.PRODUCT_PLANS: "product_plans",
    PageId.FORM_RESPONSES: "form_responses",
    PageId.FILE_BROWSER: "file_browser",
}

# Capability each page checks for its guarded parts (create buttons, whole page access).
PAGE_CAPABILITIES: Dict[PageId, Capability] = {
    PageId.PROJECTS: Capability.CREATE_PROJECT,
    PageId.PROJECT_DETAIL: Capability.EDIT_PROJECT,
    PageId.DOCUMENTS: Capability.UPLOAD_DOCUMENT,
    PageId.TEAM: Capability.MANAGE_TEAM,
    PageId.COMPANIES: Capability.CREATE_COMPANY,
    PageId.INTEGRATIONS: Capability.MANAGE_INTEGRATIONS,
    PageId.API_PORTAL: Capability.MANAGE_API_KEYS,
    PageId.AUDIT_LOG: Capability.VIEW_AUDIT_LOG,
    PageId.ANALYTICS: Capability.VIEW_ANALYTICS,
}

# Navigation ids used by the client ("dashboardTimeEntries") and plain aliases.
_PAGE_ALIASES: Dict[str, PageId] = {
    "dashboard": PageId.OVERVIEW,
    "home": PageId.OVERVIEW,
    "time-tracking": PageId.TIME_ENTRIES,
    "timeentries": PageId.TIME_ENTRIES,
    "api": PageId.API_PORTAL,
    "audit": PageId.AUDIT_LOG,
    "project": PageId.PROJECT_DETAIL,
    "aichat": PageId.AI_CHAT,
    "aidocs": PageId.AI_DOCS,
}


@dataclass(frozen=True)
class ViewDescriptor:
    view: str
    page: PageId
    role: CanonicalRole
    required_capability: Optional[Capability] = None
    fell_back: bool = False
    sub_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "view": self.view,
            "page": self.page.value,
            "role": self.role.value,
            "required_capability": self.required_capability.value if self.required_capability else None,
            "fell_back": self.fell_back,
            "sub_id": self.sub_id,
        }


def _kebab(value: str) -> str:
    s = re.sub(r"(?<=[a-z0-9])([A-Z])", r"-\1", value.strip())
    return re.sub(r"[\s_]+", "-", s).lower()


def resolve_page(raw: Any) -> Optional[PageId]:
    if isinstance(raw, PageId):
        return raw
    if not isinstance(raw, str) or not raw.strip():
        return None
    key = raw.strip()
    if key.startswith("dashboard") and len(key) > len("dashboard"):
        key = key[len("dashboard"):]
    key = _kebab(key)
    try:
        return PageId(key)
    except ValueError:
        return _PAGE_ALIASES.get(key)


def select_view(role: Any, page: Any, sub_id: Optional[str] = None) -> ViewDescriptor:
    """Pick the view for a (role, page) pair. Never fails."""
    canonical = resolve_role(role)
    page_id = resolve_page(page)
    if page_id is None or page_id == PageId.OVERVIEW:
        fell_back = page_id is None
        if fell_back:
            logger.debug("unknown page %r, falling back to overview for %s", page, canonical.value)
        return ViewDescriptor(view=OVERVIEW_VIEWS[canonical], page=PageId.OVERVIEW, role=canonical, fell_back=fell_back)
    if page_id == PageId.PROJECT_DETAIL and not sub_id:
        page_id = PageId.PROJECTS
    return ViewDescriptor(
        view=PAGE_VIEWS[page_id],
        page=page_id,
        role=canonical,
        required_capability=PAGE_CAPABILITIES.get(page_id),
        sub_id=sub_id if page_id == PageId.PROJECT_DETAIL else None,
    )


# Sidebar order; project-detail is reached from the projects page, never from navigation.
NAV_PAGES: Tuple[PageId, ...] = (
    PageId.OVERVIEW,
    PageId.PROJECTS,
    PageId.TICKETS,
    PageId.TIME_ENTRIES,
    PageId.DOCUMENTS,
    PageId.TEAM,
    PageId.COMPANIES,
    PageId.AI_CHAT,
    PageId.KNOWLEDGE,
    PageId.AI_DOCS,
    PageId.PRODUCT_PLANS,
    PageId.FORM_RESPONSES,
    PageId.FILE_BROWSER,
    PageId.ANALYTICS,
    PageId.INTEGRATIONS,
    PageId.API_PORTAL,
    PageId.AUDIT_LOG,
    PageId.SETTINGS,
)

# Capability a role needs to see the page in navigation; pages not listed are shown to everyone.
NAV_CAPABILITIES: Dict[PageId, Capability] = {
    PageId.TIME_ENTRIES: Capability.LOG_TIME,
    PageId.TEAM: Capability.VIEW_INTERNAL_PAGES,
    PageId.KNOWLEDGE: Capability.VIEW_INTERNAL_PAGES,
    PageId.AI_DOCS: Capability.VIEW_INTERNAL_PAGES,
    PageId.COMPANIES: Capability.MANAGE_COMPANIES,
    PageId.FORM_RESPONSES: Capability.MANAGE_COMPANIES,
    PageId.FILE_BROWSER: Capability.MANAGE_COMPANIES,
    PageId.ANALYTICS: Capability.VIEW_ANALYTICS,
    PageId.INTEGRATIONS: Capability.MANAGE_INTEGRATIONS,
    PageId.API_PORTAL: Capability.MANAGE_API_KEYS,
    PageId.AUDIT_LOG: Capability.VIEW_AUDIT_LOG,
}


def visible_pages(role: Any) -> List[PageId]:
    """Navigation entries for ``role``, in sidebar order."""
    canonical = resolve_role(role)
    return [
        page
        for page in NAV_PAGES
        if page not in NAV_CAPABILITIES or has_capability(canonical, NAV_CAPABILITIES[page])
    ]
