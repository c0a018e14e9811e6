from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple, Union


logger = logging.getLogger(__name__)


class CanonicalRole(str, Enum):
    ADMIN = "admin"
    KAM = "kam"
    PROJECT_LEADER = "project_leader"
    DEVELOPER = "developer"
    CUSTOMER = "customer"


class Capability(str, Enum):
    CREATE_PROJECT = "create-project"
    EDIT_PROJECT = "edit-project"
    CREATE_COMPANY = "create-company"
    INVITE_MEMBER = "invite-member"
    MANAGE_TEAM = "manage-team"
    UPLOAD_DOCUMENT = "upload-document"
    MANAGE_API_KEYS = "manage-api-keys"
    MANAGE_INTEGRATIONS = "manage-integrations"
    VIEW_AUDIT_LOG = "view-audit-log"
    VIEW_ANALYTICS = "view-analytics"
    VIEW_ALL_PROJECTS = "view-all-projects"
    LOG_TIME = "log-time"
    VIEW_INTERNAL_PAGES = "view-internal-pages"
    MANAGE_COMPANIES = "manage-companies"


LEAST_PRIVILEGED = CanonicalRole.CUSTOMER

# Highest privilege first; resolution returns the first match.
ROLE_PRECEDENCE: Tuple[CanonicalRole, ...] = (
    CanonicalRole.ADMIN,
    CanonicalRole.KAM,
    CanonicalRole.PROJECT_LEADER,
    CanonicalRole.DEVELOPER,
    CanonicalRole.CUSTOMER,
)

ROLE_ALIASES: Dict[CanonicalRole, FrozenSet[str]] = {
    CanonicalRole.ADMIN: frozenset({"siteflow_admin", "admin"}),
    CanonicalRole.KAM: frozenset({"siteflow_kam", "kam", "key_account_manager"}),
    CanonicalRole.PROJECT_LEADER: frozenset({"siteflow_pl", "pl", "project_leader", "projectleader"}),
    CanonicalRole.DEVELOPER: frozenset(
        {"siteflow_dev_frontend", "siteflow_dev_backend", "siteflow_dev_fullstack", "developer", "dev"}
    ),
    CanonicalRole.CUSTOMER: frozenset({"customer", "partner"}),
}

ROLE_LABELS: Dict[CanonicalRole, str] = {
    CanonicalRole.ADMIN: "Admin",
    CanonicalRole.KAM: "Key Account Manager",
    CanonicalRole.PROJECT_LEADER: "Project Leader",
    CanonicalRole.DEVELOPER: "Developer",
    CanonicalRole.CUSTOMER: "Customer",
}

_STAFF_MANAGERS = frozenset({CanonicalRole.ADMIN, CanonicalRole.KAM})
_PROJECT_STAFF = frozenset({CanonicalRole.ADMIN, CanonicalRole.KAM, CanonicalRole.PROJECT_LEADER})
_STAFF = frozenset({CanonicalRole.ADMIN, CanonicalRole.KAM, CanonicalRole.PROJECT_LEADER, CanonicalRole.DEVELOPER})

CAPABILITY_TABLE: Dict[Capability, FrozenSet[CanonicalRole]] = {
    Capability.CREATE_PROJECT: _PROJECT_STAFF,
    Capability.EDIT_PROJECT: _PROJECT_STAFF,
    Capability.INVITE_MEMBER: _PROJECT_STAFF,
    Capability.UPLOAD_DOCUMENT: _PROJECT_STAFF,
    Capability.VIEW_ANALYTICS: _PROJECT_STAFF,
    Capability.VIEW_ALL_PROJECTS: _PROJECT_STAFF,
    Capability.VIEW_INTERNAL_PAGES: _PROJECT_STAFF,
    Capability.LOG_TIME: _STAFF,
    Capability.CREATE_COMPANY: _STAFF_MANAGERS,
    Capability.MANAGE_TEAM: _STAFF_MANAGERS,
    Capability.MANAGE_API_KEYS: _STAFF_MANAGERS,
    Capability.MANAGE_INTEGRATIONS: _STAFF_MANAGERS,
    Capability.MANAGE_COMPANIES: frozenset({CanonicalRole.ADMIN}),
    Capability.VIEW_AUDIT_LOG: frozenset({CanonicalRole.ADMIN}),
}


def resolve_role(raw: Any) -> CanonicalRole:
    """Map any raw role value onto exactly one canonical role.

    Unknown, empty and non-string values fail closed to the customer role.
    """
    if isinstance(raw, CanonicalRole):
        return raw
    if not isinstance(raw, str):
        return LEAST_PRIVILEGED
    key = raw.strip().lower().replace("-", "_")
    if not key:
        return LEAST_PRIVILEGED
    for role in ROLE_PRECEDENCE:
        if key in ROLE_ALIASES[role] or key == role.value:
            return role
    logger.debug("unrecognized role %r resolved to %s", raw, LEAST_PRIVILEGED.value)
    return LEAST_PRIVILEGED


def _as_capability(capability: Union[Capability, str]) -> Optional[Capability]:
    if isinstance(capability, Capability):
        return capability
    try:
        return Capability(str(capability).strip().lower().replace("_", "-"))
    except ValueError:
        return None


def has_capability(role: Any, capability: Union[Capability, str]) -> bool:
    cap = _as_capability(capability)
    if cap is None:
        return False
    return resolve_role(role) in CAPABILITY_TABLE[cap]


def capabilities_for(role: Any) -> FrozenSet[Capability]:
    canonical = resolve_role(role)
    return frozenset(cap for cap, roles in CAPABILITY_TABLE.items() if canonical in roles)


@dataclass(frozen=True)
class AuthUser:
    id: Optional[str]
    role: CanonicalRole
    company_id: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.id is not None


ANONYMOUS = AuthUser(id=None, role=LEAST_PRIVILEGED)


def _clean_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def user_from_record(record: Optional[Mapping[str, Any]]) -> AuthUser:
    if not record:
        return ANONYMOUS
    company_id = record.get("companyId", record.get("company_id"))
    name = record.get("name")
    if not name:
        parts = [record.get("firstName") or record.get("first_name"), record.get("lastName") or record.get("last_name")]
        name = " ".join(str(p) for p in parts if p) or None
    return AuthUser(
        id=_clean_str(record.get("id")),
        role=resolve_role(record.get("role")),
        company_id=_clean_str(company_id),
        email=_clean_str(record.get("email")),
        name=_clean_str(name),
    )


class _NoScope:
    def __repr__(self) -> str:
        return "SCOPE_NONE"


# Sentinel: the user may see no company-owned records at all.
SCOPE_NONE = _NoScope()


def company_scope(user: AuthUser) -> Union[None, str, _NoScope]:
    """Return the company id to scope data to, ``None`` for unscoped access."""
    if has_capability(user.role, Capability.VIEW_ALL_PROJECTS):
        return None
    if user.company_id:
        return user.company_id
    if user.role == CanonicalRole.CUSTOMER:
        return SCOPE_NONE
    return None


def role_label(role: Any) -> str:
    return ROLE_LABELS[resolve_role(role)]
