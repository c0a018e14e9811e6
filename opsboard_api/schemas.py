from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class UserModel(BaseModel):
    id: Optional[str] = None
    role: Optional[str] = None
    company_id: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None


class EntityFiltersModel(BaseModel):
    search: str = ""
    category_filter: str = "all"
    status_filter: str = "all"
    priority_filter: str = "all"
    project_filter: str = "all"
    date_window: str = "all"


class SettingsModel(BaseModel):
    timezone: Optional[str] = None
    weekly_goal_hours: Optional[float] = None
    recent_upload_days: Optional[int] = None
    recent_items: Optional[int] = None
    sla_warning_hours: Optional[float] = None
    sla_critical_hours: Optional[float] = None


class ViewRequest(BaseModel):
    user: UserModel = Field(default_factory=UserModel)
    filters: EntityFiltersModel = Field(default_factory=EntityFiltersModel)
    settings: SettingsModel = Field(default_factory=SettingsModel)
    view_mode: Optional[str] = None
    reference: Optional[str] = None
    sub_id: Optional[str] = None


class ResolveRoleRequest(BaseModel):
    role: Optional[str] = None


class RoleResponse(BaseModel):
    role: str
    label: str
    capabilities: List[str]


class MetaRolesResponse(BaseModel):
    roles: List[RoleResponse]
    aliases: Dict[str, List[str]]


class MetaPagesResponse(BaseModel):
    pages: List[str]
    role: str
    navigation: List[str]
