"""Shared fixtures: a small snapshot of every entity and a fixed reference instant."""

from __future__ import annotations

from typing import Any, Dict, List

import pandas as pd
import pytest

from opsboard.data import snapshot_from_records
from opsboard.filters import DashboardSettings

# Wednesday; the week runs Monday 2026-10-19 .. Sunday 2026-10-25.
REFERENCE = pd.Timestamp("2026-10-21T12:00:00", tz="UTC")


def make_records() -> Dict[str, List[Dict[str, Any]]]:
    return {
        "companies": [
            {"id": "c1", "name": "Nordic Retail AB", "orgNumber": "556677-8899", "isActive": True},
            {"id": "c2", "name": "Fjord Logistics", "orgNumber": "559911-2233", "isActive": True},
            {"id": "c3", "name": "Baltic Foods", "orgNumber": "551122-3344", "isActive": False},
        ],
        "projects": [
            {"id": "p1", "name": "Webshop relaunch", "description": "New storefront", "companyId": "c1", "state": "in_progress",
             "budget": 400000, "spent": 100000, "startDate": "2026-08-03", "estimatedEndDate": "2026-12-11"},
            {"id": "p2", "name": "Fleet portal", "description": "Driver scheduling", "companyId": "c2", "state": "pending_approval",
             "startDate": "2026-11-02"},
            {"id": "p3", "name": "Intranet migration", "description": "Move to new CMS", "companyId": "c1", "state": "completed",
             "startDate": "2026-03-02"},
            {"id": "p4", "name": "Route optimizer", "description": "Delivery routes", "companyId": "c2", "state": "in_progress",
             "startDate": "2026-07-01", "estimatedEndDate": "2026-10-23"},
        ],
        "tickets": [
            {"id": "t1", "projectId": "p1", "title": "Checkout fails on Safari", "description": "Payment step hangs", "state": "open",
             "priority": "critical", "assigneeId": "u4", "createdAt": "2026-10-19T08:00:00Z",
             "slaResolutionDueAt": "2026-10-21T13:00:00Z"},
            {"id": "t2", "projectId": "p1", "title": "Blurry images", "description": "Thumbnails upscaled", "state": "in_progress",
             "priority": "medium", "assigneeId": "u4", "createdAt": "2026-10-12T10:00:00Z"},
            {"id": "t3", "projectId": "p1", "title": "Add Klarna", "description": "New payment provider", "state": "resolved",
             "priority": "high", "assigneeId": "u5", "createdAt": "2026-09-20T09:00:00Z", "resolvedAt": "2026-09-24T16:00:00Z",
             "slaResolutionDueAt": "2026-09-25T09:00:00Z"},
            {"id": "t4", "projectId": "p4", "title": "Map tiles missing", "description": "Tiles 404", "state": "in_review",
             "priority": "low", "assigneeId": "u4", "createdAt": "2026-10-01T13:30:00Z"},
            {"id": "t5", "projectId": "p4", "title": "Import depots", "description": "CSV import", "state": "closed",
             "priority": "medium", "createdAt": "2026-08-14T07:45:00Z", "resolvedAt": "2026-08-20T12:00:00Z",
             "slaResolutionDueAt": "2026-08-18T07:45:00Z"},
        ],
        "timeEntries": [
            {"id": "e1", "projectId": "p1", "userId": "u4", "date": "2026-10-21", "hours": 3, "description": "Safari debugging"},
            {"id": "e2", "projectId": "p1", "userId": "u4", "date": "2026-10-21", "hours": 5, "description": "Checkout fix"},
            {"id": "e3", "projectId": "p4", "userId": "u4", "date": "2026-10-19", "hours": 4, "description": "Map tiles"},
            {"id": "e4", "projectId": "p4", "userId": "u4", "date": "2026-10-18", "hours": 2, "description": "Weekend deploy"},
            {"id": "e5", "projectId": "p1", "userId": "u5", "date": "2026-10-02", "hours": 6, "description": "Klarna integration"},
        ],
        "documents": [
            {"id": "d1", "projectId": "p1", "name": "Wireframes.pdf", "type": "design", "size": 2000, "starred": True,
             "uploadedAt": "2026-10-20T11:00:00Z"},
            {"id": "d2", "projectId": "p4", "name": "Depots.xlsx", "type": "data", "size": 500, "starred": False,
             "uploadedAt": "2026-09-02T09:00:00Z"},
        ],
        "team": [
            {"id": "u1", "email": "anna@example.com", "firstName": "Anna", "lastName": "Lind", "role": "siteflow_admin", "status": "active"},
            {"id": "u2", "email": "erik@example.com", "firstName": "Erik", "lastName": "Svensson", "role": "siteflow_kam", "status": "active"},
            {"id": "u4", "email": "johan@example.com", "firstName": "Johan", "lastName": "Andersson", "role": "siteflow_dev_fullstack",
             "status": "active"},
            {"id": "u5", "email": "sofia@example.com", "firstName": "Sofia", "lastName": "Berg", "role": "siteflow_dev_backend",
             "status": "inactive"},
        ],
        "invitations": [
            {"id": "i1", "email": "new@example.com", "role": "developer"},
            {"id": "i2", "email": "buyer@example.com", "role": "customer", "acceptedAt": "2026-10-02T08:00:00Z"},
            {"id": "i3", "email": "gone@example.com", "role": "customer", "cancelledAt": "2026-10-03T08:00:00Z"},
        ],
        "auditLog": [
            {"id": "a1", "timestamp": "2026-10-21T08:01:00Z", "user": {"name": "Anna Lind", "email": "anna@example.com"},
             "action": "user.login", "category": "auth", "resourceName": "web", "status": "success"},
            {"id": "a2", "timestamp": "2026-10-21T07:40:00Z", "user": {"name": "Erik Svensson", "email": "erik@example.com"},
             "action": "api_key.used", "category": "api", "resourceName": "ERP sync", "status": "failure"},
            {"id": "a3", "timestamp": "2026-10-17T14:20:00Z", "user": {"name": "Maria Karlsson", "email": "maria@example.com"},
             "action": "project.update", "category": "data", "resourceName": "Webshop relaunch", "status": "success"},
        ],
        "integrations": [
            {"id": "slack", "name": "Slack", "description": "Notifications", "category": "communication", "status": "connected"},
            {"id": "jira", "name": "Jira", "description": "Issue sync", "category": "project_management", "status": "error"},
            {"id": "github", "name": "GitHub", "description": "Commit links", "category": "development", "status": "disconnected"},
        ],
        "apiKeys": [
            {"id": "k1", "name": "ERP sync", "status": "active", "requestCount": 1500, "createdAt": "2026-05-11T09:00:00Z"},
            {"id": "k2", "name": "Reporting", "status": "active", "requestCount": 250, "createdAt": "2026-06-11T09:00:00Z"},
            {"id": "k3", "name": "Old key", "status": "revoked", "requestCount": 40, "createdAt": "2025-11-02T09:00:00Z"},
        ],
    }


@pytest.fixture
def records() -> Dict[str, List[Dict[str, Any]]]:
    return make_records()


@pytest.fixture
def snapshot(records):
    return snapshot_from_records(records)


@pytest.fixture
def reference() -> pd.Timestamp:
    return REFERENCE


@pytest.fixture
def settings() -> DashboardSettings:
    return DashboardSettings()


@pytest.fixture
def users() -> Dict[str, Dict[str, Any]]:
    return {
        "admin": {"id": "u1", "role": "siteflow_admin", "name": "Anna Lind"},
        "kam": {"id": "u2", "role": "siteflow_kam"},
        "pl": {"id": "u3", "role": "siteflow_pl"},
        "dev": {"id": "u4", "role": "siteflow_dev_fullstack", "email": "johan@example.com"},
        "customer": {"id": "u9", "role": "customer", "companyId": "c1"},
        "orphan_customer": {"id": "u10", "role": "customer"},
    }
