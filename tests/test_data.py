"""Tests for the snapshot data adapter and context preparation."""

import json

import pandas as pd
import pytest

from opsboard import data as data_mod
from opsboard.data import (
    QueryStatus,
    entity_key,
    load_snapshot,
    overall_status,
    prepare_context,
    round_half_up,
    snapshot_from_records,
    to_frame,
)


class TestToFrame:
    def test_snake_cases_and_guarantees_columns(self) -> None:
        df = to_frame("tickets", [{"id": " t1 ", "projectId": "p1", "createdAt": "2026-10-01"}])
        assert df.loc[0, "id"] == "t1"
        assert df.loc[0, "project_id"] == "p1"
        assert "sla_resolution_due_at" in df.columns

    def test_empty_records_keep_columns(self) -> None:
        df = to_frame("time_entries", None)
        assert df.empty
        assert {"project_id", "hours", "date"}.issubset(df.columns)

    def test_negative_and_missing_hours_become_zero(self) -> None:
        df = to_frame("timeEntries", [{"id": "a", "hours": -3}, {"id": "b", "hours": "x"}, {"id": "c", "hours": 2.5}])
        assert df["hours"].tolist() == [0.0, 0.0, 2.5]

    def test_audit_user_is_flattened(self) -> None:
        df = to_frame("auditLog", [{"id": "a", "user": {"name": "Anna", "email": "a@x"}}])
        assert df.loc[0, "user_name"] == "Anna"
        assert df.loc[0, "user_email"] == "a@x"

    def test_team_name_from_first_and_last(self) -> None:
        df = to_frame("team", [{"id": "u", "firstName": "Ada", "lastName": "Lovelace"}])
        assert df.loc[0, "name"] == "Ada Lovelace"

    @pytest.mark.parametrize("raw, expected", [("timeEntries", "time_entries"), ("auditLog", "audit_events"), ("apiKeys", "api_keys"), ("nope", None)])
    def test_entity_key(self, raw, expected) -> None:
        assert entity_key(raw) == expected

    def test_round_half_up(self) -> None:
        assert round_half_up(2.5) == 3.0
        assert round_half_up(None) is None


class TestSnapshot:
    def test_from_records_with_errors_and_loading(self, records) -> None:
        snap = snapshot_from_records(records, errors={"tickets": "boom"}, loading=["documents"])
        assert snap["projects"].ok
        assert snap["tickets"].status == QueryStatus.ERROR
        assert snap["tickets"].error == "boom"
        assert snap["documents"].status == QueryStatus.LOADING

    def test_overall_status_prefers_error(self, records) -> None:
        snap = snapshot_from_records(records, errors={"tickets": "boom"}, loading=["projects"])
        status, errors = overall_status(snap, ["projects", "tickets"])
        assert status == QueryStatus.ERROR
        assert errors == {"tickets": "boom"}
        assert overall_status(snap, ["projects"])[0] == QueryStatus.LOADING
        assert overall_status(snap, ["companies"]) == (QueryStatus.READY, {})

    def test_load_snapshot_from_directory(self, tmp_path, records) -> None:
        (tmp_path / "projects.json").write_text(json.dumps(records["projects"]), encoding="utf-8")
        (tmp_path / "timeEntries.json").write_text(json.dumps({"data": records["timeEntries"]}), encoding="utf-8")
        (tmp_path / "tickets.json").write_text("{not json", encoding="utf-8")
        (tmp_path / "notes.json").write_text("[]", encoding="utf-8")

        snap = load_snapshot(tmp_path)
        assert len(snap["projects"].frame) == 4
        assert len(snap["time_entries"].frame) == 5
        assert snap["tickets"].status == QueryStatus.ERROR
        assert snap["companies"].ok and snap["companies"].frame.empty

    def test_missing_directory_is_empty_and_ready(self, tmp_path) -> None:
        snap = load_snapshot(tmp_path / "missing")
        assert all(r.ok and r.frame.empty for r in snap.values())

    def test_default_directory_is_configurable(self, tmp_path, monkeypatch, records) -> None:
        (tmp_path / "companies.json").write_text(json.dumps(records["companies"]), encoding="utf-8")
        monkeypatch.setattr(data_mod, "DATA_DIR", tmp_path)
        assert len(load_snapshot()["companies"].frame) == 3


class TestPrepareContext:
    def test_staff_sees_everything(self, snapshot, users, reference) -> None:
        ctx = prepare_context(users["kam"], snapshot, reference=reference)
        assert ctx["scoped"] is False
        assert len(ctx["projects"]) == 4
        assert len(ctx["tickets"]) == 5

    def test_customer_is_scoped_to_company(self, snapshot, users, reference) -> None:
        ctx = prepare_context(users["customer"], snapshot, reference=reference)
        assert ctx["scope"] == "c1"
        assert sorted(ctx["projects"]["id"]) == ["p1", "p3"]
        assert sorted(ctx["tickets"]["id"]) == ["t1", "t2", "t3"]
        assert set(ctx["time_entries"]["project_id"]) == {"p1"}
        assert ctx["documents"]["id"].tolist() == ["d1"]
        assert ctx["companies"]["id"].tolist() == ["c1"]

    def test_customer_without_company_sees_nothing(self, snapshot, users, reference) -> None:
        ctx = prepare_context(users["orphan_customer"], snapshot, reference=reference)
        for key in ("projects", "tickets", "time_entries", "documents", "companies"):
            assert ctx[key].empty

    def test_reference_defaults_to_now(self, snapshot) -> None:
        ctx = prepare_context(None, snapshot)
        assert isinstance(ctx["reference"], pd.Timestamp)
