"""
Tests for lead_store row mapping and query building. The database
connection is replaced with mocks.
"""
from contextlib import contextmanager
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

from app.models import LeadSource, LeadStatus, Sentiment
from app.services import lead_store
from app.services.lead_metadata import decode_notes, encode_notes


def mock_conn(rows=None):
    """Patchable get_conn yielding a connection whose cursor returns `rows`."""
    rows = rows or []
    cursor = MagicMock()
    cursor.fetchall.return_value = [tuple(r.values()) for r in rows]
    cursor.fetchone.return_value = tuple(rows[0].values()) if rows else None
    cursor.description = [SimpleNamespace(name=key) for key in (rows[0] if rows else {})]
    cursor.rowcount = len(rows)

    conn = MagicMock()
    conn.cursor.return_value.__enter__.return_value = cursor

    @contextmanager
    def get_conn():
        yield conn

    return get_conn, cursor


class TestRowToLead:

    def test_metadata_wins_over_columns(self):
        row = {
            "id": "abc",
            "user_id": "user_1",
            "name": "Dana Lee",
            "email": "dana@gmail.com",
            "phone": None,
            "source": "Facebook",
            "status": "Qualified",
            "stage": "Offer Made",
            "notes": encode_notes("Loves the kitchen", {"priorityScore": 88, "sentiment": "Positive"}),
            "priority_score": 10,
            "created_at": datetime(2026, 3, 1, tzinfo=timezone.utc),
            "last_contacted": None,
        }
        lead = lead_store.row_to_lead(row)
        assert lead.priorityScore == 88
        assert lead.sentiment == Sentiment.POSITIVE
        assert lead.notes == "Loves the kitchen"
        assert lead.source == LeadSource.FACEBOOK
        assert lead.phone == ""
        assert lead.createdAt == "2026-03-01T00:00:00+00:00"

    def test_column_fallback_and_defaults(self):
        row = {
            "id": 7,
            "name": None,
            "source": "Carrier Pigeon",
            "status": None,
            "stage": None,
            "notes": "plain",
            "priority_score": 250,
            "created_at": "2026-03-01T00:00:00Z",
        }
        lead = lead_store.row_to_lead(row)
        assert lead.id == "7"
        assert lead.name == "Unknown Buyer"
        assert lead.source == LeadSource.MANUAL
        assert lead.status == LeadStatus.NEW
        assert lead.priorityScore == 100
        assert lead.notes == "plain"

    def test_string_flags_from_older_rows(self):
        row = {"id": "a", "name": "Dana", "notes": "", "task_completed": "false", "created_at": "2026-03-01"}
        assert lead_store.row_to_lead(row).taskCompleted is False
        row["task_completed"] = "TRUE"
        assert lead_store.row_to_lead(row).taskCompleted is True

    def test_email_check_verdict_surfaced_separately(self):
        row = {
            "id": "a",
            "name": "Dana",
            "email": "dana@gmail.com",
            "notes": encode_notes("", {"isInvalidEmail": True}),
            "created_at": "2026-03-01",
        }
        assert lead_store.row_to_lead(row).emailCheckInvalid is True
        row["notes"] = "no metadata"
        assert lead_store.row_to_lead(row).emailCheckInvalid is None


class TestLeadToPayload:

    def test_folds_derived_fields_into_notes(self, make_lead):
        lead = make_lead(notes="Met at open house", priorityScore=70, taskCompleted=True)
        payload = lead_store.lead_to_payload(lead.model_dump(mode="json"), is_invalid_email=False)
        notes, meta, _ = decode_notes(payload["notes"])
        assert notes == "Met at open house"
        assert meta["priorityScore"] == 70
        assert meta["taskCompleted"] is True
        assert meta["isInvalidEmail"] is False
        assert set(payload) == set(lead_store.LEAD_COLUMNS)

    def test_email_verdict_is_carried_forward(self):
        stored = encode_notes("old", {"isInvalidEmail": True})
        new = encode_notes("new", {"priorityScore": 5})
        notes, meta, _ = decode_notes(lead_store._carry_email_verdict(stored, new))
        assert notes == "new"
        assert meta == {"priorityScore": 5, "isInvalidEmail": True}

    def test_fresh_email_verdict_wins(self):
        stored = encode_notes("old", {"isInvalidEmail": True})
        new = encode_notes("new", {"isInvalidEmail": False})
        assert lead_store._carry_email_verdict(stored, new) == new


class TestQueries:

    def test_list_message_logs_filters(self):
        get_conn, cursor = mock_conn([])
        with patch.object(lead_store, "get_conn", get_conn):
            assert lead_store.list_message_logs("user_1", channel="sms", search="Dana", limit=10, offset=20) == []
        sql, params = cursor.execute.call_args[0]
        assert "channel = %s" in sql
        assert "ILIKE" in sql
        assert params == ("user_1", "sms", "%Dana%", "%Dana%", 10, 20)

    def test_mark_contacted_sets_first_contact_once(self):
        rows = [{"id": "a", "notes": "hello"}]
        get_conn, cursor = mock_conn(rows)
        with patch.object(lead_store, "get_conn", get_conn):
            lead_store.mark_contacted("user_1", ["a"], "2026-03-10T12:00:00+00:00")

        update_sql, update_params = cursor.execute.call_args_list[-1][0]
        assert update_sql.startswith("UPDATE leads SET last_contacted")
        _, meta, _ = decode_notes(update_params[1])
        assert meta["firstContactedAt"] == "2026-03-10T12:00:00+00:00"

    def test_mark_contacted_keeps_existing_first_contact(self):
        notes = encode_notes("hello", {"firstContactedAt": "2026-01-01T00:00:00+00:00"})
        get_conn, cursor = mock_conn([{"id": "a", "notes": notes}])
        with patch.object(lead_store, "get_conn", get_conn):
            lead_store.mark_contacted("user_1", ["a"], "2026-03-10T12:00:00+00:00")
        _, update_params = cursor.execute.call_args_list[-1][0]
        assert update_params[1] == notes

    def test_mark_contacted_noop_without_ids(self):
        assert lead_store.mark_contacted("user_1", [], "2026-03-10T12:00:00+00:00") == 0

    def test_update_profile_maps_columns(self):
        get_conn, cursor = mock_conn([{"id": "user_1", "company_name": "Acme Realty"}])
        with patch.object(lead_store, "get_conn", get_conn):
            row = lead_store.update_profile("user_1", {"companyName": "Acme Realty", "bogus": 1})
        sql, params = cursor.execute.call_args[0]
        assert "company_name = %s" in sql
        assert "bogus" not in sql
        assert params == ("Acme Realty", "user_1")
        assert row == {"id": "user_1", "company_name": "Acme Realty"}

    def test_row_to_profile_loads_integrations(self):
        profile = lead_store.row_to_profile({
            "id": "user_1",
            "email": "agent@realty.com",
            "integrations": {"sms": {"enabled": True, "connected": True}},
        })
        assert profile.subscriptionPlan == "Starter"
        assert profile.integrations.sms.connected is True
