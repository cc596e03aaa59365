"""
Tests for dashboard, analytics and calendar aggregates.
"""
from datetime import timedelta

from app.models import AgingStatus, FollowUpStage, LeadStatus, MessageLog
from app.services.analytics import (
    analytics_report,
    calendar_events,
    conversion_by_campaign,
    dashboard_metrics,
    leads_by_property,
)


def log(**overrides):
    fields = {
        "id": "log-1",
        "leadId": "lead-1",
        "leadName": "Dana Lee",
        "channel": "sms",
        "status": "Sent",
        "content": "Hi Dana",
        "sentAt": "2026-03-10T10:00:00+00:00",
    }
    fields.update(overrides)
    return MessageLog(**fields)


class TestDashboard:

    def test_counts(self, make_lead, now):
        leads = [
            make_lead(status=LeadStatus.WON, stage=FollowUpStage.CLOSED),
            make_lead(agingStatus=AgingStatus.CRITICAL, createdAt=(now - timedelta(days=2)).isoformat()),
            make_lead(stage=FollowUpStage.PROPERTY_VIEWING),
            make_lead(),
        ]
        logs = [log(), log(id="log-2", status="Failed", channel="email")]
        metrics = dashboard_metrics(leads, logs, now=now)

        assert metrics["totalLeads"] == 4
        assert metrics["newLeadsToday"] == 3
        assert metrics["wonLeads"] == 1
        assert metrics["conversionRate"] == 25
        assert metrics["criticalLeads"] == 1
        stages = {row["name"]: row["value"] for row in metrics["stageDistribution"]}
        assert stages == {
            "Inquiry": 2, "First Contact": 0, "Property Viewing": 1,
            "Offer Made": 0, "Contract": 0, "Closed": 1,
        }
        assert metrics["messagesByStatus"] == {"Sent": 1, "Failed": 1}
        assert metrics["messagesByChannel"] == {"sms": 1, "email": 1}

    def test_empty_pipeline(self, now):
        metrics = dashboard_metrics([], now=now)
        assert metrics["conversionRate"] == 0
        assert metrics["messagesByStatus"] == {}


class TestAnalyticsReport:

    def test_first_contact_and_follow_up(self, make_lead, now):
        created = now - timedelta(hours=2)
        leads = [
            make_lead(createdAt=created.isoformat(), firstContactedAt=(created + timedelta(minutes=30)).isoformat()),
            make_lead(createdAt=created.isoformat(), firstContactedAt=(created + timedelta(minutes=90)).isoformat()),
            make_lead(nextFollowUpTask="Send comps", taskCompleted=True),
            make_lead(taskDueDate=now.isoformat()),
            make_lead(),
        ]
        report = analytics_report(leads)
        assert report["totalLeads"] == 5
        assert report["avgMinutesToFirstContact"] == 60
        assert report["followUpCompletionRate"] == 50

    def test_no_data(self):
        report = analytics_report([])
        assert report["avgMinutesToFirstContact"] == 0
        assert report["followUpCompletionRate"] == 0
        assert report["leadsByProperty"] == []

    def test_lost_without_response(self, make_lead, now):
        leads = [
            make_lead(status=LeadStatus.LOST),
            make_lead(status=LeadStatus.LOST, firstContactedAt=now.isoformat(), notes="No Response after 3 calls"),
            make_lead(status=LeadStatus.LOST, firstContactedAt=now.isoformat(), notes="Bought elsewhere"),
            make_lead(status=LeadStatus.NEW),
        ]
        assert analytics_report(leads)["lostNoResponse"] == 2

    def test_leads_by_property(self, make_lead):
        addresses = ["15 Beacon St"] * 3 + ["", ""] + ["9 Elm St", "1 Oak Ave", "2 Pine Rd", "3 Birch Ln"]
        leads = [make_lead(propertyAddress=a) for a in addresses]
        rows = leads_by_property(leads)
        assert len(rows) == 5
        assert rows[0] == {"name": "15 Beacon St", "value": 3}
        assert rows[1] == {"name": "General Interest", "value": 2}

    def test_conversion_by_campaign_sorted(self, make_lead):
        leads = [
            make_lead(campaignSource="Spring Open House", status=LeadStatus.WON),
            make_lead(campaignSource="Spring Open House"),
            make_lead(campaignSource="Zillow Ads"),
            make_lead(campaignSource="Referral Drive", status=LeadStatus.WON),
            make_lead(campaignSource=""),
        ]
        assert conversion_by_campaign(leads) == [
            {"name": "Referral Drive", "leads": 1, "conversion": 100},
            {"name": "Spring Open House", "leads": 2, "conversion": 50},
            {"name": "Zillow Ads", "leads": 1, "conversion": 0},
        ]


class TestCalendar:

    def test_events_for_month(self, make_lead):
        leads = [
            make_lead(name="Dana Lee", taskDueDate="2026-03-20T15:00:00+00:00", nextFollowUpTask="Showing"),
            make_lead(name="Sam Park", taskDueDate="2026-03-05T09:00:00+00:00"),
            make_lead(name="Out Of Range", taskDueDate="2026-04-01T09:00:00+00:00"),
        ]
        logs = [
            log(id="log-9", channel="whatsapp", status="Queued", scheduledAt="2026-03-12T08:00:00Z"),
            log(id="log-10"),
        ]
        events = calendar_events(leads, logs, 2026, 3)

        assert [e["title"] for e in events] == [
            "Follow-up: Sam Park",
            "WHATSAPP to Dana Lee",
            "Showing: Dana Lee",
        ]
        assert events[1]["status"] == "Queued"
        assert events[0]["type"] == "followup"
