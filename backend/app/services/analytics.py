"""
Pipeline analytics computed from the (already annotated) lead list and
message logs. Pure functions; the router does the loading.
"""

from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from ..models import AgingStatus, FollowUpStage, Lead, LeadStatus, MessageLog
from .cleaning import parse_timestamp

GENERAL_INTEREST = "General Interest"
TOP_PROPERTIES = 5


def _percent(part: int, whole: int) -> int:
    return round(part / whole * 100) if whole else 0


def dashboard_metrics(
    leads: Sequence[Lead],
    logs: Sequence[MessageLog] = (),
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    total = len(leads)
    won = sum(1 for lead in leads if lead.status == LeadStatus.WON)

    new_today = 0
    for lead in leads:
        created = parse_timestamp(lead.createdAt)
        if created and created.date() == now.date():
            new_today += 1

    stage_counts = Counter(lead.stage for lead in leads)

    return {
        "totalLeads": total,
        "newLeadsToday": new_today,
        "wonLeads": won,
        "conversionRate": _percent(won, total),
        "criticalLeads": sum(1 for lead in leads if lead.agingStatus == AgingStatus.CRITICAL),
        "stageDistribution": [
            {"name": stage.value, "value": stage_counts.get(stage, 0)}
            for stage in FollowUpStage
        ],
        "messagesByStatus": dict(Counter(log.status.value for log in logs)),
        "messagesByChannel": dict(Counter(log.channel.value for log in logs)),
    }


def average_minutes_to_first_contact(leads: Sequence[Lead]) -> int:
    minutes = []
    for lead in leads:
        created = parse_timestamp(lead.createdAt)
        first = parse_timestamp(lead.firstContactedAt)
        if created and first:
            minutes.append((first - created).total_seconds() / 60)
    return round(sum(minutes) / len(minutes)) if minutes else 0


def follow_up_completion_rate(leads: Sequence[Lead]) -> int:
    with_tasks = [lead for lead in leads if lead.taskDueDate or lead.nextFollowUpTask]
    completed = sum(1 for lead in with_tasks if lead.taskCompleted)
    return _percent(completed, len(with_tasks))


def lost_without_response(leads: Sequence[Lead]) -> int:
    return sum(
        1 for lead in leads
        if lead.status == LeadStatus.LOST
        and (not lead.firstContactedAt or "no response" in (lead.notes or "").lower())
    )


def leads_by_property(leads: Sequence[Lead], limit: int = TOP_PROPERTIES) -> List[Dict[str, Any]]:
    counts = Counter(lead.propertyAddress or GENERAL_INTEREST for lead in leads)
    # Counter.most_common keeps first-seen order among ties
    return [{"name": name, "value": value} for name, value in counts.most_common(limit)]


def conversion_by_campaign(leads: Sequence[Lead]) -> List[Dict[str, Any]]:
    campaigns: Dict[str, List[Lead]] = {}
    for lead in leads:
        if lead.campaignSource:
            campaigns.setdefault(lead.campaignSource, []).append(lead)

    rows = []
    for name, campaign_leads in campaigns.items():
        won = sum(1 for lead in campaign_leads if lead.status == LeadStatus.WON)
        rows.append({
            "name": name,
            "leads": len(campaign_leads),
            "conversion": _percent(won, len(campaign_leads)),
        })
    return sorted(rows, key=lambda row: row["conversion"], reverse=True)


def analytics_report(leads: Sequence[Lead]) -> Dict[str, Any]:
    return {
        "totalLeads": len(leads),
        "avgMinutesToFirstContact": average_minutes_to_first_contact(leads),
        "followUpCompletionRate": follow_up_completion_rate(leads),
        "lostNoResponse": lost_without_response(leads),
        "leadsByProperty": leads_by_property(leads),
        "conversionByCampaign": conversion_by_campaign(leads),
    }


def calendar_events(
    leads: Sequence[Lead],
    logs: Sequence[MessageLog],
    year: int,
    month: int,
) -> List[Dict[str, Any]]:
    """Follow-up tasks and scheduled messages falling in the given month, by time."""
    events = []

    for lead in leads:
        due = parse_timestamp(lead.taskDueDate)
        if due and due.year == year and due.month == month:
            task = lead.nextFollowUpTask or "Follow-up"
            events.append({
                "id": lead.id,
                "type": "followup",
                "title": f"{task}: {lead.name}",
                "task": task,
                "at": due.isoformat(),
                "completed": lead.taskCompleted,
            })

    for log in logs:
        scheduled = parse_timestamp(log.scheduledAt)
        if scheduled and scheduled.year == year and scheduled.month == month:
            events.append({
                "id": log.id,
                "type": "message",
                "title": f"{log.channel.value.upper()} to {log.leadName}",
                "at": scheduled.isoformat(),
                "status": log.status.value,
            })

    return sorted(events, key=lambda event: event["at"])
