from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..auth import get_current_user_id
from ..services import lead_store
from ..services.analytics import analytics_report, calendar_events, dashboard_metrics
from ..services.cleaning import annotate_leads

router = APIRouter(prefix="/api", tags=["analytics"])

# Upper bound on logs pulled for dashboard and calendar aggregates
MAX_LOGS = 1000


@router.get("/dashboard")
def dashboard(user_id: str = Depends(get_current_user_id)):
    leads = annotate_leads(lead_store.list_leads(user_id))
    logs = lead_store.list_message_logs(user_id, limit=MAX_LOGS)
    return dashboard_metrics(leads, logs)


@router.get("/analytics")
def analytics(user_id: str = Depends(get_current_user_id)):
    return analytics_report(lead_store.list_leads(user_id))


@router.get("/calendar")
def calendar(
    year: Optional[int] = Query(None, ge=1970, le=9999),
    month: Optional[int] = Query(None, ge=1, le=12),
    user_id: str = Depends(get_current_user_id)
):
    """Follow-up tasks and scheduled messages for a month (default: current)."""
    today = datetime.now(timezone.utc)
    leads = lead_store.list_leads(user_id)
    logs = lead_store.list_message_logs(user_id, limit=MAX_LOGS)
    return {
        "year": year or today.year,
        "month": month or today.month,
        "events": calendar_events(leads, logs, year or today.year, month or today.month),
    }
