"""
Outreach Router

Bulk send (or schedule) a templated message over one channel, and browse
the resulting message log.
"""

from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.concurrency import run_in_threadpool

from ..auth import get_current_user_id
from ..logging_config import get_logger
from ..models import MessageChannel, MessageLog, MessageStatus, SendMessageRequest, SendMessageResponse
from ..services import lead_store
from ..services.integrations import is_channel_connected
from ..services.outreach import send_outreach

router = APIRouter(prefix="/api", tags=["outreach"])
logger = get_logger(__name__)


@router.post("/outreach/send", response_model=SendMessageResponse)
async def send_message(request: SendMessageRequest, user_id: str = Depends(get_current_user_id)):
    """
    Dispatch the template to every selected lead.

    One message log per lead that exists. Leads whose send went through are
    stamped as contacted; scheduled batches are only logged as Queued.
    """
    integrations = await run_in_threadpool(lead_store.get_integrations, user_id)
    if not is_channel_connected(integrations, request.channel.value):
        raise HTTPException(
            status_code=400,
            detail=f"{request.channel.value} integration is not connected"
        )

    leads = await run_in_threadpool(lead_store.list_leads, user_id)
    results = await send_outreach(
        request.leadIds,
        {lead.id: lead for lead in leads},
        request.content,
        request.channel,
        integrations,
        scheduled_at=request.scheduledAt,
    )

    now = datetime.now(timezone.utc).isoformat()
    logs = [
        {
            "lead_id": result.leadId,
            "lead_name": result.leadName,
            "channel": request.channel.value,
            "status": result.status.value,
            "content": result.content,
            "sent_at": now,
            "scheduled_at": request.scheduledAt,
        }
        for result in results if not result.skipped
    ]
    if logs:
        await run_in_threadpool(lead_store.insert_message_logs, user_id, logs)

    if not request.scheduledAt:
        sent_ids = [result.leadId for result in results if result.status == MessageStatus.SENT]
        if sent_ids:
            await run_in_threadpool(lead_store.mark_contacted, user_id, sent_ids, now)

    return SendMessageResponse(
        scheduled=bool(request.scheduledAt),
        sent=sum(1 for r in results if r.status == MessageStatus.SENT),
        failed=sum(1 for r in results if r.status == MessageStatus.FAILED),
        queued=sum(1 for r in results if r.status == MessageStatus.QUEUED),
        skipped=sum(1 for r in results if r.skipped),
        results=results,
    )


@router.get("/message-logs", response_model=List[MessageLog])
def list_message_logs(
    channel: Optional[MessageChannel] = None,
    q: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    user_id: str = Depends(get_current_user_id)
):
    """Message history, newest first."""
    return lead_store.list_message_logs(
        user_id,
        channel=channel.value if channel else None,
        search=q,
        limit=limit,
        offset=offset,
    )
