"""
Outreach Dispatch

Sends a templated message to a batch of leads over one channel. Sends fan
out concurrently up to OUTREACH_CONCURRENCY at a time and every lead gets
its own result; a failed send never stops the rest of the batch and nothing
already sent is rolled back.
"""

import asyncio
import os
from typing import Dict, List, Optional, Sequence

from fastapi.concurrency import run_in_threadpool

from ..logging_config import get_logger, log_action
from ..models import DispatchResult, Integrations, Lead, MessageChannel, MessageStatus
from .email_service import send_email
from .integrations import is_channel_connected
from .sms_client import TwilioSmsClient
from .whatsapp_client import WhatsAppClient

logger = get_logger(__name__)

NAME_PLACEHOLDER = "{{name}}"
MIN_ACCOUNT_SID_LENGTH = 6


def outreach_concurrency() -> int:
    try:
        return max(1, int(os.getenv("OUTREACH_CONCURRENCY", "5")))
    except ValueError:
        return 5


def personalize(template: str, name: str) -> str:
    return template.replace(NAME_PLACEHOLDER, name or "")


def destination_for(lead: Lead, channel: MessageChannel) -> str:
    return lead.email if channel == MessageChannel.EMAIL else lead.phone


async def dispatch_message(
    to: str,
    content: str,
    channel: MessageChannel,
    integrations: Integrations,
) -> bool:
    """
    Deliver one message. Returns True when the provider accepted it.

    Channels with real credentials go to the provider; a channel that is
    connected without them (a simulated connection) counts as delivered.
    """
    if not to:
        return False

    try:
        if channel == MessageChannel.SMS:
            sms = integrations.sms
            if sms.enabled and sms.connected and len(sms.accountSid) >= MIN_ACCOUNT_SID_LENGTH:
                client = TwilioSmsClient(sms.accountSid, sms.authToken, sms.senderId)
                await client.send_sms(to, content)
                return True

        elif channel == MessageChannel.WHATSAPP:
            wa = integrations.whatsapp
            client = WhatsAppClient(wa.phoneNumberId, wa.accessToken)
            if wa.enabled and wa.connected and client.configured:
                await client.send_text(to, content)
                return True

        elif channel == MessageChannel.EMAIL:
            email = integrations.email
            if email.enabled and email.connected:
                return await run_in_threadpool(
                    send_email,
                    to_email=to,
                    from_email=email.fromEmail or None,
                    body=content,
                )

        return is_channel_connected(integrations, channel.value)

    except Exception as e:
        logger.error(f"{channel.value} dispatch to {to} failed: {e}", exc_info=True)
        return False


async def send_outreach(
    lead_ids: Sequence[str],
    leads_by_id: Dict[str, Lead],
    template: str,
    channel: MessageChannel,
    integrations: Integrations,
    scheduled_at: Optional[str] = None,
    concurrency: Optional[int] = None,
) -> List[DispatchResult]:
    """
    Personalize and dispatch the template for every lead id, in input order.

    Scheduled batches are only queued. Unknown ids come back skipped.
    """
    semaphore = asyncio.Semaphore(concurrency or outreach_concurrency())

    async def send_one(lead_id: str) -> DispatchResult:
        lead = leads_by_id.get(lead_id)
        if lead is None:
            return DispatchResult(leadId=lead_id, skipped=True, error="Lead not found")

        destination = destination_for(lead, channel)
        content = personalize(template, lead.name)

        if scheduled_at:
            status = MessageStatus.QUEUED
        else:
            async with semaphore:
                ok = await dispatch_message(destination, content, channel, integrations)
            status = MessageStatus.SENT if ok else MessageStatus.FAILED

        return DispatchResult(
            leadId=lead_id,
            leadName=lead.name,
            destination=destination,
            content=content,
            status=status,
            error=None if status != MessageStatus.FAILED else "Dispatch failed",
        )

    unique_ids = list(dict.fromkeys(lead_ids))
    results = await asyncio.gather(*(send_one(lead_id) for lead_id in unique_ids))

    log_action(
        logger, "info", "outreach_dispatched", "Outreach batch processed",
        channel=channel.value,
        scheduled=bool(scheduled_at),
        total=len(results),
        sent=sum(1 for r in results if r.status == MessageStatus.SENT),
        failed=sum(1 for r in results if r.status == MessageStatus.FAILED),
    )
    return list(results)
