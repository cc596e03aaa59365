"""
Lead Router

CRUD over the signed-in user's leads plus the AI helpers that act on a single
lead (priority score, next step, voice note) and simulated platform sync.

Aging and data health are never stored; every lead returned here is
annotated against the user's full lead list at read time.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile

from ..auth import get_current_user_id
from ..logging_config import get_logger, log_action
from ..models import (
    Lead,
    LeadCreate,
    LeadHealthReport,
    LeadSource,
    LeadStageUpdate,
    LeadStatusUpdate,
    LeadUpdate,
)
from ..services import ai_assist, lead_store
from ..services.cleaning import annotate_leads, standardize_name
from ..services.genai_client import GenAIError
from ..services.integrations import is_channel_connected

router = APIRouter(prefix="/api", tags=["leads"])
logger = get_logger(__name__)

SYNC_PLATFORMS = {"facebook": LeadSource.FACEBOOK, "google": LeadSource.GOOGLE}


# ============================================================
# HELPERS
# ============================================================

def _annotated(user_id: str, lead_id: str) -> Lead:
    """The lead with aging and health computed against the user's full list."""
    for lead in annotate_leads(lead_store.list_leads(user_id)):
        if lead.id == lead_id:
            return lead
    raise HTTPException(status_code=404, detail="Lead not found")


def _require_lead(user_id: str, lead_id: str) -> Lead:
    lead = lead_store.get_lead(user_id, lead_id)
    if not lead:
        raise HTTPException(status_code=404, detail="Lead not found")
    return lead


def _save(user_id: str, lead: Lead, is_invalid_email: Optional[bool] = None) -> Lead:
    payload = lead_store.lead_to_payload(lead.model_dump(mode="json"), is_invalid_email)
    if not lead_store.update_lead(user_id, lead.id, payload):
        raise HTTPException(status_code=404, detail="Lead not found")
    return _annotated(user_id, lead.id)


def _matches(lead: Lead, q: str) -> bool:
    q = q.lower()
    return any(q in (value or "").lower() for value in (lead.name, lead.email, lead.propertyAddress))


def create_lead_for_user(user_id: str, data: LeadCreate) -> Lead:
    """Standardize, check the email, persist and return the annotated lead."""
    fields = data.model_dump(mode="json")
    fields["name"] = standardize_name(data.name) or "Unknown Buyer"

    is_invalid_email = None
    if data.email:
        is_invalid_email = not ai_assist.validate_email_address(data.email)

    lead = lead_store.insert_lead(user_id, lead_store.lead_to_payload(fields, is_invalid_email))
    log_action(
        logger, "info", "lead_created", "Lead created",
        lead_id=lead.id, source=lead.source.value, invalid_email=is_invalid_email,
    )
    return _annotated(user_id, lead.id)


# ============================================================
# CRUD
# ============================================================

@router.get("/leads", response_model=List[Lead])
def list_leads(
    status: Optional[str] = None,
    stage: Optional[str] = None,
    q: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    user_id: str = Depends(get_current_user_id)
):
    """List the user's leads, newest first."""
    leads = annotate_leads(lead_store.list_leads(user_id))
    if status:
        leads = [lead for lead in leads if lead.status.value == status]
    if stage:
        leads = [lead for lead in leads if lead.stage.value == stage]
    if q:
        leads = [lead for lead in leads if _matches(lead, q)]
    return leads[offset:offset + limit]


@router.get("/leads/health", response_model=LeadHealthReport)
def lead_health_report(user_id: str = Depends(get_current_user_id)):
    """Leads with at least one data-quality issue."""
    leads = annotate_leads(lead_store.list_leads(user_id))
    flagged = [
        lead for lead in leads
        if lead.health.isDuplicate or lead.health.isInvalidEmail or lead.health.needsStandardization
    ]
    return LeadHealthReport(
        total=len(leads),
        duplicates=sum(1 for lead in leads if lead.health.isDuplicate),
        invalidEmails=sum(1 for lead in leads if lead.health.isInvalidEmail),
        needsStandardization=sum(1 for lead in leads if lead.health.needsStandardization),
        leads=flagged,
    )


@router.get("/leads/{lead_id}", response_model=Lead)
def get_lead(lead_id: str, user_id: str = Depends(get_current_user_id)):
    return _annotated(user_id, lead_id)


@router.post("/leads", response_model=Lead)
def create_lead(data: LeadCreate, user_id: str = Depends(get_current_user_id)):
    return create_lead_for_user(user_id, data)


@router.patch("/leads/{lead_id}", response_model=Lead)
def update_lead(lead_id: str, update: LeadUpdate, user_id: str = Depends(get_current_user_id)):
    """Edit a lead. Only the fields present in the body change."""
    lead = _require_lead(user_id, lead_id)
    changes = update.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=400, detail="No updates provided")
    if "name" in changes:
        changes["name"] = standardize_name(changes["name"]) or "Unknown Buyer"

    updated = lead.model_copy(update=changes)
    is_invalid_email = None
    if "email" in changes and updated.email != lead.email:
        is_invalid_email = bool(updated.email) and not ai_assist.validate_email_address(updated.email)
    return _save(user_id, updated, is_invalid_email)


@router.patch("/leads/{lead_id}/status", response_model=Lead)
def update_lead_status(lead_id: str, update: LeadStatusUpdate, user_id: str = Depends(get_current_user_id)):
    lead = _require_lead(user_id, lead_id)
    log_action(
        logger, "info", "lead_status_changed", "Lead status changed",
        lead_id=lead_id, old=lead.status.value, new=update.status.value,
    )
    return _save(user_id, lead.model_copy(update={"status": update.status}))


@router.patch("/leads/{lead_id}/stage", response_model=Lead)
def update_lead_stage(lead_id: str, update: LeadStageUpdate, user_id: str = Depends(get_current_user_id)):
    lead = _require_lead(user_id, lead_id)
    return _save(user_id, lead.model_copy(update={"stage": update.stage}))


# ============================================================
# AI HELPERS
# ============================================================

@router.post("/leads/{lead_id}/score", response_model=Lead)
def score_lead(lead_id: str, user_id: str = Depends(get_current_user_id)):
    lead = _require_lead(user_id, lead_id)
    try:
        score = ai_assist.score_lead(lead)
    except GenAIError as e:
        logger.error(f"Priority scoring failed for lead {lead_id}: {e}")
        raise HTTPException(status_code=502, detail="Priority scoring failed")
    return _save(user_id, lead.model_copy(update={"priorityScore": score}))


@router.post("/leads/{lead_id}/next-step", response_model=Lead)
def suggest_next_step(lead_id: str, user_id: str = Depends(get_current_user_id)):
    lead = _require_lead(user_id, lead_id)
    try:
        suggestion = ai_assist.suggest_next_step(lead)
    except GenAIError as e:
        logger.error(f"Next step suggestion failed for lead {lead_id}: {e}")
        raise HTTPException(status_code=502, detail="Next step suggestion failed")
    notes = ai_assist.append_note(lead.notes, f"AI Insight: {suggestion}", separator="\n\n")
    return _save(user_id, lead.model_copy(update={"notes": notes}))


@router.post("/leads/{lead_id}/voice-note", response_model=Lead)
def add_voice_note(
    lead_id: str,
    audio: UploadFile = File(...),
    user_id: str = Depends(get_current_user_id)
):
    """Summarize a recorded voice note into the lead's notes and next task."""
    lead = _require_lead(user_id, lead_id)
    content = audio.file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Empty audio upload")

    try:
        result = ai_assist.extract_voice_note(content, audio.content_type or "audio/webm")
    except GenAIError as e:
        logger.error(f"Voice note extraction failed for lead {lead_id}: {e}")
        raise HTTPException(status_code=502, detail="Voice note processing failed")

    return _save(user_id, lead.model_copy(update={
        "notes": ai_assist.append_note(lead.notes, f"Voice Summary: {result.summary}"),
        "nextFollowUpTask": result.nextStep,
        "sentiment": result.sentiment,
        "taskCompleted": False,
    }))


@router.post("/leads/sync/{platform}", response_model=Lead)
def sync_platform_lead(platform: str, user_id: str = Depends(get_current_user_id)):
    """Pull one (simulated) inbound lead from a connected ad platform."""
    source = SYNC_PLATFORMS.get(platform.lower())
    if not source:
        raise HTTPException(status_code=400, detail=f"Unsupported platform: {platform}")
    if not is_channel_connected(lead_store.get_integrations(user_id), platform.lower()):
        raise HTTPException(status_code=400, detail=f"{source.value} integration is not connected")

    try:
        synced = ai_assist.fabricate_platform_lead(source.value)
    except GenAIError as e:
        logger.error(f"{source.value} sync failed: {e}")
        raise HTTPException(status_code=502, detail=f"{source.value} sync failed")

    lead = create_lead_for_user(user_id, LeadCreate(
        name=synced["name"],
        email=synced["email"],
        phone=synced["phone"],
        source=source,
        propertyAddress=synced["interest"],
    ))
    log_action(logger, "info", "lead_synced", f"Lead synced from {source.value}", lead_id=lead.id, platform=platform)
    return lead
