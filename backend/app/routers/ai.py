"""
AI Router

Stateless generation endpoints: outreach drafts, marketing assets and
pipeline insights.
"""

from fastapi import APIRouter, Depends, HTTPException

from ..auth import get_current_user_id
from ..logging_config import get_logger, log_action
from ..models import AgingStatus, ComposeRequest, LeadStatus, MarketingAssets, MarketingRequest
from ..services import ai_assist, lead_store
from ..services.cleaning import annotate_leads
from ..services.genai_client import GenAIError

router = APIRouter(prefix="/api/ai", tags=["ai"])
logger = get_logger(__name__)


@router.post("/compose")
def compose_message(request: ComposeRequest, user_id: str = Depends(get_current_user_id)):
    """Draft a message for one lead; the draft keeps the {{name}} placeholder."""
    lead = lead_store.get_lead(user_id, request.leadId)
    if not lead:
        raise HTTPException(status_code=404, detail="Lead not found")
    try:
        draft = ai_assist.compose_outreach(lead, request.channel)
    except GenAIError as e:
        logger.error(f"Smart compose failed for lead {request.leadId}: {e}")
        raise HTTPException(status_code=502, detail="Message drafting failed")
    return {"content": draft}


@router.post("/marketing", response_model=MarketingAssets)
def generate_marketing(request: MarketingRequest, user_id: str = Depends(get_current_user_id)):
    try:
        assets = ai_assist.generate_marketing_assets(request.description)
    except GenAIError as e:
        logger.error(f"Marketing generation failed: {e}")
        raise HTTPException(status_code=502, detail="Marketing generation failed")
    log_action(logger, "info", "marketing_generated", "Marketing assets generated", has_image=bool(assets.image))
    return assets


@router.get("/insights")
def get_pipeline_insights(user_id: str = Depends(get_current_user_id)):
    leads = annotate_leads(lead_store.list_leads(user_id))
    text = ai_assist.pipeline_insights(
        total=len(leads),
        won=sum(1 for lead in leads if lead.status == LeadStatus.WON),
        critical=sum(1 for lead in leads if lead.agingStatus == AgingStatus.CRITICAL),
    )
    return {"insights": text}
