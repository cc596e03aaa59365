"""
AI Assist

Model-backed helpers for the lead desk: email deliverability check, priority
scoring, next-step suggestions, voice-note extraction, outreach drafting,
pipeline insights, marketing assets and simulated platform sync.

Each helper is a single request/response call. Helpers with a safe default
(email check, pipeline insights) catch GenAIError and fall back; the rest
let it propagate so the router can answer 502.
"""

import os
import re
from typing import Any, Dict, Optional

from ..logging_config import get_logger, log_action
from ..models import Lead, MarketingAssets, MessageChannel, Sentiment, VoiceNoteResult
from .cleaning import is_fake_email, is_valid_email_syntax
from .genai_client import GenAIError, GenerativeProvider, get_provider

logger = get_logger(__name__)

DEFAULT_PRIORITY_SCORE = 50
INSIGHTS_FALLBACK = "The strategy engine is currently re-calibrating. Please try again in a moment."
MARKDOWN_SYMBOLS = re.compile(r"[*#_~`>]")
LIST_NUMBERING = re.compile(r"^[0-9]+[.)]\s+", re.MULTILINE)
FIRST_INTEGER = re.compile(r"-?\d+")


def _provider(provider: Optional[GenerativeProvider]) -> GenerativeProvider:
    return provider or get_provider()


def remote_email_check_enabled() -> bool:
    return os.getenv("EMAIL_REMOTE_CHECK", "true").lower() in ("1", "true", "yes")


# ============================================================
# EMAIL DELIVERABILITY
# ============================================================

EMAIL_CHECK_PROMPT = """You are an email deliverability checker for a real estate CRM.
Classify whether this address is likely a real, deliverable mailbox (not a
disposable, placeholder or typo domain).

Email: {email}

Answer with exactly one word: valid or invalid."""


def validate_email_address(email: str, provider: Optional[GenerativeProvider] = None) -> bool:
    """
    True when the address looks deliverable.

    Local heuristics run first; only plausible addresses go to the model. Any
    model failure falls back to the syntax-only result.
    """
    if is_fake_email(email):
        return False
    if not remote_email_check_enabled():
        return is_valid_email_syntax(email)

    try:
        answer = _provider(provider).generate_text(EMAIL_CHECK_PROMPT.format(email=email)).lower()
    except (GenAIError, ValueError) as e:
        logger.warning(f"Remote email check failed, using syntax check: {e}")
        return is_valid_email_syntax(email)

    if "invalid" in answer:
        return False
    if "valid" in answer:
        return True
    logger.warning(f"Unrecognized email check answer: {answer[:50]}")
    return is_valid_email_syntax(email)


# ============================================================
# LEAD SCORING AND NOTES
# ============================================================

PRIORITY_PROMPT = """Analyze this real estate lead and give a priority score 0-100.
Name: {name}
Stage: {stage}
Property: {property}
Notes: {notes}
Return ONLY a number."""


def parse_priority_score(text: str) -> int:
    """First integer in the text clamped to 0-100; 50 when there is none."""
    match = FIRST_INTEGER.search(text or "")
    if not match:
        return DEFAULT_PRIORITY_SCORE
    return max(0, min(100, int(match.group(0))))


def score_lead(lead: Lead, provider: Optional[GenerativeProvider] = None) -> int:
    prompt = PRIORITY_PROMPT.format(
        name=lead.name,
        stage=lead.stage.value,
        property=lead.propertyAddress or "Not specified",
        notes=lead.notes or "None",
    )
    score = parse_priority_score(_provider(provider).generate_text(prompt))
    log_action(logger, "info", "lead_scored", "Lead priority scored", lead_id=lead.id, score=score)
    return score


def suggest_next_step(lead: Lead, provider: Optional[GenerativeProvider] = None) -> str:
    prompt = (
        f"Context: Real Estate Lead. Name: {lead.name}, Property: {lead.propertyAddress}. "
        f"Notes: {lead.notes}. Generate a professional next-step suggestion."
    )
    return _provider(provider).generate_text(prompt)


def append_note(notes: str, line: str, separator: str = "\n") -> str:
    if not notes:
        return line
    return f"{notes}{separator}{line}"


VOICE_NOTE_PROMPT = (
    "Extract real estate lead details: interaction summary, next follow-up task, "
    "and sentiment. Return JSON."
)

VOICE_NOTE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "summary": {"type": "STRING"},
        "nextStep": {"type": "STRING"},
        "sentiment": {"type": "STRING", "enum": ["Positive", "Neutral", "Negative"]},
    },
    "required": ["summary", "nextStep", "sentiment"],
}


def extract_voice_note(
    audio: bytes,
    mime_type: str = "audio/webm",
    provider: Optional[GenerativeProvider] = None,
) -> VoiceNoteResult:
    result = _provider(provider).generate_json_from_audio(
        audio, mime_type, VOICE_NOTE_PROMPT, schema=VOICE_NOTE_SCHEMA
    )
    if not isinstance(result, dict):
        raise GenAIError("Voice note response is not an object")

    sentiment = result.get("sentiment")
    if sentiment not in {s.value for s in Sentiment}:
        sentiment = Sentiment.NEUTRAL.value

    return VoiceNoteResult(
        summary=str(result.get("summary") or ""),
        nextStep=str(result.get("nextStep") or ""),
        sentiment=sentiment,
    )


# ============================================================
# OUTREACH AND PIPELINE
# ============================================================

COMPOSE_PROMPT = """Draft a professional {channel} outreach for a lead.
Lead Name: {name}
Current Status: {status}
Notes: {notes}
Tone: Professional, helpful, concise.
Context: Follow up on their interest and suggest a brief call.
IMPORTANT: Use the placeholder {{{{name}}}} for the recipient's name so I can bulk personalize it."""


def compose_outreach(
    lead: Lead,
    channel: MessageChannel,
    provider: Optional[GenerativeProvider] = None,
) -> str:
    prompt = COMPOSE_PROMPT.format(
        channel=channel.value,
        name=lead.name,
        status=lead.status.value,
        notes=lead.notes or "No previous notes",
    )
    return _provider(provider).generate_text(prompt)


INSIGHTS_PROMPT = """Analyze this real estate pipeline: {total} total leads, {won} won, {critical} at risk.
Provide 3 high-impact tactical suggestions for the agent.

CRITICAL FORMATTING RULES:
1. Write in clear, professional paragraphs.
2. DO NOT use numbers (1, 2, 3), bullet points, or any markdown symbols like asterisks (*) or hashes (#).
3. Use full words for numbers where possible.
4. Each suggestion should be a concise paragraph of professional advice.
5. Avoid headers entirely."""


def clean_insight_text(text: str) -> str:
    text = MARKDOWN_SYMBOLS.sub("", text or "")
    return LIST_NUMBERING.sub("", text).strip()


def pipeline_insights(
    total: int,
    won: int,
    critical: int,
    provider: Optional[GenerativeProvider] = None,
) -> str:
    try:
        text = _provider(provider).generate_text(
            INSIGHTS_PROMPT.format(total=total, won=won, critical=critical)
        )
    except (GenAIError, ValueError) as e:
        logger.warning(f"Pipeline insights failed: {e}")
        return INSIGHTS_FALLBACK
    return clean_insight_text(text) or INSIGHTS_FALLBACK


# ============================================================
# MARKETING
# ============================================================

MARKETING_IMAGE_PROMPT = (
    "A photorealistic, high-end architectural shot of this property: {description}. "
    "Luxury real estate magazine style, evening twilight lighting, wide-angle lens, "
    "professional staging."
)

MARKETING_COPY_PROMPT = """Create marketing assets for this property: {description}.
Provide:
1. Instagram caption
2. Facebook post
3. LinkedIn professional update
4. A formal Flyer text (Headline, Body, and 5 Key Features).
Format as JSON."""

MARKETING_COPY_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "ig": {"type": "STRING"},
        "fb": {"type": "STRING"},
        "li": {"type": "STRING"},
        "flyer": {
            "type": "OBJECT",
            "properties": {
                "headline": {"type": "STRING"},
                "body": {"type": "STRING"},
                "features": {"type": "ARRAY", "items": {"type": "STRING"}},
            },
            "required": ["headline", "body", "features"],
        },
    },
    "required": ["ig", "fb", "li", "flyer"],
}


def generate_marketing_assets(
    description: str,
    provider: Optional[GenerativeProvider] = None,
) -> MarketingAssets:
    provider = _provider(provider)
    image = provider.generate_image(MARKETING_IMAGE_PROMPT.format(description=description), aspect_ratio="16:9")
    copy = provider.generate_json(
        MARKETING_COPY_PROMPT.format(description=description),
        schema=MARKETING_COPY_SCHEMA,
    )
    if not isinstance(copy, dict):
        raise GenAIError("Marketing copy response is not an object")
    return MarketingAssets(
        image=image,
        ig=copy.get("ig") or "",
        fb=copy.get("fb") or "",
        li=copy.get("li") or "",
        flyer=copy.get("flyer") or {},
    )


# ============================================================
# PLATFORM SYNC
# ============================================================

SYNC_LEAD_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "name": {"type": "STRING"},
        "email": {"type": "STRING"},
        "phone": {"type": "STRING"},
        "interest": {"type": "STRING"},
    },
}


def fabricate_platform_lead(platform: str, provider: Optional[GenerativeProvider] = None) -> Dict[str, Any]:
    """
    Simulated lead sync: the ad platforms are not called, the model invents
    one plausible inbound lead in the platform's style.
    """
    result = _provider(provider).generate_json(
        f"Provide 1 new mock lead for {platform} in JSON format.",
        schema=SYNC_LEAD_SCHEMA,
    )
    if not isinstance(result, dict) or not result.get("name"):
        raise GenAIError("Synced lead is missing a name")
    return {
        "name": str(result.get("name") or ""),
        "email": str(result.get("email") or ""),
        "phone": str(result.get("phone") or ""),
        "interest": str(result.get("interest") or ""),
    }
