"""
Settings Router

Profile, channel/ad-platform integrations and team members.
"""

from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from ..auth import get_current_user_id
from ..logging_config import get_logger, log_action
from ..models import Integrations, IntegrationTestResult, Profile, ProfileUpdate, TeamInvite, TeamMember
from ..services import lead_store
from ..services.integrations import SERVICES, apply_test_result, validate_credentials

router = APIRouter(prefix="/api", tags=["settings"])
logger = get_logger(__name__)


def _require_profile(user_id: str) -> dict:
    profile = lead_store.get_profile(user_id)
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


# ============================================================
# PROFILE
# ============================================================

@router.get("/profile", response_model=Profile)
def get_profile(user_id: str = Depends(get_current_user_id)):
    return lead_store.row_to_profile(_require_profile(user_id))


@router.patch("/profile", response_model=Profile)
def update_profile(update: ProfileUpdate, user_id: str = Depends(get_current_user_id)):
    changes = update.model_dump(exclude_unset=True)
    row = lead_store.update_profile(user_id, changes)
    if not row:
        raise HTTPException(status_code=404, detail="Profile not found")
    if "subscriptionPlan" in changes:
        log_action(
            logger, "info", "plan_changed", "Subscription plan changed",
            plan=changes["subscriptionPlan"],
        )
    return lead_store.row_to_profile(row)


# ============================================================
# INTEGRATIONS
# ============================================================

@router.get("/integrations", response_model=Integrations)
def get_integrations(user_id: str = Depends(get_current_user_id)):
    return lead_store.get_integrations(user_id)


@router.put("/integrations", response_model=Integrations)
def replace_integrations(integrations: Integrations, user_id: str = Depends(get_current_user_id)):
    _require_profile(user_id)
    lead_store.save_integrations(user_id, integrations.model_dump(mode="json"))
    return integrations


@router.post("/integrations/{service}/test", response_model=IntegrationTestResult)
def test_integration(service: str, user_id: str = Depends(get_current_user_id)):
    """Check the stored credentials of one service and record the outcome."""
    if service not in SERVICES:
        raise HTTPException(status_code=400, detail=f"Unknown integration: {service}")
    _require_profile(user_id)

    integrations = lead_store.get_integrations(user_id)
    settings = getattr(integrations, service).model_dump(
        mode="json", exclude={"connected", "statusMessage", "lastTested"}
    )
    result = validate_credentials(service, settings)
    updated = apply_test_result(integrations, service, result)
    lead_store.save_integrations(user_id, updated.model_dump(mode="json"))
    return result


# ============================================================
# TEAM
# ============================================================

@router.get("/team", response_model=List[TeamMember])
def list_team(user_id: str = Depends(get_current_user_id)):
    """The account owner first, then invited members."""
    profile = lead_store.get_profile(user_id) or {}
    owner = TeamMember(
        id=user_id,
        email=profile.get("email") or "",
        name="You",
        role="Admin",
        status="Active",
        joinedAt=lead_store.iso_timestamp(profile.get("created_at")) or datetime.now(timezone.utc).isoformat(),
    )
    try:
        rows = lead_store.list_team_members(user_id)
    except Exception as e:
        logger.error(f"Failed to load team members: {e}", exc_info=True)
        return [owner]
    return [owner] + [lead_store.row_to_team_member(row) for row in rows]


@router.post("/team", response_model=TeamMember)
def invite_member(invite: TeamInvite, user_id: str = Depends(get_current_user_id)):
    row = lead_store.insert_team_member(user_id, invite.email, invite.name or invite.email, invite.role)
    log_action(logger, "info", "team_member_invited", "Team member invited", role=invite.role)
    return lead_store.row_to_team_member(row)


@router.delete("/team/{member_id}")
def remove_member(member_id: str, user_id: str = Depends(get_current_user_id)):
    if not lead_store.delete_team_member(user_id, member_id):
        raise HTTPException(status_code=404, detail="Team member not found")
    return {"status": "removed"}
