"""
Clerk authentication for the FastAPI backend using the official Clerk Python SDK.
Verifies Clerk session tokens and makes sure every signed-in user has a profile.
"""
import os
from typing import Optional

from fastapi import HTTPException, Request
from clerk_backend_api import Clerk
from clerk_backend_api.security.types import AuthenticateRequestOptions

from .logging_config import get_logger, log_action
from .services import lead_store

logger = get_logger(__name__)

_clerk_sdk: Optional[Clerk] = None


def get_clerk_sdk() -> Optional[Clerk]:
    """Clerk client built on first use, after .env has been loaded."""
    global _clerk_sdk
    if _clerk_sdk is None:
        secret_key = os.getenv("CLERK_SECRET_KEY", "")
        if not secret_key:
            logger.warning("CLERK_SECRET_KEY not set. Authentication will fail.")
            return None
        _clerk_sdk = Clerk(bearer_auth=secret_key)
    return _clerk_sdk


def get_or_create_profile(user_id: str) -> dict:
    """
    Get the profile for a Clerk user id, creating it on first login from the
    user's Clerk record.
    """
    profile = lead_store.get_profile(user_id)
    if profile:
        return profile

    clerk_sdk = get_clerk_sdk()
    if not clerk_sdk:
        raise HTTPException(
            status_code=500,
            detail="Clerk SDK not initialized. Check CLERK_SECRET_KEY."
        )

    try:
        user_data = clerk_sdk.users.get(user_id=user_id)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to load Clerk user: {str(e)}"
        )

    email = ""
    if user_data.email_addresses:
        email = user_data.email_addresses[0].email_address
    full_name = " ".join(
        part for part in (user_data.first_name, user_data.last_name) if part
    ) or None

    profile = lead_store.create_profile(user_id, email, full_name)
    log_action(logger, "info", "profile_created", "Profile created on first login", profile_id=user_id)
    return profile


async def get_current_user_id(request: Request) -> str:
    """
    FastAPI dependency that returns the authenticated user's id.

    Usage in routes:
        @router.get("/api/leads")
        def list_leads(user_id: str = Depends(get_current_user_id)):
            ...
    """
    clerk_sdk = get_clerk_sdk()
    if not clerk_sdk:
        raise HTTPException(
            status_code=500,
            detail="Clerk SDK not initialized. Check CLERK_SECRET_KEY environment variable."
        )

    try:
        request_state = clerk_sdk.authenticate_request(request, AuthenticateRequestOptions())

        if not request_state.is_signed_in:
            raise HTTPException(
                status_code=401,
                detail=f"Unauthorized: {request_state.reason or 'Not signed in'}"
            )

        user_id = request_state.payload.get("sub")
        if not user_id:
            raise HTTPException(
                status_code=401,
                detail="Invalid token: missing user ID"
            )

        profile = get_or_create_profile(user_id)
        if not profile or not profile.get("id"):
            raise HTTPException(status_code=403, detail="Profile not found")

    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=401,
            detail=f"Authentication failed: {str(e)}"
        )

    request.state.user_id = user_id
    return user_id
