"""
Integration settings: defaults, loading from the profile row, and the
credential check behind the "Test connection" button.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import ValidationError

from ..logging_config import get_logger, log_action
from ..models import Integrations, IntegrationTestResult
from .genai_client import GenAIError, GenerativeProvider, get_provider

logger = get_logger(__name__)

SERVICES = ("email", "sms", "whatsapp", "google", "facebook")
MOCK_MARKERS = ("test", "demo", "12345", "placeholder")

CREDENTIAL_CHECK_PROMPT = """Act as an API validator for real estate software. Review these credentials for {service}: {data}.
Check if the formats look plausible for the provider.
If the keys are explicitly "test", "demo", or standard placeholder formats, return valid: true but with a note about it being a simulated connection.
Return JSON ONLY: {{"valid": boolean, "error": string}}."""

CREDENTIAL_CHECK_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "valid": {"type": "BOOLEAN"},
        "error": {"type": "STRING"},
    },
    "required": ["valid"],
}


def load_integrations(raw: Any) -> Integrations:
    """Profile integrations JSON merged over the all-disabled defaults."""
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            raw = None
    if not isinstance(raw, dict):
        return Integrations()
    try:
        return Integrations.model_validate(raw)
    except ValidationError as e:
        logger.warning(f"Stored integrations are invalid, using defaults: {e.error_count()} errors")
        return Integrations()


def is_mock_data(data: Dict[str, Any]) -> bool:
    """Settings that obviously hold test/demo placeholders."""
    serialized = json.dumps(data).lower()
    return any(marker in serialized for marker in MOCK_MARKERS)


def validate_credentials(
    service: str,
    data: Dict[str, Any],
    provider: Optional[GenerativeProvider] = None,
) -> IntegrationTestResult:
    """
    Plausibility check of integration credentials by the model.

    Placeholder credentials always end up connected as a simulated
    connection so the rest of the app can be demoed without real accounts.
    """
    mock = is_mock_data(data)
    try:
        provider = provider or get_provider()
        result = provider.generate_json(
            CREDENTIAL_CHECK_PROMPT.format(service=service, data=json.dumps(data)),
            schema=CREDENTIAL_CHECK_SCHEMA,
        )
        if not isinstance(result, dict):
            raise GenAIError("Credential check response is not an object")
    except (GenAIError, ValueError) as e:
        logger.warning(f"Credential check for {service} failed: {e}")
        if mock:
            return IntegrationTestResult(connected=True, message="Local validation successful (Simulation Mode).")
        return IntegrationTestResult(connected=False, message="Validation engine timed out. Please retry.")

    valid = bool(result.get("valid"))
    if mock and not valid:
        return IntegrationTestResult(connected=True, message="Simulated connection established successfully.")
    return IntegrationTestResult(
        connected=valid,
        message=result.get("error") or "Live connection verified.",
    )


def apply_test_result(integrations: Integrations, service: str, result: IntegrationTestResult) -> Integrations:
    """Copy of the integrations with the tested service's status updated."""
    current = getattr(integrations, service)
    updated = current.model_copy(update={
        "connected": result.connected,
        "statusMessage": result.message,
        "lastTested": datetime.now(timezone.utc).isoformat(),
    })
    log_action(
        logger, "info", "integration_tested",
        f"Integration {service} tested",
        service=service, connected=result.connected,
    )
    return integrations.model_copy(update={service: updated})


def is_channel_connected(integrations: Integrations, channel: str) -> bool:
    settings = getattr(integrations, channel, None)
    return bool(settings and settings.connected)
