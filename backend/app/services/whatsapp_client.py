"""
WhatsApp Cloud API Client

Sends outreach text messages through Meta's WhatsApp Business Cloud API
using the credentials stored in the user's integration settings.

API Reference: https://developers.facebook.com/docs/whatsapp/cloud-api
"""

import os
import logging
from typing import Dict, Any
import httpx

logger = logging.getLogger(__name__)

WHATSAPP_API_VERSION = os.getenv("WHATSAPP_API_VERSION", "v18.0")
WHATSAPP_API_BASE = f"https://graph.facebook.com/{WHATSAPP_API_VERSION}"
MAX_TEXT_LENGTH = 4096


class WhatsAppClientError(Exception):
    """Exception raised for WhatsApp API errors"""
    def __init__(self, message: str, status_code: int = None, response: dict = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


def normalize_recipient(phone: str) -> str:
    """Cloud API wants bare digits with country code."""
    return phone.replace("+", "").replace("-", "").replace(" ", "").replace("(", "").replace(")", "")


class WhatsAppClient:
    """
    Client for WhatsApp Cloud API.

    Usage:
        client = WhatsAppClient(phone_number_id, access_token)
        await client.send_text("+1234567890", "Hello!")
    """

    def __init__(self, phone_number_id: str, access_token: str, timeout: float = 30.0):
        self.phone_number_id = phone_number_id
        self.access_token = access_token
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.phone_number_id and self.access_token)

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json"
        }

    def _get_messages_url(self) -> str:
        return f"{WHATSAPP_API_BASE}/{self.phone_number_id}/messages"

    async def _send_request(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Send request to WhatsApp API.

        Raises:
            WhatsAppClientError: If credentials are missing or the API returns an error
        """
        if not self.configured:
            raise WhatsAppClientError("WhatsApp credentials not configured")

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                self._get_messages_url(),
                headers=self._get_headers(),
                json=payload
            )

            result = response.json()

            if response.status_code >= 400:
                error_msg = result.get("error", {}).get("message", "Unknown error")
                logger.error(f"WhatsApp API error: {error_msg}")
                raise WhatsAppClientError(
                    error_msg,
                    status_code=response.status_code,
                    response=result
                )

            return result

    async def send_text(self, to: str, text: str, preview_url: bool = False) -> Dict[str, Any]:
        """
        Send a text message.

        Args:
            to: Recipient phone number
            text: Message text, truncated to the API limit
            preview_url: Whether to show URL previews

        Returns:
            API response with message ID
        """
        to = normalize_recipient(to)

        if len(text) > MAX_TEXT_LENGTH:
            text = text[:MAX_TEXT_LENGTH - 6] + "..."
            logger.warning(f"Message truncated to {MAX_TEXT_LENGTH} chars for {to}")

        payload = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": to,
            "type": "text",
            "text": {
                "preview_url": preview_url,
                "body": text
            }
        }

        result = await self._send_request(payload)
        logger.info(f"Sent WhatsApp message to {to}")
        return result
