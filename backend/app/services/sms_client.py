"""
Twilio SMS Client

Posts to the Twilio Messages REST endpoint with the account credentials
from the user's SMS integration settings.
"""

import os
import logging
from typing import Dict, Any
import httpx

logger = logging.getLogger(__name__)

TWILIO_API_BASE = os.getenv("TWILIO_API_BASE", "https://api.twilio.com/2010-04-01")


class SmsClientError(Exception):
    """Exception raised for Twilio API errors"""
    def __init__(self, message: str, status_code: int = None, response: dict = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class TwilioSmsClient:
    def __init__(self, account_sid: str, auth_token: str, sender_id: str, timeout: float = 30.0):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.sender_id = sender_id
        self.timeout = timeout

    def _get_messages_url(self) -> str:
        return f"{TWILIO_API_BASE}/Accounts/{self.account_sid}/Messages.json"

    async def send_sms(self, to: str, body: str) -> Dict[str, Any]:
        """
        Send one SMS.

        Raises:
            SmsClientError: On any non-2xx response
        """
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                self._get_messages_url(),
                auth=(self.account_sid, self.auth_token),
                data={"To": to, "From": self.sender_id, "Body": body},
            )

        try:
            result = response.json()
        except ValueError:
            result = {"message": response.text}

        if response.status_code >= 400:
            error_msg = result.get("message", "Unknown error")
            logger.error(f"Twilio API error: {error_msg}")
            raise SmsClientError(error_msg, status_code=response.status_code, response=result)

        logger.info(f"Sent SMS to {to}, sid={result.get('sid')}")
        return result
