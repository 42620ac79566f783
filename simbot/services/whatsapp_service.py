from typing import Optional

import httpx

from simbot.config import settings
from simbot.logging_config import get_logger
from simbot.services.log_sanitizer import mask_phone

logger = get_logger("whatsapp_service")


class WhatsAppDeliveryError(Exception):
    """The messaging provider did not accept an outbound message."""


class WhatsAppService:
    """Service for sending messages through the WhatsApp Cloud API."""

    def __init__(self, api_url: Optional[str] = None, access_token: Optional[str] = None, timeout: float = 30.0):
        self.api_url = api_url or settings.whatsapp_api_url
        if not self.api_url.endswith("/"):
            self.api_url += "/"
        self.access_token = access_token if access_token is not None else settings.whatsapp_access_token
        self.timeout = timeout

    def send_text(self, phone_number_id: str, to: str, body: str) -> dict:
        """Send a text message to `to` from the business number `phone_number_id`."""
        payload = {
            "messaging_product": "whatsapp",
            "to": to,
            "type": "text",
            "text": {"body": body},
        }
        url = f"{self.api_url}{phone_number_id}/messages"
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(
                    url,
                    headers={
                        "accept": "application/json",
                        "Authorization": f"Bearer {self.access_token}",
                    },
                    json=payload,
                )
        except httpx.HTTPError as e:
            raise WhatsAppDeliveryError(f"WhatsApp transport error: {e}") from e

        if response.status_code >= 400:
            logger.error(f"Failed to send WhatsApp message to {mask_phone(to)}: {response.status_code}")
            raise WhatsAppDeliveryError(f"WhatsApp API error: {response.status_code} - {response.text[:300]}")

        logger.info(f"Sent WhatsApp message to {mask_phone(to)}")
        return response.json() if response.content else {}


_whatsapp_service: Optional[WhatsAppService] = None


def get_whatsapp_service() -> WhatsAppService:
    global _whatsapp_service
    if _whatsapp_service is None:
        _whatsapp_service = WhatsAppService()
    return _whatsapp_service
