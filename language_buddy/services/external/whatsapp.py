"""
WhatsApp Cloud API transport.
"""

from typing import Any, Dict, Optional
import httpx

from ...config import Settings
from ...core.exceptions import WhatsAppAPIError
from ...utils.logging import get_logger
from ...utils.text import TextProcessor

logger = get_logger("buddy.whatsapp")


class WhatsAppClient:
    """Sends messages and read receipts through the Graph API."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.timeout = settings.whatsapp_timeout
        self.text_processor = TextProcessor()

    @property
    def configured(self) -> bool:
        return bool(self.settings.whatsapp_phone_id and self.settings.whatsapp_access_token)

    @property
    def messages_url(self) -> str:
        s = self.settings
        return f"{s.whatsapp_api_base}/{s.whatsapp_api_version}/{s.whatsapp_phone_id}/messages"

    async def _make_request(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST to the messages endpoint with error handling."""
        headers = {
            "Authorization": f"Bearer {self.settings.whatsapp_access_token}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.messages_url, json=payload, headers=headers)
                response.raise_for_status()
                return response.json()
        except httpx.TimeoutException:
            raise WhatsAppAPIError("Request timed out")
        except httpx.HTTPStatusError as e:
            raise WhatsAppAPIError(
                f"HTTP error {e.response.status_code}: {e.response.text[:200]}"
            )
        except (httpx.HTTPError, ValueError) as e:
            raise WhatsAppAPIError(f"Request failed: {e}")

    async def send_message(self, phone: str, text: str) -> bool:
        """Send ``text`` to ``phone``, split into WhatsApp-sized chunks."""
        if not self.configured:
            logger.warning("whatsapp: skipping send, WhatsApp env not configured")
            return False

        formatted = self.text_processor.markdown_to_whatsapp(text)
        chunks = self.text_processor.split_text_for_whatsapp(
            formatted, self.settings.wa_max_message_length
        )
        for chunk in chunks:
            payload = {
                "messaging_product": "whatsapp",
                "to": phone,
                "type": "text",
                "text": {"body": chunk},
            }
            try:
                await self._make_request(payload)
            except WhatsAppAPIError as e:
                logger.error(f"whatsapp: send to {phone} failed: {e}")
                return False
        return True

    async def mark_as_read(self, message_id: Optional[str]) -> None:
        if not message_id or not self.configured:
            return
        payload = {
            "messaging_product": "whatsapp",
            "status": "read",
            "message_id": message_id,
        }
        try:
            await self._make_request(payload)
        except WhatsAppAPIError as e:
            logger.warning(f"whatsapp: mark_as_read {message_id} failed: {e}")
