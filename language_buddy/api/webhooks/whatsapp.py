"""
WhatsApp webhook handler.
"""

import hashlib
import hmac
import json
from typing import Optional

from fastapi import APIRouter, Request, Response, status
from fastapi.responses import PlainTextResponse

from ...config import Settings
from ...core.models import WebhookMessage
from ...services.messaging import MessagingService
from ...utils.logging import get_logger

logger = get_logger("buddy.webhook")


class WhatsAppWebhook:
    """Handler for WhatsApp Cloud API webhook events."""

    def __init__(self, settings: Settings, messaging: MessagingService):
        self.settings = settings
        self.messaging = messaging
        self.router = APIRouter()
        self._setup_routes()

    def _setup_routes(self):
        """Setup WhatsApp webhook routes."""

        @self.router.get("")
        async def verify_webhook(request: Request):
            """Answer the Meta verification handshake."""
            params = request.query_params
            mode = params.get("hub.mode")
            token = params.get("hub.verify_token")
            challenge = params.get("hub.challenge", "")
            expected = self.settings.whatsapp_verify_token
            if mode == "subscribe" and expected and token == expected:
                logger.info("webhook: verification succeeded")
                return PlainTextResponse(challenge)
            logger.warning("webhook: verification failed")
            return Response(status_code=status.HTTP_403_FORBIDDEN)

        @self.router.post("")
        async def receive_whatsapp_message(request: Request):
            """Handle incoming WhatsApp messages."""
            raw = await request.body()

            if self.settings.whatsapp_app_secret:
                signature = request.headers.get("X-Hub-Signature-256")
                if not self._verify_signature(raw, signature):
                    logger.warning("webhook: signature verification failed")
                    return Response(status_code=status.HTTP_401_UNAUTHORIZED)

            try:
                body = json.loads(raw or b"{}")
            except ValueError as e:
                logger.warning(f"webhook: malformed JSON body ignored: {e}")
                return {"status": "ignored"}

            message = WebhookMessage.from_payload(body) if isinstance(body, dict) else None
            if message is None:
                # Status callbacks and other events carry no message
                return {"status": "ignored"}

            logger.info(f"webhook: message {message.id} ({message.type}) from {message.from_}")
            result = await self.messaging.handle_webhook_message(message)
            return {"status": result}

    def _verify_signature(self, raw: bytes, signature: Optional[str]) -> bool:
        """Check X-Hub-Signature-256 against the app secret."""
        if not signature or not signature.startswith("sha256="):
            return False
        expected = hmac.new(
            self.settings.whatsapp_app_secret.encode("utf-8"), raw, hashlib.sha256
        ).hexdigest()
        return hmac.compare_digest(expected, signature.split("=", 1)[1])
