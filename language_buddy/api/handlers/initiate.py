"""
Conversation initiation handler.
"""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from ...core.models import InitiateRequest
from ...services.messaging import MessagingService
from ...utils.logging import get_logger
from ...utils.phone import sanitize_phone_number

logger = get_logger("buddy.initiate")


class InitiateHandler:
    """Handler for POST /initiate."""

    def __init__(self, messaging: MessagingService):
        self.messaging = messaging
        self.router = APIRouter()
        self._setup_routes()

    def _setup_routes(self):
        """Setup initiation routes."""

        @self.router.post("/initiate")
        async def initiate_conversation(payload: InitiateRequest):
            """Start a conversation with the given phone."""
            phone = sanitize_phone_number(payload.phone)
            if not phone:
                return JSONResponse(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    content={"detail": "Missing 'phone' in request body."},
                )

            try:
                result = await self.messaging.initiate(phone)
            except Exception as e:
                logger.error(f"initiate: failed for {phone}: {e}")
                return JSONResponse(
                    status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                    content={"status": "failed"},
                )

            if result == "failed":
                return JSONResponse(
                    status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                    content={"status": result},
                )
            return {"status": result}
