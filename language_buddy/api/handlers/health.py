"""
Health and readiness endpoints.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ...config import Settings
from ...services.scheduler import ProactiveScheduler
from ...services.storage import SubscriberStore
from ...utils.logging import get_logger

logger = get_logger("buddy.health")


class HealthResponse(BaseModel):
    """Body of GET /health/."""
    status: str
    version: str
    uptime_seconds: float
    scheduler_running: bool


class HealthHandler:
    """Reports process health, and readiness of the database behind it."""

    def __init__(
        self,
        settings: Settings,
        scheduler: Optional[ProactiveScheduler] = None,
        store: Optional[SubscriberStore] = None,
    ):
        self.settings = settings
        self.scheduler = scheduler
        self.store = store
        self.started_at = datetime.now(timezone.utc)
        self.router = APIRouter()
        self._setup_routes()

    @property
    def scheduler_running(self) -> bool:
        return bool(self.scheduler and self.scheduler.running)

    def _setup_routes(self):
        """Setup health routes."""

        @self.router.get("/", response_model=HealthResponse)
        async def health_check():
            return HealthResponse(
                status="healthy",
                version=self.settings.app_version,
                uptime_seconds=(datetime.now(timezone.utc) - self.started_at).total_seconds(),
                scheduler_running=self.scheduler_running,
            )

        @self.router.get("/ready")
        async def readiness_check():
            """Ready once the state database answers."""
            if self.store is not None:
                try:
                    await self.store.ping()
                except Exception as e:
                    logger.error(f"health: database not ready: {e}")
                    return JSONResponse(
                        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                        content={"status": "unavailable", "database": False},
                    )
            return {
                "status": "ready",
                "database": self.store is not None,
                "scheduler": self.scheduler_running or not self.settings.scheduler_enabled,
            }

        @self.router.get("/live")
        async def liveness_check():
            return {"status": "alive"}
