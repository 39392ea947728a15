"""
FastAPI application factory and configuration.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from ..config import Settings, get_settings
from ..container import ServiceContainer
from ..utils.logging import configure_logging
from .middleware import SecurityHeaders, LoggingMiddleware
from .webhooks import WhatsAppWebhook
from .handlers import HealthHandler, InitiateHandler


def create_app(
    settings: Optional[Settings] = None,
    container: Optional[ServiceContainer] = None,
) -> FastAPI:
    """Create and configure FastAPI application."""
    settings = settings or (container.settings if container else get_settings())
    configure_logging(settings.log_level)
    container = container or ServiceContainer(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.scheduler_enabled:
            container.scheduler.start()
        try:
            yield
        finally:
            container.scheduler.shutdown()

    app = FastAPI(
        title=settings.app_name,
        description="WhatsApp language practice buddy",
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.container = container

    # Add custom middleware
    app.add_middleware(SecurityHeaders)
    app.add_middleware(LoggingMiddleware)

    # Initialize handlers
    health_handler = HealthHandler(settings, container.scheduler, container.subscriber_store)
    whatsapp_webhook = WhatsAppWebhook(settings, container.messaging)
    initiate_handler = InitiateHandler(container.messaging)

    # Register routes
    app.include_router(health_handler.router, prefix="/health", tags=["health"])
    app.include_router(whatsapp_webhook.router, prefix="/webhook", tags=["webhooks"])
    app.include_router(initiate_handler.router, tags=["conversations"])

    return app
