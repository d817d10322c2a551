"""
Food Scanner Relay
FastAPI application relaying chat food photos to a nutrition analysis service.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from food_relay.config import RelaySettings, load_settings
from food_relay.routers import webhook

# Configure logging to output to console
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


def create_app(settings: Optional[RelaySettings] = None) -> FastAPI:
    """
    Build the relay application.

    Settings are resolved from the environment when not given and stored on
    ``app.state.settings`` for the request dependencies to pick up.
    """
    if settings is None:
        settings = load_settings()

    logging.getLogger().setLevel(settings.log_level)

    app = FastAPI(
        title="Food Scanner Relay",
        description="Relays chat food photos to a nutrition analysis service",
        version=VERSION,
    )
    app.state.settings = settings

    # CORS is only needed when browsers call /analyze-url directly
    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(webhook.router, tags=["webhook"])

    @app.on_event("startup")
    async def log_startup_urls() -> None:
        """
        Log where the relay is listening and where the platform should post.

        Example output:

            Food Scanner Relay running at:
              Local:   http://localhost:3000
              Webhook: http://localhost:3000/webhook
              Analysis endpoint: https://.../analyze (transfer=url, timeout=60s)
        """
        port = settings.listen_port
        logger.info(
            "Food Scanner Relay running at:\n"
            "  Local:   http://localhost:%s\n"
            "  Webhook: http://localhost:%s/webhook\n"
            "  Analysis endpoint: %s (transfer=%s, timeout=%gs)",
            port,
            port,
            settings.analysis_endpoint,
            settings.image_transfer,
            settings.request_timeout,
        )

    @app.get("/", response_class=PlainTextResponse)
    async def root(request: Request):
        bot_name = request.app.state.settings.bot_name
        return f"{bot_name} food scanner relay is running! 🍽️"

    @app.get("/health")
    async def health():
        return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}

    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the relay on the configured port."""
    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.listen_port)


if __name__ == "__main__":
    run()
