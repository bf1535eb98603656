"""FastAPI application for the Chainrails transfer demo.

Run with: uvicorn transfer_app.serve:app --port 3000
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from transfer_app.client import ChainrailsAPIError, ChainrailsConfigError
from transfer_app.config import get_settings
from transfer_app.routes import router
from transfer_app.webhooks.handlers import register_webhook_routes

logger = logging.getLogger(__name__)


async def _chainrails_error_handler(request: Request, exc: ChainrailsAPIError) -> JSONResponse:
    return JSONResponse(
        {"error": "Chainrails API request failed", "status": exc.status_code},
        status_code=502,
    )


async def _config_error_handler(request: Request, exc: ChainrailsConfigError) -> JSONResponse:
    logger.error("Chainrails client misconfigured: %s", exc)
    return JSONResponse({"error": "Chainrails API is not configured"}, status_code=503)


def create_app() -> FastAPI:
    """Build the FastAPI app with transfer and webhook routes."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="Chainrails Transfer App")

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "webhook_verification": "enabled" if settings.webhook_secret else "disabled",
        }

    app.include_router(router)
    register_webhook_routes(app)
    app.add_exception_handler(ChainrailsAPIError, _chainrails_error_handler)
    app.add_exception_handler(ChainrailsConfigError, _config_error_handler)

    if not settings.webhook_secret:
        logger.warning("CHAINRAILS_WEBHOOK_SECRET not set, webhook signatures will not be verified")

    return app


app = create_app()
