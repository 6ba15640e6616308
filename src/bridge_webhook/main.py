"""
WhatsApp Webhook Service

FastAPI app that receives WhatsApp webhooks from Meta Cloud API and writes
the messages into Bitrix24 Open Channels.

Responsibilities:
- Answer the verification handshake
- Verify webhook signature (when an app secret is configured)
- Dispatch messages and statuses
- Expose status and manual test endpoints
"""

import json
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from openlines_bridge.bitrix import BitrixGateway, get_gateway
from openlines_bridge.contracts.payloads import SendTestRequest, SuccessResponse
from openlines_bridge.core.errors import ValidationError
from openlines_bridge.core.logging import setup_logging
from openlines_bridge.core.settings import Settings, get_settings
from openlines_bridge.providers import WhatsAppProvider, get_provider
from openlines_bridge.providers.meta_cloud.webhook import validate_signature
from openlines_bridge.service.inbound_handler import InboundHandler
from openlines_bridge.service.outbound_handler import OutboundHandler
from openlines_bridge.webhook.dispatcher import WebhookDispatcher

logger = logging.getLogger(__name__)

SERVICE_NAME = "openlines-bridge"


def create_app(
    settings: Settings | None = None,
    provider: WhatsAppProvider | None = None,
    bitrix: BitrixGateway | None = None,
) -> FastAPI:
    """
    Build the webhook app.

    Gateways default to the ones selected in settings; tests pass stubs.

    Raises:
        ConfigurationError: if a required credential is missing
    """
    settings = settings or get_settings()

    provider = provider or get_provider(settings)
    bitrix = bitrix or get_gateway(settings)

    inbound = InboundHandler(provider, bitrix)
    outbound = OutboundHandler(provider, bitrix)
    dispatcher = WebhookDispatcher(settings, inbound)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("WhatsApp webhook service started")
        yield
        await provider.close()
        await bitrix.close()

    app = FastAPI(
        title="WhatsApp Open Channel Bridge",
        description="Receives WhatsApp webhooks and forwards them to Bitrix24 Open Channels",
        version="1.0.0",
        lifespan=lifespan,
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse({"error": exc.detail}, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse({"error": "Missing required fields: to, message"}, status_code=400)

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse({"error": str(exc)}, status_code=400)

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy", "service": SERVICE_NAME}

    @app.get("/webhook")
    async def verify_webhook(
        hub_mode: str = Query(None, alias="hub.mode"),
        hub_verify_token: str = Query(None, alias="hub.verify_token"),
        hub_challenge: str = Query(None, alias="hub.challenge"),
    ):
        """
        Handle Meta webhook verification.

        Meta sends a GET request with hub.mode, hub.verify_token, and hub.challenge.
        We must return hub.challenge if the token matches.
        """
        logger.info(
            "Webhook verification request",
            extra={"mode": hub_mode, "token_received": bool(hub_verify_token)},
        )

        challenge = dispatcher.verify(hub_mode, hub_verify_token, hub_challenge)
        if challenge is None:
            raise HTTPException(status_code=403, detail="Verification failed")

        return Response(content=challenge, media_type="text/plain")

    @app.post("/webhook", response_model=SuccessResponse)
    async def receive_webhook(request: Request):
        """
        Receive webhook from Meta Cloud API.

        Flow:
        1. Validate signature
        2. Parse payload
        3. Dispatch messages and statuses
        """
        body = await request.body()

        if settings.whatsapp_app_secret:
            signature = request.headers.get("X-Hub-Signature-256", "")
            if not validate_signature(body, signature, settings.whatsapp_app_secret):
                logger.warning("Invalid Meta webhook signature")
                raise HTTPException(status_code=403, detail="Invalid signature")

        payload = _parse_json(body)

        try:
            result = await dispatcher.dispatch(payload)
        except ValidationError:
            raise
        except Exception as e:
            # Still return 200 to prevent Meta from retrying
            logger.error(f"Error processing webhook: {e}", exc_info=True)
            return SuccessResponse(success=False)

        logger.info(
            "Processed webhook",
            extra={
                "messages": result.messages_processed,
                "failed": result.messages_failed,
                "statuses": result.statuses_processed,
            },
        )
        return SuccessResponse(success=result.success)

    @app.get("/api/status")
    async def status():
        """Connectivity of WhatsApp and Bitrix24."""
        return await outbound.status_dict()

    @app.post("/api/test-send", response_model=SuccessResponse)
    async def test_send(data: SendTestRequest):
        """Send a message to WhatsApp by hand."""
        if not data.to or not data.message:
            raise ValidationError("Missing required fields: to, message")

        response = await outbound.process_outgoing_message(
            data.to,
            data.message,
            data.media_url,
            data.media_type,
        )
        return SuccessResponse(success=response.success)

    @app.post("/api/test-webhook", response_model=SuccessResponse)
    async def test_webhook(request: Request):
        """Feed a hand-crafted webhook envelope through the dispatcher."""
        payload = _parse_json(await request.body())
        result = await dispatcher.dispatch_test(payload)
        return SuccessResponse(success=result.success)

    return app


def _parse_json(body: bytes) -> dict:
    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.warning("Invalid JSON payload")
        raise HTTPException(status_code=400, detail="Invalid JSON")

    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid JSON")
    return payload


def main(host: str = "0.0.0.0", port: int = 8090) -> None:
    import uvicorn

    setup_logging(get_settings())
    uvicorn.run("bridge_webhook.main:create_app", factory=True, host=host, port=port)


if __name__ == "__main__":
    main()
