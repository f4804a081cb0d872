"""
FastAPI application: recording control and vendor webhook endpoints
"""

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from recrelay import __version__
from recrelay.agora_client import AgoraClient
from recrelay.config import Config
from recrelay.controller import RecordingController
from recrelay.dispatcher import BackgroundDispatcher
from recrelay.exceptions import ConfigurationError, RecrelayError
from recrelay.locator import FileLocator
from recrelay.relay import RelayPipeline
from recrelay.session_store import SessionRegistry, SessionStore
from recrelay.storage import S3ObjectStore
from recrelay.webhook import WebhookEvent, WebhookRouter, verify_signature

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    "INVALID_CONFIG": 500,
    "CONFLICT": 400,
    "VENDOR_CALL_FAILED": 502,
    "FILE_NOT_LOCATED": 404,
    "RELAY_FAILED": 502,
    "INVALID_SIGNATURE": 401,
}


class RecordingActionRequest(BaseModel):
    action: str = Field(..., description="'start' or 'stop'")


class RecordingActionResponse(BaseModel):
    success: bool
    message: str
    status: str | None = None
    session_id: str | None = None
    data: dict[str, Any] | None = None


class WebhookAck(BaseModel):
    message: str


@dataclass
class Services:
    config: Config
    store: SessionStore
    registry: SessionRegistry
    controller: RecordingController
    locator: FileLocator
    pipeline: RelayPipeline
    dispatcher: BackgroundDispatcher
    webhook_router: WebhookRouter


def build_services(config: Config) -> Services:
    """
    Wire the recording components together from a validated configuration

    Raises:
        ConfigurationError: Required settings are missing
    """
    config.validate()

    client = AgoraClient(
        str(config.agora_app_id),
        str(config.agora_customer_id),
        str(config.agora_customer_secret),
        base_url=config.agora_api_base_url,
    )
    store = SessionStore()
    registry = SessionRegistry(config.registry_path)
    object_store = S3ObjectStore(
        str(config.recordings_bucket_name),
        config.aws_region_name,
        str(config.aws_access_key_id),
        str(config.aws_secret_access_key),
    )
    pipeline = RelayPipeline(object_store, deadline_seconds=config.relay_deadline_seconds)
    locator = FileLocator(client, registry=registry, store=store)
    dispatcher = BackgroundDispatcher(
        max_workers=config.relay_workers, max_pending=config.relay_max_pending
    )
    return Services(
        config=config,
        store=store,
        registry=registry,
        controller=RecordingController(config, client, store, registry),
        locator=locator,
        pipeline=pipeline,
        dispatcher=dispatcher,
        webhook_router=WebhookRouter(locator, pipeline, dispatcher),
    )


def create_app(config: Config | None = None, services: Services | None = None) -> FastAPI:
    """Application factory; a misconfigured app still starts but refuses recording operations"""
    config = config or (services.config if services else Config())

    if services is None:
        try:
            services = build_services(config)
        except ConfigurationError as e:
            logger.error(f"{e.message} {e.details}".strip())
            services = None

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        if services is not None:
            services.dispatcher.shutdown(wait=False)

    app = FastAPI(
        title="recrelay",
        version=__version__,
        description="Cloud recording session control and recording relay",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.services = services

    def require_services() -> Services:
        if services is None:
            missing = config.missing_settings()
            raise ConfigurationError(
                "Recording service is not configured on the server.",
                details=f"Missing required environment variables: {', '.join(missing)}"
                if missing
                else "Invalid storage region",
            )
        return services

    @app.exception_handler(RecrelayError)
    async def recrelay_error_handler(request: Request, exc: RecrelayError) -> JSONResponse:
        status_code = ERROR_STATUS.get(exc.code, 500)
        if status_code >= 500:
            logger.error(f"{request.url.path}: {exc.message} {exc.details}".strip())
        content: dict[str, Any] = {"error": exc.message}
        content.update(exc.to_dict())
        return JSONResponse(status_code=status_code, content=content)

    @app.post("/api/agora/recording", response_model=RecordingActionResponse)
    def recording_action(request: RecordingActionRequest) -> Any:
        svc = require_services()
        action = request.action.strip().lower()

        if action == "start":
            result = svc.controller.start()
            return RecordingActionResponse(
                success=True,
                message=result.message,
                status=result.status,
                session_id=result.session.session_id,
                data=result.vendor_response or None,
            )
        if action == "stop":
            stopped = svc.controller.stop()
            return RecordingActionResponse(
                success=True,
                message=stopped.message,
                status="stopped",
                session_id=stopped.session.session_id,
                data=stopped.vendor_response or None,
            )
        return JSONResponse(status_code=400, content={"error": "Invalid action specified."})

    @app.post("/api/agora/webhook", response_model=WebhookAck)
    async def agora_webhook(request: Request) -> Any:
        svc = require_services()
        raw_body = await request.body()
        verify_signature(raw_body, request.headers, svc.config.webhook_secret)

        try:
            body = json.loads(raw_body or b"null")
        except ValueError:
            logger.error("Failed to process webhook: body is not valid JSON")
            return JSONResponse(status_code=400, content={"error": "Failed to process webhook"})

        svc.webhook_router.handle(WebhookEvent.from_body(body))
        return WebhookAck(message="Webhook received and is being processed.")

    @app.get("/health")
    def health() -> dict[str, Any]:
        session = services.store.get() if services else None
        return {
            "status": "ok",
            "version": __version__,
            "configured": services is not None,
            "recording": session.to_dict() if session else None,
            "relay_pending": services.dispatcher.pending if services else 0,
        }

    return app
