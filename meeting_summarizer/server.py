"""HTTP endpoint exposing the summary service with permissive CORS."""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Literal, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field, StrictBool, ValidationError

from . import __version__
from .config import Settings, create_summary_service
from .logging_config import mask_secrets
from .summaries import (
    InternalError,
    InvalidInputError,
    PayloadTooLargeError,
    ProviderError,
    SummaryCancelledError,
    SummaryOptions,
    SummaryService,
)

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}

# Non-standard "client closed request" status, as used by nginx.
CLIENT_CLOSED_REQUEST = 499

_ERROR_STATUS = (
    (InvalidInputError, 400),
    (PayloadTooLargeError, 413),
    (SummaryCancelledError, CLIENT_CLOSED_REQUEST),
    (ProviderError, 500),
    (InternalError, 500),
)


class SummarizeBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Validated by the service so a missing or non-string transcript reports "Transcript required".
    transcript: Any = None
    length: Literal["brief", "detailed"] = "brief"
    action_items: StrictBool = Field(default=True, alias="actionItems")


def get_service(request: Request) -> SummaryService:
    return request.app.state.service


def error_response(exc: Exception) -> JSONResponse:
    for error_type, status in _ERROR_STATUS:
        if isinstance(exc, error_type):
            break
    else:
        status = 500
    if status == 500:
        logger.exception("Summary request failed")
    message = mask_secrets(str(exc)) or "Internal server error"
    return JSONResponse({"error": message}, status_code=status)


def parse_body(raw: bytes) -> SummarizeBody:
    try:
        return SummarizeBody.model_validate_json(raw or b"{}")
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ())) or "body"
        raise InvalidInputError(f"{location}: {first.get('msg', 'invalid value')}") from None


async def watch_disconnect(request: Request, cancel_event: asyncio.Event, interval: float = 0.5) -> None:
    """Set ``cancel_event`` once the client goes away."""
    while not cancel_event.is_set():
        if await request.is_disconnected():
            logger.info("Client disconnected; cancelling summary")
            cancel_event.set()
            return
        await asyncio.sleep(interval)


def create_app(
    service: Optional[SummaryService] = None,
    settings: Optional[Settings] = None,
    *,
    disconnect_poll_interval: float = 0.5,
) -> FastAPI:
    """Build the ASGI app; without ``service`` one is created from settings at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if service is not None:
            yield
            return
        built, client = create_summary_service(settings or Settings.from_env())
        app.state.service = built
        try:
            yield
        finally:
            await client.aclose()

    app = FastAPI(
        title="Meeting Summarizer API",
        description="Chunked map-reduce summarization of meeting transcripts",
        version=__version__,
        lifespan=lifespan,
    )
    if service is not None:
        app.state.service = service

    @app.middleware("http")
    async def add_cors_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers.update(CORS_HEADERS)
        return response

    @app.options("/summarize")
    async def preflight() -> PlainTextResponse:
        return PlainTextResponse("ok")

    @app.api_route("/summarize", methods=["GET", "PUT", "PATCH", "DELETE"])
    async def method_not_allowed() -> JSONResponse:
        return JSONResponse({"error": "Method not allowed"}, status_code=405)

    @app.post("/summarize")
    async def summarize(
        request: Request, summary_service: SummaryService = Depends(get_service)
    ) -> JSONResponse:
        cancel_event = asyncio.Event()
        watcher: Optional[asyncio.Task] = None
        try:
            body = parse_body(await request.body())
            options = SummaryOptions(length=body.length, action_items=body.action_items)
            watcher = asyncio.ensure_future(watch_disconnect(request, cancel_event, disconnect_poll_interval))
            record = await summary_service.summarize(body.transcript, options, cancel_event=cancel_event)
        except Exception as exc:
            return error_response(exc)
        finally:
            if watcher is not None:
                watcher.cancel()
                await asyncio.gather(watcher, return_exceptions=True)
        return JSONResponse({"summary": record.body, "cached": record.cached})

    @app.get("/health")
    async def health_check() -> dict:
        return {"status": "healthy", "service": "meeting-summarizer"}

    return app
