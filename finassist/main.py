import json
import logging
import resource
import time
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from finassist.config import Settings
from finassist.errors import (
    InvalidInput,
    InvalidJSON,
    NotFound,
    PayloadTooLarge,
    RelayError,
    utc_timestamp,
)
from finassist.log import RequestIdMiddleware
from finassist.provider import CohereProvider, Provider
from finassist.relay import PromptRelay
from finassist.schemas import (
    ChatResponse,
    ConversationsResponse,
    ErrorResponse,
    HealthResponse,
    NotFoundResponse,
)

SERVICE_NAME = "finassist"
MAX_PROMPT_LENGTH = 5000
AVAILABLE_ENDPOINTS = ["GET /health", "POST /api/chat", "GET /api/conversations"]

logger = logging.getLogger(SERVICE_NAME)


def _error_response(status_code: int, body: ErrorResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True, exclude_none=True))


def get_relay(request: Request) -> PromptRelay:
    return request.app.state.relay


async def validated_prompt(request: Request) -> str:
    """Parse the JSON body and return the trimmed prompt."""
    limit = request.app.state.settings.max_body_bytes
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > limit:
        raise PayloadTooLarge(f"Request body exceeds {limit} bytes")

    # chunked uploads carry no content-length, so stop reading once past the limit
    chunks = []
    received = 0
    async for chunk in request.stream():
        received += len(chunk)
        if received > limit:
            raise PayloadTooLarge(f"Request body exceeds {limit} bytes")
        chunks.append(chunk)
    raw = b"".join(chunks)
    try:
        body = json.loads(raw) if raw else {}
    except ValueError as exc:
        raise InvalidJSON("Request body must be valid JSON") from exc

    prompt = body.get("prompt") if isinstance(body, dict) else None
    if not isinstance(prompt, str):
        raise InvalidInput("Prompt is required and must be a string")
    if not prompt.strip():
        raise InvalidInput("Prompt cannot be empty")
    if len(prompt) > MAX_PROMPT_LENGTH:
        raise InvalidInput(f"Prompt is too long (maximum {MAX_PROMPT_LENGTH} characters)")
    return prompt.strip()


def create_app(settings: Settings | None = None, provider: Provider | None = None) -> FastAPI:
    settings = settings or Settings.from_env()
    provider = provider or CohereProvider(settings.cohere_api_key)
    started = time.monotonic()

    @asynccontextmanager
    async def lifespan(application: FastAPI):
        logger.info(
            "Financial Assistant Server ready",
            extra={"_extra": {"environment": settings.environment, "endpoints": AVAILABLE_ENDPOINTS}},
        )
        yield
        logger.info("Shutting down gracefully")

    app = FastAPI(title="Financial Assistant Relay", lifespan=lifespan)
    app.state.settings = settings
    app.state.relay = PromptRelay(
        provider,
        timeout_ms=settings.request_timeout_ms,
        expose_details=not settings.is_production,
    )

    cors = {"allow_origins": settings.allowed_origins} if settings.is_production else {"allow_origin_regex": ".*"}
    app.add_middleware(
        CORSMiddleware,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
        **cors,
    )
    app.add_middleware(RequestIdMiddleware)

    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def not_found_handler(request: Request, exc: StarletteHTTPException):
        # unmatched paths and unsupported methods both answer 404
        if exc.status_code not in (404, 405):
            return await http_exception_handler(request, exc)
        path = request.url.path + (f"?{request.url.query}" if request.url.query else "")
        err = NotFound(f"The requested endpoint {request.method} {path} was not found")
        body = NotFoundResponse(**err.to_dict(), available_endpoints=AVAILABLE_ENDPOINTS)
        return _error_response(404, body)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error")
        message = "An unexpected error occurred" if settings.is_production else str(exc)
        body = ErrorResponse(error="Internal server error", message=message, timestamp=utc_timestamp())
        return _error_response(500, body)

    @app.get("/health", response_model=HealthResponse)
    async def health():
        usage = resource.getrusage(resource.RUSAGE_SELF)
        return HealthResponse(
            status="healthy",
            timestamp=utc_timestamp(),
            uptime=round(time.monotonic() - started, 3),
            memory={"maxRss": usage.ru_maxrss},
        )

    @app.post("/api/chat", response_model=ChatResponse)
    async def chat(
        prompt: Annotated[str, Depends(validated_prompt)],
        relay: Annotated[PromptRelay, Depends(get_relay)],
    ):
        return await relay.relay(prompt)

    @app.get("/api/conversations", response_model=ConversationsResponse)
    async def conversations():
        return ConversationsResponse(
            message="Conversation history feature coming soon",
            status="not_implemented",
        )

    return app
