from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError

from .config import Settings, load_settings
from .errors import ConfigurationError, RequestValidationError
from .models import ChatRequest, ErrorResponse
from .pipeline import ChatPipeline
from .reference_data import ReferenceDataCache, file_reader

BASE_DIR = Path(__file__).resolve().parent

log_level_name = os.getenv("LOG_LEVEL", "INFO").upper()
log_level = getattr(logging, log_level_name, logging.INFO)
if not logging.getLogger().handlers:
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

logging.getLogger("fixology").setLevel(log_level)
logger = logging.getLogger("fixology.chat")

ENV_PATH = BASE_DIR / ".env"
if ENV_PATH.exists():
    load_dotenv(ENV_PATH, override=True)

ALLOWED_ORIGINS = [
    "https://fixologyai.com",
    "https://www.fixologyai.com",
    "https://final-bice-phi.vercel.app",
    "http://localhost:3000",
    "http://localhost:5500",
    "http://127.0.0.1:5500",
]

CONFIG_ERROR_MESSAGE = "Service is not configured"
GENERIC_ERROR_MESSAGE = "Something went wrong processing your request. Please try again."
INVALID_BODY_ERROR = "Invalid request body"


def cors_headers(request: Request) -> Dict[str, str]:
    """Purpose: Build the CORS headers attached to every /chat response.
    Inputs/Outputs: Input is the incoming Request; output is a header dict.
    Side Effects / State: None.
    Dependencies: Uses the fixed ALLOWED_ORIGINS allow-list.
    Failure Modes: Unknown origins receive the default (first) allowed origin.
    If Removed: Browsers block the chat widget's requests.
    Testing Notes: Send Origin=http://localhost:3000 and an unknown origin.
    """
    # Echo an allowed Origin (or Referer), otherwise fall back to the primary site.
    origin = request.headers.get("origin") or request.headers.get("referer") or ""
    allowed = origin if origin in ALLOWED_ORIGINS else ALLOWED_ORIGINS[0]
    return {
        "Access-Control-Allow-Origin": allowed,
        "Access-Control-Allow-Methods": "POST, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type, Authorization",
        "Access-Control-Max-Age": "86400",
        "Vary": "Origin",
    }


def parse_chat_request(raw_body: bytes) -> ChatRequest:
    """Purpose: Decode and type-check the JSON request body.
    Inputs/Outputs: Input is raw body bytes; output is a ChatRequest.
    Side Effects / State: None.
    Dependencies: Uses json.loads and ChatRequest.model_validate.
    Failure Modes: Raises RequestValidationError for non-JSON or mistyped bodies.
    If Removed: Bad payloads surface as 500s instead of 400s.
    Testing Notes: Post plain text and a messages string; both must return 400.
    """
    # Treat an empty body as an empty object so messages validation reports it.
    try:
        payload: Any = json.loads(raw_body or b"{}")
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise RequestValidationError(INVALID_BODY_ERROR, f"Body must be valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise RequestValidationError(INVALID_BODY_ERROR, "Body must be a JSON object")
    try:
        return ChatRequest.model_validate(payload)
    except ValidationError as exc:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise RequestValidationError(
            "Missing or invalid messages array" if location.startswith("messages") else INVALID_BODY_ERROR,
            f"{location}: {first.get('msg', 'invalid value')}" if location else str(exc),
        ) from exc


def _error_response(
    request: Request,
    status_code: int,
    error: str,
    debug: Optional[str] = None,
) -> JSONResponse:
    body = ErrorResponse(error=error, debug=debug).to_payload()
    return JSONResponse(status_code=status_code, content=body, headers=cors_headers(request))


def create_app(
    pipeline: Optional[ChatPipeline] = None,
    settings_loader: Callable[[], Settings] = load_settings,
) -> FastAPI:
    """Purpose: Build the FastAPI application around a chat pipeline.
    Inputs/Outputs: Inputs are an optional pre-built pipeline and settings loader;
        output is the configured FastAPI app.
    Side Effects / State: Creates a ReferenceDataCache when no pipeline is given.
    Dependencies: Uses ChatPipeline, ReferenceDataCache, and load_settings.
    Failure Modes: None at build time; request errors are mapped to envelopes.
    If Removed: The service has no HTTP surface.
    Testing Notes: Pass a pipeline with stubbed factories and use TestClient.
    """
    # Default wiring reads datasets from the configured data directory.
    if pipeline is None:
        cache = ReferenceDataCache(file_reader(settings_loader().data_dir))
        pipeline = ChatPipeline(cache=cache, settings_loader=settings_loader)

    application = FastAPI(title="Fixology Chat Assistant")

    @application.options("/chat", include_in_schema=False)
    async def chat_preflight(request: Request) -> Response:
        return Response(status_code=200, headers=cors_headers(request))

    @application.post("/chat")
    async def chat(request: Request) -> JSONResponse:
        """Purpose: Handle chat requests and run the pipeline.
        Inputs/Outputs: Input is the raw request; output is the JSON envelope.
        Side Effects / State: One device-status call at most and one provider call.
        Dependencies: Uses parse_chat_request and ChatPipeline.handle.
        Failure Modes: Validation -> 400; configuration, provider, and unexpected
            errors -> 500 with debug only outside production.
        If Removed: The chat widget has no backend.
        Testing Notes: Cover 200, 400, and 500 paths with stubbed providers.
        """
        # Map each failure class to its envelope; successes are serialized with aliases.
        show_debug = not settings_loader().is_production
        try:
            chat_request = parse_chat_request(await request.body())
            response = await pipeline.handle(chat_request)
        except RequestValidationError as exc:
            logger.info("rejected request error=%s debug=%s", exc.error, exc.debug)
            return _error_response(request, 400, exc.error, exc.debug)
        except ConfigurationError as exc:
            logger.error("configuration error: %s", exc)
            return _error_response(request, 500, CONFIG_ERROR_MESSAGE, str(exc) if show_debug else None)
        except Exception as exc:
            logger.exception("Chat processing failed: %s", exc)
            return _error_response(request, 500, GENERIC_ERROR_MESSAGE, str(exc) if show_debug else None)
        return JSONResponse(status_code=200, content=response.to_payload(), headers=cors_headers(request))

    @application.api_route("/chat", methods=["GET", "PUT", "PATCH", "DELETE"], include_in_schema=False)
    async def chat_method_not_allowed(request: Request) -> JSONResponse:
        return _error_response(
            request,
            405,
            "Method not allowed. Use POST.",
            f"Received {request.method}",
        )

    @application.get("/health")
    async def health() -> Dict[str, str]:
        return {"status": "ok"}

    return application


app = create_app()


def run() -> None:
    """Serve the app with uvicorn; HOST and PORT come from the environment."""
    uvicorn.run(
        "fixology_chat.app:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )
