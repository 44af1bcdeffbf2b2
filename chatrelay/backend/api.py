"""FastAPI routes for the chat relay."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any, Dict, List, Optional

import httpx
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, StreamingResponse

from chatrelay.core.config import Settings

from .errors import BadRequest, RelayError, ServiceUnavailable, UpstreamError
from .models import ChatRequest, ChatResponse, HealthResponse
from .upstream import UpstreamClient, relay_sse
from .validation import ValidationErrorKind, ValidationIssue, validate_chat_request

logger = logging.getLogger(__name__)

router = APIRouter()

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def _upstream_client(request: Request, settings: Settings) -> UpstreamClient:
    transport: Optional[httpx.AsyncBaseTransport] = getattr(
        request.app.state, "upstream_transport", None
    )
    return UpstreamClient(settings, transport=transport)


def build_upstream_payload(chat: ChatRequest, settings: Settings) -> Dict[str, Any]:
    """Compose the upstream body, with the server system message always first."""

    messages: List[Dict[str, str]] = [{"role": "system", "content": settings.SYSTEM_PROMPT}]
    messages.extend(message.model_dump() for message in chat.messages)

    return {
        "model": chat.model or settings.DEFAULT_MODEL,
        "messages": messages,
        "temperature": (
            chat.temperature if chat.temperature is not None else settings.DEFAULT_TEMPERATURE
        ),
        "max_tokens": chat.max_tokens or settings.DEFAULT_MAX_TOKENS,
        "top_p": 1,
        "stream": chat.stream,
    }


def _chat_response(data: Any) -> ChatResponse:
    """Reduce an upstream completion body to ``{message, model, usage}``."""

    choices = (data.get("choices") or [{}]) if isinstance(data, dict) else None
    choice = choices[0] if isinstance(choices, list) else None
    if not isinstance(choice, dict):
        raise UpstreamError("Invalid response from AI service")

    message = choice.get("message") or {}
    if not isinstance(message, dict):
        raise UpstreamError("Invalid response from AI service")

    content = message.get("content")
    model = data.get("model")
    usage = data.get("usage")
    return ChatResponse(
        message=content if isinstance(content, str) else "",
        model=model if isinstance(model, str) else None,
        usage=usage if isinstance(usage, dict) else None,
    )


async def _read_json_body(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        return None


@router.get("/health", response_model=HealthResponse)
def health_check(settings: Settings = Depends(get_app_settings)) -> JSONResponse:
    """Report whether the upstream credential is configured."""

    healthy = settings.api_configured
    body = HealthResponse(
        status="ok" if healthy else "degraded",
        timestamp=datetime.now(UTC).isoformat(),
        environment=settings.ENVIRONMENT,
        apiConfigured=healthy,
    )
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=body.model_dump(),
    )


@router.post("/chat", response_model=ChatResponse)
async def chat(request: Request, settings: Settings = Depends(get_app_settings)):
    """Relay a chat request upstream, as one JSON answer or as an SSE stream."""

    if not settings.api_configured:
        logger.error("UPSTREAM_API_KEY is not configured")
        raise ServiceUnavailable()

    body = await _read_json_body(request)
    issue = validate_chat_request(body)
    if issue is not None:
        logger.info("Rejected chat request: %s", issue.kind.value)
        raise BadRequest(issue)

    try:
        chat_request = ChatRequest.model_validate(body)
    except ValueError as exc:
        logger.warning("Chat request passed validation but failed parsing: %s", exc)
        raise BadRequest(ValidationIssue(ValidationErrorKind.MALFORMED_MESSAGE)) from exc

    payload = build_upstream_payload(chat_request, settings)
    logger.debug(
        "Forwarding %d messages to upstream (model=%s, stream=%s)",
        len(payload["messages"]),
        payload["model"],
        payload["stream"],
    )

    upstream = _upstream_client(request, settings)

    if not chat_request.stream:
        async with upstream:
            data = await upstream.complete(payload)
        return _chat_response(data)

    try:
        response = await upstream.open_stream(payload)
    except RelayError:
        await upstream.aclose()
        raise

    return StreamingResponse(
        relay_sse(response, request.is_disconnected, on_close=upstream.aclose),
        media_type="text/event-stream",
        headers=STREAM_HEADERS,
    )


@router.get("/models")
async def list_models(request: Request, settings: Settings = Depends(get_app_settings)):
    """Proxy the upstream model listing."""

    if not settings.api_configured:
        raise ServiceUnavailable("API key not configured")

    try:
        async with _upstream_client(request, settings) as upstream:
            return await upstream.list_models()
    except RelayError as exc:
        logger.error("Models endpoint error: %s", exc)
        raise RelayError("Failed to fetch available models") from exc
