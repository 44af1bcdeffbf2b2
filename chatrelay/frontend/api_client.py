"""Client utilities for talking to the relay backend."""

from __future__ import annotations

import asyncio
import threading
from typing import Any, AsyncIterator, Dict, Generator, Iterable, Optional

import httpx
import requests

from chatrelay.core.config import get_settings
from chatrelay.core.sse import EventStreamDecoder, aiter_deltas, iter_deltas, iter_text_chunks

_TIMEOUT = (10, 300)


class ApiError(RuntimeError):
    """The backend answered with a non-success status."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def _chat_url() -> str:
    return str(get_settings().BACKEND_API_URL)


def _get_base_url() -> str:
    return _chat_url().rsplit("/", 1)[0]


def _build_payload(
    messages: Iterable[dict[str, str]],
    *,
    model: Optional[str],
    temperature: Optional[float],
    max_tokens: Optional[int],
    stream: bool,
) -> Dict[str, Any]:
    settings = get_settings()
    return {
        "messages": list(messages),
        "model": model or settings.DEFAULT_MODEL,
        "temperature": temperature if temperature is not None else settings.DEFAULT_TEMPERATURE,
        "max_tokens": max_tokens or settings.DEFAULT_MAX_TOKENS,
        "stream": stream,
    }


def _error_from_body(status_code: int, reason: str, body: Any) -> ApiError:
    if isinstance(body, dict) and body.get("error"):
        return ApiError(status_code, str(body["error"]))
    return ApiError(status_code, f"{status_code} {reason}".strip())


def _raise_for_error(response: requests.Response) -> None:
    if response.ok:
        return
    try:
        body = response.json()
    except ValueError:
        body = None
    raise _error_from_body(response.status_code, response.reason or "", body)


def stream_chat_completion(
    messages: Iterable[dict[str, str]],
    *,
    model: Optional[str] = None,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
    abort: Optional[threading.Event] = None,
    decoder: Optional[EventStreamDecoder] = None,
) -> Generator[str, None, None]:
    """Stream assistant deltas from the backend.

    Setting ``abort`` stops reading; no delta is produced after that point.
    """

    payload = _build_payload(
        messages, model=model, temperature=temperature, max_tokens=max_tokens, stream=True
    )

    with requests.post(
        _chat_url(),
        json=payload,
        stream=True,
        timeout=_TIMEOUT,
    ) as response:
        _raise_for_error(response)
        chunks = iter_text_chunks(response.iter_content(chunk_size=None))
        yield from iter_deltas(chunks, decoder=decoder, abort=abort)


def fetch_chat_completion(
    messages: Iterable[dict[str, str]],
    *,
    model: Optional[str] = None,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
) -> Dict[str, Any]:
    """Request a single, non-streamed answer ``{message, model, usage}``."""

    payload = _build_payload(
        messages, model=model, temperature=temperature, max_tokens=max_tokens, stream=False
    )
    response = requests.post(_chat_url(), json=payload, timeout=_TIMEOUT)
    _raise_for_error(response)
    return response.json()


def check_health() -> bool:
    try:
        response = requests.get(f"{_get_base_url()}/health", timeout=_TIMEOUT)
    except requests.RequestException:
        return False
    return response.ok


def list_models() -> Dict[str, Any]:
    response = requests.get(f"{_get_base_url()}/models", timeout=_TIMEOUT)
    _raise_for_error(response)
    return response.json()


async def astream_chat_completion(
    messages: Iterable[dict[str, str]],
    *,
    model: Optional[str] = None,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
    abort: Optional[asyncio.Event] = None,
    decoder: Optional[EventStreamDecoder] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AsyncIterator[str]:
    """Async variant of :func:`stream_chat_completion` built on httpx."""

    payload = _build_payload(
        messages, model=model, temperature=temperature, max_tokens=max_tokens, stream=True
    )

    async with httpx.AsyncClient(timeout=httpx.Timeout(10.0, read=300.0), transport=transport) as client:
        async with client.stream("POST", _chat_url(), json=payload) as response:
            if response.is_error:
                await response.aread()
                try:
                    body = response.json()
                except ValueError:
                    body = None
                raise _error_from_body(response.status_code, response.reason_phrase, body)
            async for delta in aiter_deltas(response.aiter_text(), decoder=decoder, abort=abort):
                yield delta
