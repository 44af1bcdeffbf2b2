"""httpx client for the upstream OpenAI-compatible completion API."""

from __future__ import annotations

import logging
from typing import Any, AsyncGenerator, Awaitable, Callable, Dict, Optional

import httpx

from chatrelay.core.config import Settings
from chatrelay.core.sse import DATA_PREFIX, DONE_FRAME, DONE_SENTINEL, ChunkReassembler

from .errors import UpstreamError, UpstreamUnreachable

logger = logging.getLogger(__name__)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return UpstreamError.default_message
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return UpstreamError.default_message


class UpstreamClient:
    """One upstream session, owned by the request that created it."""

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.UPSTREAM_TIMEOUT),
            headers={
                "Authorization": f"Bearer {settings.UPSTREAM_API_KEY}",
                "Content-Type": "application/json",
            },
            transport=transport,
        )

    async def __aenter__(self) -> "UpstreamClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def complete(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Send a non-streaming completion request and return the parsed body."""

        try:
            response = await self._client.post(self._settings.chat_completions_url, json=payload)
        except httpx.RequestError as exc:
            logger.error("Failed to reach upstream API: %s", exc)
            raise UpstreamUnreachable() from exc

        if response.is_error:
            message = _error_message(response)
            logger.error("Upstream API returned %s: %s", response.status_code, response.text)
            raise UpstreamError(message, status_code=response.status_code)

        try:
            return response.json()
        except ValueError as exc:
            logger.error("Upstream API returned a non-JSON body")
            raise UpstreamError("Invalid response from AI service") from exc

    async def open_stream(self, payload: Dict[str, Any]) -> httpx.Response:
        """Start a streaming completion; the caller must ``aclose()`` the response."""

        request = self._client.build_request(
            "POST", self._settings.chat_completions_url, json=payload
        )
        try:
            response = await self._client.send(request, stream=True)
        except httpx.RequestError as exc:
            logger.error("Failed to reach upstream API: %s", exc)
            raise UpstreamUnreachable() from exc

        if response.is_error:
            try:
                await response.aread()
            except httpx.HTTPError:
                logger.exception("Failed to read upstream error body")
            finally:
                await response.aclose()
            message = _error_message(response)
            logger.error("Upstream API returned %s: %s", response.status_code, message)
            raise UpstreamError(message, status_code=response.status_code)

        return response

    async def list_models(self) -> Dict[str, Any]:
        try:
            response = await self._client.get(self._settings.models_url)
        except httpx.RequestError as exc:
            logger.error("Failed to reach upstream API: %s", exc)
            raise UpstreamUnreachable() from exc

        if response.is_error:
            logger.error("Upstream models listing returned %s", response.status_code)
            raise UpstreamError(_error_message(response), status_code=response.status_code)

        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError("Invalid response from AI service") from exc


async def relay_sse(
    response: httpx.Response,
    is_disconnected: Callable[[], Awaitable[bool]],
    on_close: Optional[Callable[[], Awaitable[None]]] = None,
) -> AsyncGenerator[bytes, None]:
    """Forward upstream ``data:`` lines as SSE frames while they are read.

    Stops early when the client goes away or upstream sends ``[DONE]``; the
    upstream response (and ``on_close``) are always released on exit.
    """

    reassembler = ChunkReassembler()
    upstream_done = False
    try:
        async for text in response.aiter_text():
            if await is_disconnected():
                logger.info("Client disconnected; stopping upstream relay")
                reassembler.reset()
                return
            for line in reassembler.feed(text):
                line = line.rstrip("\r")
                if not line.startswith(DATA_PREFIX):
                    continue
                yield f"{line}\n\n".encode("utf-8")
                if line[len(DATA_PREFIX) :].strip() == DONE_SENTINEL:
                    upstream_done = True
                    break
            if upstream_done:
                break
        else:
            reassembler.close()

        if not upstream_done:
            yield DONE_FRAME.encode("utf-8")
    except httpx.HTTPError as exc:
        logger.error("Upstream stream interrupted: %s", exc)
    finally:
        await response.aclose()
        if on_close is not None:
            await on_close()
