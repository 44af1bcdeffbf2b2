#!/usr/bin/env python3
"""Mock OpenAI-compatible upstream for local development and tests."""

import json
import time
from typing import Dict, Iterator, List, Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

app = FastAPI()

MOCK_MODEL = "llama-3.3-70b-versatile"
COMPLETION_ID = "chatcmpl-test123"


class Message(BaseModel):
    role: str
    content: str


class ChatCompletionRequest(BaseModel):
    model: str
    messages: List[Message]
    stream: Optional[bool] = False
    temperature: Optional[float] = 1.0
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None


def generate_mock_reply(messages: List[Message]) -> str:
    """Pick a canned reply based on the last user message."""

    user_messages = [m.content for m in messages if m.role == "user"]
    last_message = user_messages[-1] if user_messages else "Hello!"

    if "hello" in last_message.lower():
        return "Hello! I am a test assistant for AI Global Networks. How can I help?"
    if "automation" in last_message.lower():
        return "Our Smart Automation service removes repetitive work from your team."
    return f"This is a mock reply to '{last_message}'."


def _chunk(delta: Dict[str, str], finish_reason: Optional[str] = None) -> str:
    payload = {
        "id": COMPLETION_ID,
        "object": "chat.completion.chunk",
        "created": int(time.time()),
        "model": MOCK_MODEL,
        "choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}],
    }
    return f"data: {json.dumps(payload)}\n\n"


def generate_stream_response(content: str) -> Iterator[str]:
    """Yield the reply word by word in OpenAI chunk format."""

    words = content.split()
    yield _chunk({"role": "assistant"})
    for i, word in enumerate(words):
        yield _chunk({"content": word + (" " if i < len(words) - 1 else "")})
    yield _chunk({}, finish_reason="stop")
    yield "data: [DONE]\n\n"


@app.post("/v1/chat/completions")
async def chat_completions(request: ChatCompletionRequest):
    """Mock chat completions endpoint."""

    if request.model == "decommissioned-model":
        return JSONResponse(
            status_code=400,
            content={
                "error": {
                    "message": f"The model `{request.model}` has been decommissioned",
                    "type": "invalid_request_error",
                }
            },
        )

    reply = generate_mock_reply(request.messages)
    if request.stream:
        return StreamingResponse(generate_stream_response(reply), media_type="text/event-stream")

    completion_tokens = len(reply.split())
    return {
        "id": COMPLETION_ID,
        "object": "chat.completion",
        "created": int(time.time()),
        "model": MOCK_MODEL,
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": reply},
                "finish_reason": "stop",
            }
        ],
        "usage": {
            "prompt_tokens": 10,
            "completion_tokens": completion_tokens,
            "total_tokens": 10 + completion_tokens,
        },
    }


@app.get("/v1/models")
async def list_models():
    """Mock models endpoint."""

    return {
        "object": "list",
        "data": [
            {
                "id": MOCK_MODEL,
                "object": "model",
                "created": int(time.time()),
                "owned_by": "mock",
            }
        ],
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8001)
