"""Pydantic models for the backend API."""

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str = Field(min_length=1)


class ChatRequest(BaseModel):
    messages: list[ChatMessage] = Field(min_length=1)
    model: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, ge=1, le=4096)
    stream: bool = False


class ChatResponse(BaseModel):
    message: str
    model: Optional[str] = None
    usage: Optional[Dict[str, Any]] = None


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    status: Literal["ok", "degraded"]
    timestamp: str
    environment: str
    apiConfigured: bool
