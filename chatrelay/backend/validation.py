"""Structural and range checks on inbound chat payloads.

Runs on the raw JSON body before any model is built, so the caller receives a
single readable message naming the first rule that failed.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from numbers import Real
from typing import Any, Optional

_ROLES = frozenset({"system", "user", "assistant"})

MIN_TEMPERATURE = 0.0
MAX_TEMPERATURE = 2.0
MIN_MAX_TOKENS = 1
MAX_MAX_TOKENS = 4096


class ValidationErrorKind(str, Enum):
    MISSING_MESSAGES = "MissingMessages"
    MALFORMED_MESSAGE = "MalformedMessage"
    TEMPERATURE_OUT_OF_RANGE = "TemperatureOutOfRange"
    MAX_TOKENS_OUT_OF_RANGE = "MaxTokensOutOfRange"


_MESSAGES = {
    ValidationErrorKind.MISSING_MESSAGES: "Messages array is required and cannot be empty",
    ValidationErrorKind.MALFORMED_MESSAGE: "Each message must have role and content",
    ValidationErrorKind.TEMPERATURE_OUT_OF_RANGE: "Temperature must be between 0 and 2",
    ValidationErrorKind.MAX_TOKENS_OUT_OF_RANGE: "Max tokens must be between 1 and 4096",
}


@dataclass(frozen=True)
class ValidationIssue:
    kind: ValidationErrorKind

    @property
    def message(self) -> str:
        return _MESSAGES[self.kind]


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _is_valid_message(message: Any) -> bool:
    if not isinstance(message, dict):
        return False
    role = message.get("role")
    content = message.get("content")
    if not isinstance(role, str) or role not in _ROLES:
        return False
    return isinstance(content, str) and bool(content)


def validate_chat_request(body: Any) -> Optional[ValidationIssue]:
    """Return the first violated constraint of ``body``, or None when valid."""

    messages = body.get("messages") if isinstance(body, dict) else None
    if not isinstance(messages, list) or not messages:
        return ValidationIssue(ValidationErrorKind.MISSING_MESSAGES)

    if not all(_is_valid_message(message) for message in messages):
        return ValidationIssue(ValidationErrorKind.MALFORMED_MESSAGE)

    temperature = body.get("temperature")
    if temperature is not None:
        if not _is_number(temperature) or not MIN_TEMPERATURE <= temperature <= MAX_TEMPERATURE:
            return ValidationIssue(ValidationErrorKind.TEMPERATURE_OUT_OF_RANGE)

    max_tokens = body.get("max_tokens")
    if max_tokens is not None:
        if (
            not isinstance(max_tokens, int)
            or isinstance(max_tokens, bool)
            or not MIN_MAX_TOKENS <= max_tokens <= MAX_MAX_TOKENS
        ):
            return ValidationIssue(ValidationErrorKind.MAX_TOKENS_OUT_OF_RANGE)

    return None
