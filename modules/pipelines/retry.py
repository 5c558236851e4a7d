"""Retry, error classification and user-facing error messages for API calls."""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 5
DEFAULT_INITIAL_DELAY_MS = 2000
MAX_JITTER_MS = 1000.0

RETRYABLE_CODES = frozenset({429, 503})
RETRYABLE_STATUSES = frozenset({"UNAVAILABLE", "RESOURCE_EXHAUSTED", "429", "503"})
RETRYABLE_PHRASES = (
    "Deadline expired",
    "UNAVAILABLE",
    "Overloaded",
    "RESOURCE_EXHAUSTED",
    "upstream connect error",
    "429",
    "503",
)


class ErrorClass(str, Enum):
    """Outcome of classifying a failed call."""

    RETRYABLE = "retryable"
    TERMINAL = "terminal"


class ErrorCategory(str, Enum):
    """User-facing error categories."""

    INVALID_API_KEY = "invalid_api_key"
    QUOTA_EXCEEDED = "quota_exceeded"
    SAFETY_BLOCKED = "safety_blocked"
    OVERLOADED = "overloaded"
    MODEL_NOT_FOUND = "model_not_found"
    NO_IMAGE = "no_image"
    INVALID_ARGUMENT = "invalid_argument"
    UNKNOWN = "unknown"


USER_MESSAGES: dict[ErrorCategory, str] = {
    ErrorCategory.INVALID_API_KEY: "Invalid API key. Check your Gemini configuration.",
    ErrorCategory.QUOTA_EXCEEDED: "API quota exceeded or too many requests. Wait 1 to 2 minutes and try again.",
    ErrorCategory.SAFETY_BLOCKED: (
        "The image or prompt was blocked by Gemini's safety filters. Try a different wording."
    ),
    ErrorCategory.OVERLOADED: (
        "The Gemini service is temporarily overloaded and every attempt failed. Try again in a few minutes."
    ),
    ErrorCategory.MODEL_NOT_FOUND: "Gemini model not found. It may not be available for your API key.",
    ErrorCategory.NO_IMAGE: (
        "Gemini did not produce any image. Try rephrasing your instruction or adding a base image."
    ),
    ErrorCategory.INVALID_ARGUMENT: "Invalid argument sent to the API. Check the format of your images.",
}
UNKNOWN_ERROR_MESSAGE = "Unknown error during generation."
GENERIC_ERROR_MESSAGE = "Error during generation."

_CATEGORY_MARKERS: tuple[tuple[ErrorCategory, tuple[str, ...]], ...] = (
    (ErrorCategory.INVALID_API_KEY, ("API_KEY_INVALID", "API key not valid", "api_key")),
    (ErrorCategory.QUOTA_EXCEEDED, ("RESOURCE_EXHAUSTED", "quota", "rate_limit", "429")),
    (ErrorCategory.SAFETY_BLOCKED, ("SAFETY", "safety", "blocked")),
    (ErrorCategory.OVERLOADED, ("503", "UNAVAILABLE", "Overloaded", "upstream")),
    (ErrorCategory.MODEL_NOT_FOUND, ("NOT_FOUND", "not found")),
    (ErrorCategory.NO_IMAGE, ("No image generated", "no image")),
    (ErrorCategory.INVALID_ARGUMENT, ("INVALID_ARGUMENT",)),
)


@dataclass(frozen=True, slots=True)
class ErrorInfo:
    """Structured view of a failed call, independent of the SDK error type."""

    status: Any = None
    code: Any = None
    nested: Optional[Mapping[str, Any]] = None
    message: str = ""


def describe_error(error: Any) -> ErrorInfo:
    """Extract status, code, nested error payload and message from an error.

    Handles plain mappings (decoded JSON error bodies), SDK exceptions such as
    ``google.genai.errors.APIError`` (``code``/``status``/``details``) and
    arbitrary exceptions.
    """
    if isinstance(error, ErrorInfo):
        return error
    if isinstance(error, Mapping):
        nested = error.get("error")
        return ErrorInfo(
            status=error.get("status"),
            code=error.get("code"),
            nested=nested if isinstance(nested, Mapping) else None,
            message=str(error.get("message") or ""),
        )

    nested = getattr(error, "error", None)
    if not isinstance(nested, Mapping):
        details = getattr(error, "details", None)
        nested = details.get("error") if isinstance(details, Mapping) else None
    message = getattr(error, "message", None)
    if not isinstance(message, str) or not message:
        message = str(error) if error is not None else ""
    return ErrorInfo(
        status=getattr(error, "status", None),
        code=getattr(error, "code", None),
        nested=nested if isinstance(nested, Mapping) else None,
        message=message,
    )


def _is_retryable_value(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return value in RETRYABLE_CODES
    if isinstance(value, str):
        return value.strip() in RETRYABLE_STATUSES
    return False


def _has_retryable_phrase(message: Any) -> bool:
    if not isinstance(message, str) or not message:
        return False
    return any(phrase in message for phrase in RETRYABLE_PHRASES)


def classify_error(error: Any) -> ErrorClass:
    """Decide whether a failed call should be retried.

    Only rate limiting (429) and unavailability (503) are transient. They are
    recognised in the top-level status/code, in a nested ``error`` object, or
    by known phrases in the message.
    """
    info = describe_error(error)
    if _is_retryable_value(info.status) or _is_retryable_value(info.code):
        return ErrorClass.RETRYABLE
    if info.nested is not None:
        if _is_retryable_value(info.nested.get("status")) or _is_retryable_value(info.nested.get("code")):
            return ErrorClass.RETRYABLE
        if _has_retryable_phrase(info.nested.get("message")):
            return ErrorClass.RETRYABLE
    if _has_retryable_phrase(info.message):
        return ErrorClass.RETRYABLE
    return ErrorClass.TERMINAL


def is_retryable(error: Any) -> bool:
    return classify_error(error) is ErrorClass.RETRYABLE


def _uniform_jitter() -> float:
    return random.uniform(0.0, MAX_JITTER_MS)


def dispatch_with_retry(
    operation: Callable[[], T],
    max_retries: int = DEFAULT_MAX_RETRIES,
    initial_delay_ms: float = DEFAULT_INITIAL_DELAY_MS,
    *,
    sleep: Callable[[float], None] = time.sleep,
    jitter: Callable[[], float] = _uniform_jitter,
) -> T:
    """Run ``operation`` with exponential backoff on transient failures.

    At most ``max_retries + 1`` attempts are made. Before retry ``n``
    (0-based) the call waits ``initial_delay_ms * 2**n`` plus up to one
    second of jitter. Terminal errors, and the last retryable one, are
    re-raised unchanged.
    """
    for attempt in range(max(0, max_retries) + 1):
        try:
            return operation()
        except Exception as exc:
            if attempt < max_retries and classify_error(exc) is ErrorClass.RETRYABLE:
                delay_ms = initial_delay_ms * (2**attempt) + jitter()
                logger.warning(
                    "Attempt %d failed (%s). Retrying in %dms...",
                    attempt + 1,
                    describe_error(exc).message or "503/429",
                    round(delay_ms),
                )
                sleep(delay_ms / 1000.0)
                continue
            raise
    raise AssertionError("unreachable")  # pragma: no cover


def categorize_error(error: Any) -> ErrorCategory:
    """Map a raw error onto one of the user-facing categories."""
    if not isinstance(error, BaseException):
        return ErrorCategory.UNKNOWN
    # str() of SDK errors carries the code and status, .message only the text.
    message = f"{error} {describe_error(error).message}"
    for category, markers in _CATEGORY_MARKERS:
        if any(marker in message for marker in markers):
            return category
    return ErrorCategory.UNKNOWN


def to_user_message(error: Any) -> str:
    """Return a short human-readable message for a failed operation."""
    if not isinstance(error, BaseException):
        return UNKNOWN_ERROR_MESSAGE
    category = categorize_error(error)
    if category is not ErrorCategory.UNKNOWN:
        return USER_MESSAGES[category]
    return describe_error(error).message or GENERIC_ERROR_MESSAGE
