"""Shared error codes, user-facing messages and provider error classification."""

from __future__ import annotations

QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
SERVER_ERROR = "SERVER_ERROR"
INVALID_INPUT = "INVALID_INPUT"
CONNECTIVITY_FAILURE = "CONNECTIVITY_FAILURE"
UNKNOWN = "UNKNOWN"

RETRYABLE = frozenset({QUOTA_EXCEEDED, SERVER_ERROR})

ERROR_MESSAGES = {
    QUOTA_EXCEEDED: "Quota exhausted: the Gemini API limit for the current plan has been exceeded.",
    SERVER_ERROR: "The provider is temporarily unavailable, please retry.",
    INVALID_INPUT: "Video processing error: the input media is not processed yet or is invalid. Please retry.",
    CONNECTIVITY_FAILURE: "Microphone access or connection failed.",
    UNKNOWN: "System error: check the API key and access to the Veo model.",
}

REMEDIATIONS = {
    QUOTA_EXCEEDED: [
        "Upgrade the billing plan in Google AI Studio.",
        "Wait a few minutes for the per-second/per-minute quota to reset.",
    ],
    INVALID_INPUT: ["Wait for the input media to finish processing, then retry."],
    UNKNOWN: ["Unknown error."],
}

_QUOTA_MARKERS = ("429", "RESOURCE_EXHAUSTED", "Too Many Requests")


class GenerationError(Exception):
    """A provider response that decoded fine but cannot be used."""

    def __init__(self, kind: str, message: str) -> None:
        super().__init__(message)
        self.kind = kind


def _numeric_status(exc: BaseException) -> int | None:
    for attr in ("status", "code", "status_code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def classify_error(exc: BaseException) -> str:
    """Map an SDK/network exception to one of the error codes above."""
    if isinstance(exc, GenerationError):
        return exc.kind

    text = " ".join(
        str(part)
        for part in (exc, getattr(exc, "message", None), getattr(exc, "status", None))
        if part is not None
    )
    return classify_message(text, _numeric_status(exc))


def classify_message(text: str, status: int | None = None) -> str:
    if status == 429 or "quota" in text.lower() or any(m in text for m in _QUOTA_MARKERS):
        return QUOTA_EXCEEDED
    if status is not None and status >= 500:
        return SERVER_ERROR
    if status == 400 or "INVALID_ARGUMENT" in text:
        return INVALID_INPUT
    return UNKNOWN


def is_retryable(exc: BaseException) -> bool:
    return classify_error(exc) in RETRYABLE
