from __future__ import annotations

import json
from typing import Optional

import httpx

GENERIC_FAILURE = "Failed to generate document"

_STATUS_MESSAGES = {
    401: "Invalid API key. Please check your OpenRouter API key.",
    403: "Access forbidden. Please check your API key permissions.",
    404: "The requested resource was not found.",
    429: "Rate limit exceeded. Please try again later.",
    500: "OpenRouter server error. Please try again later.",
}


def extract_error_message(response: Optional[httpx.Response], fallback: str = GENERIC_FAILURE) -> str:
    """Best available error text: JSON body, then plain text, then ``fallback``."""
    if response is None:
        return fallback
    try:
        text = response.text
    except httpx.ResponseNotRead:
        return fallback

    try:
        body = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        body = None

    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str) and error["message"]:
            return error["message"]
        if isinstance(error, str) and error:
            return error
        message = body.get("message")
        if isinstance(message, str) and message:
            return message

    text = (text or "").strip()
    return text or fallback


def describe_provider_error(status_code: int, detail: Optional[str], request_id: Optional[str] = None) -> str:
    mapped = _STATUS_MESSAGES.get(status_code)
    if mapped:
        return mapped
    message = detail or "Unknown error occurred"
    return f"Error: {message} (Request ID: {request_id})" if request_id else f"Error: {message}"
