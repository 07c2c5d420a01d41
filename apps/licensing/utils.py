import re
from typing import Any

import httpx
import orjson

FINGERPRINT_REGEX = r"^[A-Fa-f0-9]{64}$"

_FINGERPRINT_PATTERN = re.compile(r"[A-Fa-f0-9]{64}")


def is_valid_fingerprint(raw: Any) -> bool:
    """
    Check that a scanned QR payload is a booth fingerprint

    The booth displays its fingerprint as a bare 64-character hex string,
    with no prefix and no checksum.

    Args:
        raw: Decoded QR payload

    Returns:
        True if the payload is exactly 64 hex characters (any case)
    """
    if not isinstance(raw, str):
        return False
    return _FINGERPRINT_PATTERN.fullmatch(raw) is not None


def shorten_fingerprint(fingerprint: str, length: int = 12) -> str:
    """
    Shorten a fingerprint for log output

    Args:
        fingerprint: Full fingerprint
        length: Number of leading characters to keep

    Returns:
        Shortened fingerprint, e.g. "A1B2C3D4E5F6..."
    """
    if len(fingerprint) <= length:
        return fingerprint
    return f"{fingerprint[:length]}..."


def serialize_json(data: Any) -> bytes:
    """
    Serialize data to JSON using orjson

    Args:
        data: Data to serialize

    Returns:
        JSON bytes
    """
    return orjson.dumps(data, option=orjson.OPT_NAIVE_UTC)


def deserialize_json(data: bytes | str) -> Any:
    """
    Deserialize JSON data using orjson

    Args:
        data: JSON bytes or string

    Returns:
        Deserialized Python object
    """
    return orjson.loads(data)


def _humanize_field(field: Any) -> str:
    words = re.sub(r"([A-Z])", r" \1", str(field).replace("_", " ")).split()
    return " ".join(word[:1].upper() + word[1:] for word in words)


def format_validation_errors(errors: list[Any]) -> str:
    """
    Turn a pydantic/FastAPI validation error array into a readable sentence

    Args:
        errors: Items of the "detail" array of a 422 response

    Returns:
        Messages like "Booth Id: Field required. Fingerprint: Invalid value"
    """
    if not errors:
        return "Validation error occurred"

    messages = []
    for error in errors:
        if isinstance(error, dict):
            loc = error.get("loc") or ["field"]
            messages.append(
                "%s: %s"
                % (_humanize_field(loc[-1]), error.get("msg") or "Invalid value")
            )
        else:
            messages.append(str(error))

    return ". ".join(messages)


def parse_error_message(response: httpx.Response) -> str:
    """
    Extract a user-facing error message from an error response

    Handles the backend's JSON error formats ("detail" or "message",
    validation error arrays, nested objects) as well as HTML pages served
    by gateways when the backend is unreachable.

    Args:
        response: Error response

    Returns:
        Error message, never empty
    """
    fallback = response.reason_phrase or "An error occurred"
    text = response.text.strip()

    if not text:
        return fallback

    if text.startswith("<!DOCTYPE") or text.startswith("<html"):
        if "502" in text or "Bad Gateway" in text:
            return "Server is temporarily unavailable. Please try again later."
        if "503" in text or "Service Unavailable" in text:
            return "Service is temporarily unavailable. Please try again later."
        return "Server is unreachable. Please check your connection."

    try:
        body = deserialize_json(text)
    except orjson.JSONDecodeError:
        return text

    if not isinstance(body, dict):
        return text

    value = body.get("detail") or body.get("message")
    if isinstance(value, list):
        return format_validation_errors(value)
    if isinstance(value, str) and value:
        return value
    if isinstance(value, dict):
        for key in ("message", "error"):
            if isinstance(value.get(key), str):
                return value[key]
        return serialize_json(value).decode()

    return fallback
