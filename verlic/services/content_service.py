"""Text extraction from Evolution API message payloads.

Precedence is fixed: plain text forms before captions.

1. ``conversation``
2. ``extendedTextMessage.text``
3. ``imageMessage.caption``
4. ``videoMessage.caption``
5. ``documentMessage.caption``
"""

from typing import Any, Optional

from verlic.services.envelope import get_path, get_str

MESSAGE_LOCATORS = ("data.message", "message")

CONTENT_PATHS = (
    "conversation",
    "extendedTextMessage.text",
    "imageMessage.caption",
    "videoMessage.caption",
    "documentMessage.caption",
)

WRAPPER_KEYS = (
    "ephemeralMessage",
    "viewOnceMessage",
    "viewOnceMessageV2",
    "documentWithCaptionMessage",
)

MAX_WRAPPER_DEPTH = 3


def _find_message_container(envelope: Any) -> Optional[dict]:
    for path in MESSAGE_LOCATORS:
        container = get_path(envelope, path)
        if isinstance(container, dict):
            return container
    return None


def _unwrap(message: dict) -> list[dict]:
    """The message itself followed by any wrapped inner messages."""
    layers = [message]
    current = message
    for _ in range(MAX_WRAPPER_DEPTH):
        inner = None
        for key in WRAPPER_KEYS:
            candidate = get_path(current, f"{key}.message")
            if isinstance(candidate, dict):
                inner = candidate
                break
        if inner is None:
            break
        layers.append(inner)
        current = inner
    return layers


def extract_content(envelope: Any) -> Optional[str]:
    """Readable text of the message, or None when there is no textual payload."""
    message = _find_message_container(envelope)
    if message is None:
        return None

    for layer in _unwrap(message):
        for path in CONTENT_PATHS:
            text = get_str(layer, path)
            if text:
                return text
    return None
