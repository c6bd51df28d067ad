"""Sender identity extraction for Evolution API webhook envelopes.

The gateway has changed its webhook schema several times, so the sender is
looked up in a fixed priority order across every known locator:

1. ``data.key.remoteJid``  (current nested shape)
2. ``data.remoteJid``
3. ``remoteJid``           (flattened root)
4. ``from``
5. ``sender``

The first locator that yields digits wins. Group and broadcast identifiers
reject the whole envelope. ``@lid`` identifiers are opaque aliases without a
phone number, so the alternate participant fields are consulted instead.
"""

import re
from enum import Enum
from typing import Any, Optional

from verlic.services.envelope import get_path, get_str

SENDER_LOCATORS = (
    "data.key.remoteJid",
    "data.remoteJid",
    "remoteJid",
    "from",
    "sender",
)

LID_FALLBACK_LOCATORS = (
    "data.key.participant",
    "data.participant",
    "data.key.senderPn",
    "data.key.remoteJidAlt",
)

FROM_ME_LOCATORS = (
    "data.key.fromMe",
    "data.fromMe",
    "fromMe",
)

GROUP_MARKERS = ("@g.us",)
BROADCAST_MARKERS = ("@broadcast", "@newsletter")
LID_MARKERS = ("@lid",)

# 5511999999999@s.whatsapp.net, 5511999999999:12@s.whatsapp.net (device suffix), 5511999999999@c.us
_JID_DIGITS = re.compile(r"^(\d+)(?::\d+)?@")
_BARE_DIGITS = re.compile(r"^\d+$")


class JidKind(str, Enum):
    DIRECT = "direct"
    GROUP = "group"
    BROADCAST = "broadcast"
    LID = "lid"


def classify_jid(jid: str) -> JidKind:
    if any(marker in jid for marker in GROUP_MARKERS):
        return JidKind.GROUP
    if any(marker in jid for marker in BROADCAST_MARKERS):
        return JidKind.BROADCAST
    if any(marker in jid for marker in LID_MARKERS):
        return JidKind.LID
    return JidKind.DIRECT


def extract_phone_number(jid: Optional[str]) -> Optional[str]:
    """Digits of a direct-chat JID or bare number; None for groups, broadcasts, aliases and garbage."""
    if not jid:
        return None
    jid = jid.strip()
    if classify_jid(jid) != JidKind.DIRECT:
        return None
    match = _JID_DIGITS.match(jid)
    if match:
        return match.group(1)
    if _BARE_DIGITS.match(jid):
        return jid
    return None


def _coerce_identifier(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return value.strip() or None
    return None


def _raw_sender_identifiers(envelope: Any) -> list[str]:
    identifiers: list[str] = []
    for path in SENDER_LOCATORS:
        value = _coerce_identifier(get_path(envelope, path))
        if value:
            identifiers.append(value)
    return identifiers


def _resolve_lid(envelope: Any) -> Optional[str]:
    for path in LID_FALLBACK_LOCATORS:
        candidate = get_str(envelope, path)
        if not candidate:
            continue
        phone = extract_phone_number(candidate)
        if phone:
            return phone
    return None


def extract_sender_id(envelope: Any) -> Optional[str]:
    """Canonical sender phone number (digits) or None when it cannot be resolved."""
    if not isinstance(envelope, dict):
        return None

    for raw in _raw_sender_identifiers(envelope):
        kind = classify_jid(raw)
        if kind in (JidKind.GROUP, JidKind.BROADCAST):
            return None
        if kind == JidKind.LID:
            return _resolve_lid(envelope)
        phone = extract_phone_number(raw)
        if phone:
            return phone
    return None


def is_self_message(envelope: Any) -> bool:
    """True when the gateway reports the message as sent by the connected account itself."""
    for path in FROM_ME_LOCATORS:
        value = get_path(envelope, path)
        if value is True or (isinstance(value, str) and value.strip().lower() == "true"):
            return True
    return False


def is_group_or_broadcast(envelope: Any) -> bool:
    for raw in _raw_sender_identifiers(envelope):
        if classify_jid(raw) in (JidKind.GROUP, JidKind.BROADCAST):
            return True
    return False
