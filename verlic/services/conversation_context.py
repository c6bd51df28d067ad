"""Short-lived conversation memory kept in Redis.

Each (instance, sender) pair owns one JSON list of chat turns under
``conversation:{instance_id}:{phone_number}``. The key expires after the
configured TTL, and an expired or missing key reads as an empty history.
Read-modify-write is not atomic: two concurrent replies for the same sender
end with whichever save lands last.
"""

import json
from typing import Optional

from verlic.config import settings
from verlic.logging_config import get_logger, mask_phone

logger = get_logger("conversation_context")

CONTEXT_KEY_PREFIX = "conversation"
VALID_ROLES = {"user", "assistant"}


def context_key(instance_id, phone_number: str) -> str:
    return f"{CONTEXT_KEY_PREFIX}:{instance_id}:{phone_number}"


def _parse_turns(raw: Optional[str]) -> list[dict]:
    if not raw:
        return []
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Discarding unreadable conversation context")
        return []
    if not isinstance(data, list):
        return []

    turns = []
    for item in data:
        if not isinstance(item, dict):
            continue
        role = item.get("role")
        content = item.get("content")
        if role in VALID_ROLES and isinstance(content, str):
            turns.append({"role": role, "content": content})
    return turns


class ConversationContextStore:
    """Load and save bounded chat history. Redis errors propagate to the caller."""

    def __init__(self, redis_client=None, ttl_seconds: Optional[int] = None, max_messages: Optional[int] = None):
        self.redis = redis_client
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.context_ttl_seconds
        self.max_messages = max_messages if max_messages is not None else settings.context_max_messages

    @property
    def enabled(self) -> bool:
        return self.redis is not None

    async def load(self, instance_id, phone_number: str) -> list[dict]:
        if not self.enabled:
            return []
        raw = await self.redis.get(context_key(instance_id, phone_number))
        return _parse_turns(raw)

    async def save(self, instance_id, phone_number: str, turns: list[dict]) -> list[dict]:
        """Persist the most recent turns and refresh the TTL. Returns what was stored."""
        bounded = list(turns)[-self.max_messages :] if self.max_messages > 0 else []
        if not self.enabled:
            return bounded
        await self.redis.set(
            context_key(instance_id, phone_number),
            json.dumps(bounded, ensure_ascii=False),
            ex=self.ttl_seconds,
        )
        return bounded

    async def append(self, instance_id, phone_number: str, *new_turns: dict) -> list[dict]:
        turns = await self.load(instance_id, phone_number)
        turns.extend(new_turns)
        return await self.save(instance_id, phone_number, turns)

    async def clear(self, instance_id, phone_number: str) -> bool:
        if not self.enabled:
            return False
        deleted = await self.redis.delete(context_key(instance_id, phone_number))
        logger.info(
            "Conversation context cleared",
            extra={"context": {"instance_id": str(instance_id), "phone": mask_phone(phone_number)}},
        )
        return bool(deleted)
