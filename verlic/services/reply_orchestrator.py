"""Authorization-gated auto-reply pipeline for inbound WhatsApp messages.

The pipeline runs strictly in order: guards, identity and content
extraction, authorization, inbound persistence, AI generation, context
update, gateway send, outbound persistence. Clean stops (self messages,
groups, unknown senders, missing backends) return ``Result.success`` with
the reason. Any failing collaborator records an ``error`` metric tagged with
its source and returns ``Result.failure`` carrying that source as the code.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from sqlalchemy.orm import Session

from verlic.config import settings
from verlic.logging_config import get_logger, mask_phone
from verlic.models import WhatsAppInstance
from verlic.services.ai_service import SYSTEM_PROMPT, generate_reply
from verlic.services.authorization_service import find_authorized_number
from verlic.services.content_service import extract_content
from verlic.services.conversation_context import ConversationContextStore
from verlic.services.evolution_service import EvolutionClient
from verlic.services.identity_service import extract_sender_id, is_group_or_broadcast, is_self_message
from verlic.services.llm import LLMProvider
from verlic.services.message_service import DIRECTION_INBOUND, DIRECTION_OUTBOUND, save_message
from verlic.services.metrics_service import MetricType, record_error, record_metric
from verlic.services.result import Result

logger = get_logger("reply_orchestrator")

SOURCE_PERSISTENCE = "persistence"
SOURCE_CACHE = "cache"
SOURCE_AI = "ai_response"
SOURCE_GATEWAY = "gateway"


class ReplyOutcome(str, Enum):
    SELF_MESSAGE = "self_message"
    GROUP_OR_BROADCAST = "group_or_broadcast"
    NO_SENDER = "no_sender"
    NO_CONTENT = "no_content"
    UNAUTHORIZED = "unauthorized"
    AI_DISABLED = "ai_disabled"
    GATEWAY_DISABLED = "gateway_disabled"
    SEND_FAILED = "send_failed"
    REPLIED = "replied"


@dataclass
class ReplyDependencies:
    db: Session
    context_store: ConversationContextStore
    llm: Optional[LLMProvider] = None
    gateway: Optional[EvolutionClient] = None
    system_prompt: str = SYSTEM_PROMPT
    ai_timeout_seconds: Optional[float] = None

    @property
    def gateway_enabled(self) -> bool:
        return self.gateway is not None and self.gateway.is_configured


def _fail(deps: ReplyDependencies, source: str, error: Exception | str, **context: Any) -> Result[ReplyOutcome]:
    message = str(error)
    logger.error(
        f"Reply pipeline failed at {source}",
        extra={"context": {"source": source, "error": message, **context}},
    )
    try:
        deps.db.rollback()
    except Exception as rollback_error:
        logger.warning("Session rollback failed", extra={"context": {"error": str(rollback_error)}})
    record_error(deps.db, source, message, **context)
    return Result.failure(message, source)


async def handle_incoming_message(
    instance: WhatsAppInstance,
    envelope: Any,
    deps: ReplyDependencies,
) -> Result[ReplyOutcome]:
    """Process one messages-upsert envelope for an instance. Never raises."""
    # Committed rows expire, so read identifiers once before any write.
    instance_id = instance.id
    instance_name = instance.instance_name

    if is_self_message(envelope):
        return Result.success(ReplyOutcome.SELF_MESSAGE)
    if is_group_or_broadcast(envelope):
        return Result.success(ReplyOutcome.GROUP_OR_BROADCAST)

    sender_id = extract_sender_id(envelope)
    if not sender_id:
        logger.info("Could not resolve sender", extra={"context": {"instance": instance_name}})
        return Result.success(ReplyOutcome.NO_SENDER)

    content = extract_content(envelope)
    if not content:
        logger.info(
            "Message without text content",
            extra={"context": {"instance": instance_name, "phone": mask_phone(sender_id)}},
        )
        return Result.success(ReplyOutcome.NO_CONTENT)

    log_context = {"instance_id": str(instance_id), "phone": mask_phone(sender_id)}
    db = deps.db

    try:
        authorized = find_authorized_number(db, instance_id, sender_id)
        authorized_id = authorized.id if authorized else None
        save_message(
            db,
            instance_id,
            sender_id,
            DIRECTION_INBOUND,
            content,
            authorized_number_id=authorized_id,
        )
    except Exception as e:
        return _fail(deps, SOURCE_PERSISTENCE, e, **log_context)

    record_metric(
        db,
        MetricType.MESSAGE_RECEIVED,
        1,
        {"instance_id": str(instance_id), "authorized": authorized is not None},
    )

    if not authorized:
        logger.info("Sender not authorized", extra={"context": log_context})
        return Result.success(ReplyOutcome.UNAUTHORIZED)

    if deps.llm is None:
        logger.info("AI backend not configured, skipping reply", extra={"context": log_context})
        return Result.success(ReplyOutcome.AI_DISABLED)

    store = deps.context_store
    try:
        context = await store.load(instance_id, sender_id)
    except Exception as e:
        return _fail(deps, SOURCE_CACHE, e, **log_context)

    timeout = deps.ai_timeout_seconds if deps.ai_timeout_seconds is not None else settings.deepseek_timeout_seconds
    reply = await generate_reply(deps.llm, deps.system_prompt, context, content, timeout_seconds=timeout)
    if not reply.ok:
        return _fail(deps, SOURCE_AI, reply.error, reason=reply.error_code, **log_context)
    chat = reply.value

    record_metric(
        db,
        MetricType.AI_REQUEST,
        1,
        {
            "instance_id": str(instance_id),
            "tokens_used": chat.tokens_used,
            "response_time_ms": chat.response_time_ms,
        },
    )

    try:
        await store.save(
            instance_id,
            sender_id,
            [*context, {"role": "user", "content": content}, {"role": "assistant", "content": chat.content}],
        )
    except Exception as e:
        return _fail(deps, SOURCE_CACHE, e, **log_context)

    if not deps.gateway_enabled:
        logger.info("Gateway not configured, reply not sent", extra={"context": log_context})
        return Result.success(ReplyOutcome.GATEWAY_DISABLED)

    try:
        sent = await deps.gateway.send_text(instance_name, sender_id, chat.content)
    except Exception as e:
        return _fail(deps, SOURCE_GATEWAY, e, **log_context)

    if not sent:
        logger.warning("Gateway rejected reply", extra={"context": log_context})
        return Result.success(ReplyOutcome.SEND_FAILED)

    try:
        save_message(
            db,
            instance_id,
            sender_id,
            DIRECTION_OUTBOUND,
            chat.content,
            ai_generated=True,
            tokens_used=chat.tokens_used,
            response_time_ms=chat.response_time_ms,
            authorized_number_id=authorized_id,
        )
    except Exception as e:
        return _fail(deps, SOURCE_PERSISTENCE, e, **log_context)

    record_metric(db, MetricType.MESSAGE_SENT, 1, {"instance_id": str(instance_id)})
    logger.info(
        "Reply sent",
        extra={"context": {**log_context, "tokens_used": chat.tokens_used, "response_time_ms": chat.response_time_ms}},
    )
    return Result.success(ReplyOutcome.REPLIED)
