from verlic.models.authorized_number import AuthorizedNumber
from verlic.models.bot_status import BotStatus
from verlic.models.instance import WhatsAppInstance
from verlic.models.message import Message
from verlic.models.system_config import SystemConfig
from verlic.models.system_metric import SystemMetric
from verlic.models.webhook_log import WebhookLog

__all__ = [
    "WhatsAppInstance",
    "AuthorizedNumber",
    "BotStatus",
    "Message",
    "SystemMetric",
    "SystemConfig",
    "WebhookLog",
]
