from verlic.services.authorization_service import candidate_numbers, find_authorized_number, is_authorized
from verlic.services.content_service import extract_content
from verlic.services.event_dispatcher import (
    DispatchResult,
    WebhookEvent,
    dispatch_webhook_event,
    normalize_event_name,
)
from verlic.services.identity_service import extract_sender_id, is_group_or_broadcast, is_self_message
from verlic.services.instance_service import (
    InstanceStatus,
    apply_connection_update,
    apply_qrcode_update,
    map_connection_state,
)
from verlic.services.reply_orchestrator import ReplyDependencies, ReplyOutcome, handle_incoming_message
