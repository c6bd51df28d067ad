from verlic.schemas.webhook import EvolutionEnvelope, WebhookAck, WebhookError

__all__ = ["EvolutionEnvelope", "WebhookAck", "WebhookError"]
