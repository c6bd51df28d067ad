from typing import Optional

from verlic.config import Settings, settings
from verlic.logging_config import get_logger

logger = get_logger("health_service")


def get_env_status(config: Optional[Settings] = None) -> dict[str, bool]:
    config = config or settings
    return {
        "database": bool(config.database_url),
        "redis": bool(config.redis_url),
        "evolution_api": bool(config.evolution_api_url and config.evolution_api_key),
        "deepseek": bool(config.deepseek_api_key),
        "admin_token": bool(config.admin_token),
    }


def validate_env(config: Optional[Settings] = None) -> list[str]:
    """Human-readable warnings for optional integrations that are switched off."""
    status = get_env_status(config)
    warnings = []
    if not status["evolution_api"]:
        warnings.append("Evolution API not configured: WhatsApp features disabled")
    if not status["deepseek"]:
        warnings.append("DeepSeek API not configured: AI replies disabled")
    if not status["redis"]:
        warnings.append("Redis not configured: conversation context disabled")
    if not status["admin_token"]:
        warnings.append("ADMIN_TOKEN not configured: operator API will reject all requests")
    return warnings


def log_env_warnings(config: Optional[Settings] = None) -> list[str]:
    warnings = validate_env(config)
    for warning in warnings:
        logger.warning(warning)
    return warnings
