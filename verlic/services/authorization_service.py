from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from verlic.logging_config import get_logger, mask_phone
from verlic.models import AuthorizedNumber
from verlic.services.phone_utils import BRAZIL_COUNTRY_CODE, normalize_phone_number

logger = get_logger("authorization_service")

SUFFIX_MATCH_DIGITS = 9


def candidate_numbers(normalized: str) -> list[str]:
    """Exact-match variants in lookup order: as received, without country code, with country code."""
    if not normalized:
        return []
    candidates = [normalized]
    if normalized.startswith(BRAZIL_COUNTRY_CODE) and len(normalized) > 10:
        candidates.append(normalized[len(BRAZIL_COUNTRY_CODE):])
    if not normalized.startswith(BRAZIL_COUNTRY_CODE) and len(normalized) <= 11:
        candidates.append(f"{BRAZIL_COUNTRY_CODE}{normalized}")
    return candidates


def _active_numbers(db: Session, instance_id: UUID):
    return db.query(AuthorizedNumber).filter(
        AuthorizedNumber.instance_id == instance_id,
        AuthorizedNumber.is_active.is_(True),
    )


def find_authorized_number(db: Session, instance_id: UUID, sender_id: str) -> Optional[AuthorizedNumber]:
    """Find the active authorized number matching the sender.

    Stored numbers come from operators and may or may not carry the country
    code, so the lookup tries the exact variants first and then falls back to
    a suffix match on the last nine digits. First match wins.
    """
    normalized = normalize_phone_number(sender_id)
    if not normalized:
        return None

    for candidate in candidate_numbers(normalized):
        authorized = _active_numbers(db, instance_id).filter(AuthorizedNumber.phone_number == candidate).first()
        if authorized:
            return authorized

    if len(normalized) < SUFFIX_MATCH_DIGITS:
        return None

    suffix = normalized[-SUFFIX_MATCH_DIGITS:]
    authorized = (
        _active_numbers(db, instance_id)
        .filter(AuthorizedNumber.phone_number.endswith(suffix, autoescape=True))
        .order_by(AuthorizedNumber.created_at)
        .first()
    )
    if authorized:
        logger.info(
            "Authorized number matched by suffix",
            extra={"context": {"instance_id": str(instance_id), "phone": mask_phone(normalized)}},
        )
    return authorized


is_authorized = find_authorized_number
