import re
import secrets
import string

BRAZIL_COUNTRY_CODE = "55"

_NON_DIGITS = re.compile(r"\D")


def normalize_phone_number(phone: str | None) -> str:
    """Strip everything except digits."""
    if not phone:
        return ""
    return _NON_DIGITS.sub("", str(phone))


def generate_instance_name(prefix: str = "verlic") -> str:
    alphabet = string.ascii_lowercase + string.digits
    suffix = "".join(secrets.choice(alphabet) for _ in range(6))
    return f"{prefix}-{suffix}"
