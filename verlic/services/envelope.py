"""Optional-path access into untrusted webhook payloads."""

from dataclasses import dataclass
from typing import Any

_MISSING = object()


@dataclass(frozen=True)
class Lookup:
    """Result of looking up one dotted path in an envelope."""

    path: str
    value: Any = _MISSING

    @property
    def found(self) -> bool:
        return self.value is not _MISSING and self.value is not None


def lookup(envelope: Any, path: str) -> Lookup:
    """Follow a dotted path through nested dicts; any non-dict hop means not found."""
    current = envelope
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return Lookup(path)
        current = current[part]
    return Lookup(path, current)


def get_path(envelope: Any, path: str, default: Any = None) -> Any:
    result = lookup(envelope, path)
    return result.value if result.found else default


def get_str(envelope: Any, path: str) -> str | None:
    """String value at path, stripped; None for missing, non-string or blank values."""
    value = get_path(envelope, path)
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None
