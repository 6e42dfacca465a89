"""Helpers for showing stored credentials in API responses."""

from typing import Any, Dict, Iterable, Optional

MASK_PREFIX = '****'


def mask_secret(value: Optional[str]) -> str:
    """'****' plus the last four characters; empty for a missing value."""
    if not value:
        return ''
    return MASK_PREFIX + value[-4:] if len(value) > 4 else MASK_PREFIX


def is_masked(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(MASK_PREFIX)


def mask_fields(data: Dict[str, Any], fields: Iterable[str]) -> Dict[str, Any]:
    masked = dict(data)
    for field in fields:
        if field in masked:
            masked[field] = mask_secret(masked[field])
    return masked


def drop_masked(updates: Dict[str, Any], fields: Iterable[str]) -> Dict[str, Any]:
    """Remove secrets that were echoed back in masked form so they are not overwritten."""
    return {k: v for k, v in updates.items() if not (k in fields and is_masked(v))}
