"""
Typed reads of loosely typed JSON values sent by the dashboard and webhooks
"""

from typing import Any

TRUE_STRINGS = {'1', 'true', 'yes', 'on'}
FALSE_STRINGS = {'0', 'false', 'no', 'off', ''}


def parse_bool(value: Any) -> bool:
    """
    Interpret a JSON flag; "false" and "0" are false.

    Raises:
        ValueError: For strings that are not a recognised flag
    """
    if isinstance(value, str):
        text = value.strip().lower()
        if text in TRUE_STRINGS:
            return True
        if text in FALSE_STRINGS:
            return False
        raise ValueError(f"Not a boolean value: {value!r}")
    return bool(value)
