"""
Duration strings ("500ms", "30s", "5m", "1.5h") to milliseconds
"""

import re

from virtual_router.exceptions import DurationParseError

_DURATION_RE = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)", re.ASCII)

_UNIT_MS = {
    "ms": 1.0,
    "s": 1000.0,
    "m": 60 * 1000.0,
    "h": 60 * 60 * 1000.0,
}


def parse_duration(duration: str) -> float:
    """
    Parse a duration string into milliseconds

    Args:
        duration: Magnitude immediately followed by one of ms, s, m, h

    Returns:
        Offset in milliseconds

    Raises:
        DurationParseError: If the string is not in the accepted form
    """
    if not isinstance(duration, str):
        raise DurationParseError(str(duration))

    match = _DURATION_RE.fullmatch(duration)
    if not match:
        raise DurationParseError(duration)

    value, unit = match.groups()
    return float(value) * _UNIT_MS[unit]
