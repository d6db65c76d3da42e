"""
Origin allow-list matching

Shared by the CORS middleware and the storage bridge document. Supported
entries:

- ``*``: any origin
- exact origin, e.g. ``https://app.example.com``
- wildcard pattern, e.g. ``*.example.com`` (any scheme, one or more subdomain
  labels) or ``http://localhost:*`` (any port)
"""

import re
from typing import Iterable, List, Optional

ALLOW_ALL = "*"

_SCHEME = r"[a-z][a-z0-9+.\-]*://"
_WILDCARD = r"[^/]+"


def origin_pattern_to_regex(pattern: str) -> str:
    """Translate one allow-list entry into a regular expression (unanchored)."""
    pattern = pattern.strip().rstrip("/")
    if "*" not in pattern:
        return re.escape(pattern)

    regex = _WILDCARD.join(re.escape(part) for part in pattern.split("*"))
    if "://" not in pattern:
        regex = _SCHEME + regex
    return regex


def allows_all(patterns: Iterable[str]) -> bool:
    return any(pattern.strip() == ALLOW_ALL for pattern in patterns)


def build_origin_regex(patterns: Iterable[str]) -> Optional[str]:
    """Combine the allow-list into one anchored alternation, or None if empty."""
    parts: List[str] = [
        origin_pattern_to_regex(pattern)
        for pattern in patterns
        if pattern.strip() and pattern.strip() != ALLOW_ALL
    ]
    if not parts:
        return None
    return "^(?:" + "|".join(parts) + ")$"


def is_origin_allowed(origin: Optional[str], patterns: Iterable[str]) -> bool:
    if not origin:
        return False
    patterns = list(patterns)
    if allows_all(patterns):
        return True
    regex = build_origin_regex(patterns)
    return bool(regex and re.fullmatch(regex, origin))
