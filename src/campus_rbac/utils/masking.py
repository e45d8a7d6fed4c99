"""Redaction of audit payloads.

Keys are compared after dropping ``_`` and ``-`` and lower-casing, so
``access_token``, ``accessToken`` and ``Access-Token`` are treated alike.
Long free-text values such as rejection comments are clipped so a single
audit row stays small.
"""

from __future__ import annotations

from collections.abc import Mapping

_MAX_REDACT_DEPTH = 20
MAX_TEXT_LENGTH = 2_000

# Substrings of normalized key names whose values are never stored.
SENSITIVE_KEY_MARKERS: tuple[str, ...] = (
    "password",
    "secret",
    "token",
    "apikey",
    "credential",
    "authorization",
    "aadhaar",
)


def _normalize_key(key: object) -> str:
    return str(key).replace("_", "").replace("-", "").lower()


def is_sensitive_key(key: object) -> bool:
    normalized = _normalize_key(key)
    return any(marker in normalized for marker in SENSITIVE_KEY_MARKERS)


def _clip(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return f"{text[:limit]}...[{len(text) - limit} more chars]"


def redact_sensitive_fields(
    value: object,
    *,
    mask: str = "***",
    depth: int = 0,
    max_depth: int = _MAX_REDACT_DEPTH,
    max_text: int = MAX_TEXT_LENGTH,
) -> object:
    """Return a copy of ``value`` that is safe to persist.

    Mappings come back as ``dict`` with string keys, sequences and sets as
    ``list``. Anything nested deeper than ``max_depth`` collapses to ``mask``.
    """
    if depth >= max_depth:
        return mask
    if isinstance(value, Mapping):
        return {
            str(key): mask
            if is_sensitive_key(key)
            else redact_sensitive_fields(
                item, mask=mask, depth=depth + 1, max_depth=max_depth, max_text=max_text
            )
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple, set, frozenset)):
        items = sorted(value, key=str) if isinstance(value, (set, frozenset)) else value
        return [
            redact_sensitive_fields(
                item, mask=mask, depth=depth + 1, max_depth=max_depth, max_text=max_text
            )
            for item in items
        ]
    if isinstance(value, str):
        return _clip(value, max_text)
    return value
