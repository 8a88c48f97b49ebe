"""Secret sanitization utilities for logging and error messages.

The gateway server key travels in the ``Authorization`` header and may end up
in configuration dumps, exception messages or structured log context. These
helpers redact it (and other credential-like values) before output.

Examples:
    >>> sanitize_text("Authorization: key=AAAA1234")
    'Authorization: key=<REDACTED>'

    >>> sanitize_value({"api_key": "AAAA1234", "priority": "high"})
    {'api_key': '<REDACTED>', 'priority': 'high'}
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import TypeIs

# Redaction marker for sanitized values
REDACTED = "<REDACTED>"

# Authorization header value: "key=<server key>" or "Bearer <token>"
_AUTHORIZATION_PATTERN = re.compile(
    r"(authorization[\"']?\s*[:=]\s*[\"']?(?:key=|bearer\s+))([^\s\"',}%<&][^\s\"',}&]*)",
    re.IGNORECASE,
)

# Tokens in query parameters
_TOKEN_IN_QUERY = re.compile(
    r"([?&](?:token|api[-_]?key|key|auth|secret)=)([^&\s%<][^&\s]*)",
    re.IGNORECASE,
)

# Inline assignments such as "api_key=abc" or "apiKey: abc". Values stop at
# "&", and never start with "%" (format placeholders) or "<" (already redacted)
_INLINE_ASSIGNMENT = re.compile(
    r"((?:api[-_]?key|server[-_]?key|secret|password)[\"']?\s*[:=]\s*[\"']?)([^\s\"',}%<&][^\s\"',}&]*)",
    re.IGNORECASE,
)

# Sensitive field name patterns (case-insensitive)
_SENSITIVE_FIELD_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in [
        r"^api[-_]?key$",
        r"^server[-_]?key$",
        r".*secret.*",
        r".*password.*",
        r".*credential.*",
        r"^authorization$",
        r".*bearer.*",
    ]
]


def is_sensitive_field(field_name: str) -> bool:
    """Check if a field name indicates sensitive data.

    Examples:
        >>> is_sensitive_field("apiKey")
        True
        >>> is_sensitive_field("collapse_key")
        False
    """
    return any(pattern.match(field_name) for pattern in _SENSITIVE_FIELD_PATTERNS)


def sanitize_text(text: str) -> str:
    """Redact credentials embedded in free text while preserving structure."""
    if not text:
        return text
    sanitized = _AUTHORIZATION_PATTERN.sub(rf"\1{REDACTED}", text)
    sanitized = _TOKEN_IN_QUERY.sub(rf"\1{REDACTED}", sanitized)
    return _INLINE_ASSIGNMENT.sub(rf"\1{REDACTED}", sanitized)


def _is_primitive(value: object) -> TypeIs[str | int | float | bool | None]:
    return isinstance(value, (str, int, float, bool, type(None)))


def _is_mapping(value: object) -> TypeIs[Mapping[str, object]]:
    return isinstance(value, Mapping)


def _is_sequence(value: object) -> TypeIs[Sequence[object]]:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def sanitize_value(
    value: object,
    *,
    field_name: str | None = None,
) -> object:
    """Recursively sanitize sensitive values from structured data.

    Values are redacted when their field name looks sensitive; strings are
    scanned for embedded credentials; mappings and sequences are walked.

    Args:
        value: The value to sanitize (can be any type)
        field_name: Optional field name for context-aware sanitization

    Returns:
        Sanitized value with secrets replaced by REDACTED marker
    """
    if field_name and is_sensitive_field(field_name):
        return REDACTED

    if _is_primitive(value):
        if type(value) is str:
            return sanitize_text(value)
        return value

    if _is_mapping(value):
        return {key: sanitize_value(val, field_name=str(key)) for key, val in value.items()}

    if _is_sequence(value):
        sanitized_items: list[object] = [sanitize_value(item) for item in value]
        if isinstance(value, tuple):
            return tuple(sanitized_items)
        return sanitized_items

    # Other objects (records, exceptions...) are left intact; their string
    # form is sanitized when the log message is rendered.
    return value


def sanitize_exception(exc: BaseException) -> str:
    """Sanitize an exception into a ``Type: message`` string safe for logging.

    Examples:
        >>> sanitize_exception(ValueError("bad api_key=abc123"))
        'ValueError: bad api_key=<REDACTED>'
    """
    return f"{type(exc).__name__}: {sanitize_text(str(exc))}"


def sanitize_args(args: tuple[object, ...]) -> tuple[object, ...]:
    """Sanitize a tuple of logging arguments."""
    return tuple(sanitize_value(arg) for arg in args)


def sanitize_mapping(data: Mapping[str, object]) -> dict[str, object]:
    """Sanitize a mapping (e.g. configuration dump or logging extra dict)."""
    return {key: sanitize_value(val, field_name=key) for key, val in data.items()}
