"""Gateway message construction.

Turns a notification record into the downstream message body understood by
the FCM legacy HTTP API. Recipients are never part of the message; the
transport adds them as ``to`` or ``registration_ids``.
"""

from __future__ import annotations

import copy
import re
from collections.abc import Mapping
from typing import Final

from push_dispatch.types import NotificationRecord

# Downstream message options accepted by the gateway
MESSAGE_OPTION_KEYS: Final[frozenset[str]] = frozenset(
    {
        "collapse_key",
        "priority",
        "content_available",
        "mutable_content",
        "delay_while_idle",
        "time_to_live",
        "restricted_package_name",
        "dry_run",
    }
)

# Options consumed by the transport or the dispatch engine, never sent
TRANSPORT_OPTION_KEYS: Final[frozenset[str]] = frozenset({"retries", "backoff", "fake"})

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def to_snake_case(name: str) -> str:
    """Convert a camelCase option name to snake_case.

    Examples:
        >>> to_snake_case("timeToLive")
        'time_to_live'
        >>> to_snake_case("priority")
        'priority'
    """
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def message_options(options: Mapping[str, object] | None) -> dict[str, object]:
    """Select the gateway message options from a send options mapping.

    Both camelCase and snake_case spellings are accepted; unknown keys and
    transport-only keys are dropped.
    """
    selected: dict[str, object] = {}
    for key, value in (options or {}).items():
        name = to_snake_case(key)
        if name in TRANSPORT_OPTION_KEYS or name not in MESSAGE_OPTION_KEYS:
            continue
        selected[name] = copy.deepcopy(value)
    return selected


def build_message(
    record: NotificationRecord,
    options: Mapping[str, object] | None = None,
) -> dict[str, object]:
    """Build the gateway message for a record.

    Args:
        record: Notification record to deliver
        options: Effective send options; defaults to the record's own options

    Returns:
        Message body with ``data``, ``notification`` and message options
    """
    message: dict[str, object] = message_options(record.options if options is None else options)
    if record.data:
        message["data"] = copy.deepcopy(record.data)
    if record.notification:
        message["notification"] = copy.deepcopy(record.notification)
    return message


def recipients_argument(recipients: list[str]) -> str | list[str]:
    """Pass a single recipient as a scalar and several as a list."""
    if len(recipients) == 1:
        return recipients[0]
    return list(recipients)
