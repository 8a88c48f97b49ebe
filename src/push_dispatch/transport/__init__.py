"""Push gateway transports and message construction."""

from push_dispatch.transport.fcm import FCM_SEND_URL, FcmTransport, GatewayResponseError
from push_dispatch.transport.message import build_message, message_options, recipients_argument

__all__ = [
    "FCM_SEND_URL",
    "FcmTransport",
    "GatewayResponseError",
    "build_message",
    "message_options",
    "recipients_argument",
]
