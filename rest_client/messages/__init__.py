"""Private messages between profiles."""

from rest_client.messages.accessor import MessageAccessor
from rest_client.messages.schemas import MessageInsert, MessageRow, MessageType, MessageUpdate

__all__ = [
    "MessageAccessor",
    "MessageRow",
    "MessageInsert",
    "MessageUpdate",
    "MessageType",
]
