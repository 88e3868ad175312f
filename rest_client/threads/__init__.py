"""Forum threads."""

from rest_client.threads.accessor import ThreadAccessor
from rest_client.threads.schemas import ThreadInsert, ThreadRow, ThreadUpdate

__all__ = [
    "ThreadAccessor",
    "ThreadRow",
    "ThreadInsert",
    "ThreadUpdate",
]
