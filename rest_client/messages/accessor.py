"""Private messages table accessor."""

from rest_client.base import TableAccessor
from rest_client.messages.schemas import MessageRow


class MessageAccessor(TableAccessor):
    table = "private_messages"
    row_model = MessageRow
