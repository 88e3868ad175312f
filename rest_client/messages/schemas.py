"""Private message schemas."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field


class MessageType(StrEnum):
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    LOCATION = "location"


class MessageRow(BaseModel):
    id: str
    sender_id: str
    receiver_id: str
    message: str
    message_type: MessageType = MessageType.TEXT
    attachment_url: str | None = None
    attachment_type: str | None = None
    reply_to: str | None = None
    is_edited: bool = False
    read_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None


class MessageInsert(BaseModel):
    sender_id: str
    receiver_id: str
    message: str = Field(min_length=1)
    message_type: MessageType = MessageType.TEXT
    attachment_url: str | None = None
    attachment_type: str | None = None
    reply_to: str | None = None


class MessageUpdate(BaseModel):
    message: str | None = Field(default=None, min_length=1)
    is_edited: bool | None = None
    read_at: datetime | None = None
