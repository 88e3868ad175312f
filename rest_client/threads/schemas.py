"""Forum thread schemas."""

from datetime import datetime

from pydantic import BaseModel, Field


class ThreadRow(BaseModel):
    id: str
    forum_id: str | None = None
    title: str
    created_by: str | None = None
    created_at: datetime | None = None


class ThreadInsert(BaseModel):
    forum_id: str
    title: str = Field(min_length=1)
    created_by: str | None = None


class ThreadUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1)
