"""Profile schemas."""

from datetime import datetime

from pydantic import BaseModel, Field


class ProfileRow(BaseModel):
    """Public profile of a registered user."""

    id: str
    full_name: str | None = None
    username: str | None = None
    email: str | None = None
    avatar_url: str | None = None
    description: str | None = None
    occupation: str | None = None
    facebook_url: str | None = None
    messenger_url: str | None = None
    viber_number: str | None = None
    whatsapp_number: str | None = None
    coins: int = 10
    is_admin: bool = False
    onboarding_completed: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None


class ProfileInsert(BaseModel):
    id: str
    full_name: str | None = Field(default=None, max_length=100)
    username: str | None = Field(default=None, min_length=3)
    email: str | None = None
    avatar_url: str | None = None


class ProfileUpdate(BaseModel):
    full_name: str | None = Field(default=None, max_length=100)
    username: str | None = Field(default=None, min_length=3)
    avatar_url: str | None = None
    description: str | None = Field(default=None, max_length=700)
    occupation: str | None = None
    facebook_url: str | None = None
    messenger_url: str | None = None
    viber_number: str | None = None
    whatsapp_number: str | None = None
    onboarding_completed: bool | None = None
