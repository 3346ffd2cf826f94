"""Account input schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field

from phoenix.models.account import DEFAULT_COLOUR, Algorithm

_COLOUR_PATTERN = r"^[0-9a-fA-F]{6}$"


class AccountFields(BaseModel):
    """Editable attributes shared by create and update requests."""

    name: str = Field(min_length=1, max_length=255)
    otp_digits: int = Field(default=6, ge=6, le=8)
    totp_step: int = Field(default=30, ge=1, le=300)
    algorithm: Algorithm | None = Field(
        default=None, description="HMAC algorithm; None selects the default (SHA1)"
    )
    colour: str = Field(default=DEFAULT_COLOUR, pattern=_COLOUR_PATTERN)


class AccountCreate(AccountFields):
    """Request to store a new credential. ``secret`` is plaintext here."""

    secret: str = Field(min_length=1, max_length=1024)


class AccountUpdate(AccountFields):
    """Request to edit an existing credential. The secret cannot be changed."""


class SyncAccountCreate(BaseModel):
    """Remote endpoint credentials as entered by the user."""

    url: str = Field(min_length=1, max_length=2083)
    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=1024)
