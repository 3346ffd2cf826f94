"""Wire schemas for the remote records API.

Field names on the wire are camelCase; Python attributes are snake_case and
models accept either when constructed in code.  Every response envelope has a
``version`` which is accepted but not used to pick a schema.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from phoenix.models.account import Algorithm


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class LoginRequest(_WireModel):
    username: str
    password: str


class TokenResponse(_WireModel):
    token: str


class ManifestEntry(_WireModel):
    """Remote identity and the remote's last update time (epoch seconds)."""

    id: int
    updated_at: int = Field(alias="updatedAt")


class ManifestResponse(_WireModel):
    version: int
    data: list[ManifestEntry]


class Record(_WireModel):
    """Compact record returned after a push or replace."""

    id: int
    sync_hash: str = Field(alias="syncHash")
    updated_at: int = Field(alias="updatedAt")


class RecordResponse(_WireModel):
    version: int
    data: Record


class VerboseRecord(_WireModel):
    """Full record as pulled from the remote. ``secret`` is plaintext."""

    id: int
    name: str
    secret: str
    totp_step: int = Field(alias="totpStep")
    otp_digits: int = Field(alias="otpDigits")
    algorithm: Algorithm | None = None
    colour: str | None = None
    sync_hash: str = Field(alias="syncHash")
    updated_at: int = Field(alias="updatedAt")

    @field_validator("algorithm", mode="before")
    @classmethod
    def _blank_algorithm_is_default(cls, value: Any) -> Any:
        if value == "":
            return None
        return value

    def to_record(self) -> Record:
        return Record(id=self.id, sync_hash=self.sync_hash, updated_at=self.updated_at)


class SingleRecordResponse(_WireModel):
    version: int
    data: VerboseRecord


class RecordPayload(_WireModel):
    """Body of a push or replace request. ``secret`` is plaintext."""

    name: str
    secret: str
    otp_digits: int = Field(alias="otpDigits")
    totp_step: int = Field(alias="totpStep")
    totp_algorithm: Algorithm | None = Field(default=None, alias="totpAlgorithm")
    colour: str | None = None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
