"""Credential account model."""

from __future__ import annotations

from enum import StrEnum

from sqlalchemy import Enum, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from phoenix.models.base import Base

DEFAULT_COLOUR = "5c636a"


class Algorithm(StrEnum):
    """HMAC algorithm used to derive one-time passwords."""

    SHA1 = "SHA1"
    SHA256 = "SHA256"
    SHA512 = "SHA512"


DEFAULT_ALGORITHM = Algorithm.SHA1


class Account(Base):
    """TOTP/HOTP credential with its remote-link bookkeeping.

    ``secret`` is always ciphertext.  ``external_id``, ``external_last_updated``
    and ``external_hash`` tie the row to its remote record; ``deleted_at`` marks
    a tombstone waiting for the next sync pass.
    """

    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    secret: Mapped[str] = mapped_column(Text, nullable=False)
    totp_step: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    otp_digits: Mapped[int] = mapped_column(Integer, nullable=False, default=6)
    totp_algorithm: Mapped[Algorithm | None] = mapped_column(
        Enum(Algorithm, native_enum=False, length=16), nullable=True
    )
    colour: Mapped[str] = mapped_column(String(16), nullable=False, default=DEFAULT_COLOUR)
    external_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    external_last_updated: Mapped[int | None] = mapped_column(Integer, nullable=True)
    external_hash: Mapped[str | None] = mapped_column(Text, nullable=True)
    deleted_at: Mapped[int | None] = mapped_column(Integer, nullable=True)

    @property
    def effective_algorithm(self) -> Algorithm:
        """Algorithm to use for code generation; absent means the default."""
        return self.totp_algorithm if self.totp_algorithm is not None else DEFAULT_ALGORITHM

    @property
    def is_linked(self) -> bool:
        return self.external_id is not None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None
