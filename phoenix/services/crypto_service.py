"""Symmetric encryption for credentials stored at rest."""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING

from cryptography.fernet import Fernet, InvalidToken

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)


def load_or_create_key(path: Path) -> str:
    """Load the Fernet key from file, or create and save a new one."""
    if path.exists():
        key = path.read_text(encoding="ascii").strip()
        try:
            Fernet(key)
        except ValueError as exc:
            raise ValueError(f"Invalid encryption key file: {path}") from exc
        return key

    path.parent.mkdir(parents=True, exist_ok=True)
    key = Fernet.generate_key().decode("ascii")
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    with os.fdopen(fd, "w", encoding="ascii") as f:
        f.write(key)
    logger.info("Created new encryption key at %s", path)
    return key


def encrypt_value(plaintext: str, key: str) -> str:
    """Encrypt a string and return the ciphertext as a URL-safe string."""
    f = Fernet(key)
    return f.encrypt(plaintext.encode()).decode()


def decrypt_value(ciphertext: str, key: str) -> str:
    """Decrypt a ciphertext string. Raises ValueError on failure."""
    f = Fernet(key)
    try:
        return f.decrypt(ciphertext.encode()).decode()
    except InvalidToken as exc:
        raise ValueError("Failed to decrypt credential data") from exc
