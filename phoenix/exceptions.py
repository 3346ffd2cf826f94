"""Application-level exception types.

Convention:
- ``SyncError`` and its subclasses: for every failure talking to the remote
  endpoint.  Each carries a ``status`` and a ``message``;
  ``formatted_message()`` is the text written to the sync log.  None of them
  is fatal to the application: the reconciler either aborts the current pass
  or skips the affected record.
- ``ValueError``: for *business logic* validation errors that are safe to
  show to the user (duplicate account names, bad endpoint URLs, credentials
  that cannot be decrypted, etc.).
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for remote synchronisation failures."""

    default_status = "0"
    default_message = "Unknown Error"

    def __init__(self, status: str | None = None, message: str | None = None) -> None:
        self.status = status if status is not None else self.default_status
        self.message = message if message is not None else self.default_message
        super().__init__(self.formatted_message())

    def formatted_message(self) -> str:
        return f"Error {self.status} {self.message}"


class TransportError(SyncError):
    """No usable response was received (connection, TLS, timeout, bad request).

    ``status`` is ``"0"`` unless the underlying error carried a response.
    """


class ServerError(SyncError):
    """The remote answered with a non-2xx status.

    ``status`` holds the HTTP status line, e.g. ``"404 Not Found"``.
    """

    default_message = "Error from server"


class DecodeError(SyncError):
    """A 2xx response whose body did not match the expected shape."""

    default_status = "418"
    default_message = "Could not parse Server response"


class MissingLinkError(SyncError):
    """An operation that needs a remote identity was given a record without one."""

    default_status = "400"
    default_message = "Missing External Id"
