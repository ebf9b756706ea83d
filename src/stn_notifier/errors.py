# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Exception taxonomy for the notifier.

Every error carries a stable ``code`` attribute so callers and logs can
classify failures without matching on message text. Fetch and archive errors
fail a single request only; negotiation errors are fatal to startup once the
caller's retry is spent.
"""

from __future__ import annotations


class NotifierError(Exception):
    """Base class for all notifier errors."""

    code = "notifier_error"


class ConfigInvalidError(NotifierError, ValueError):
    """Raised when required configuration is missing or malformed."""

    code = "config_invalid"


class AllTransportsFailedError(NotifierError, ConnectionError):
    """Raised when every SMTP transport variant was rejected."""

    code = "all_transports_failed"

    def __init__(self, host: str, attempts: list[str]):
        self.host = host
        self.attempts = attempts
        super().__init__(
            f"Could not establish an SMTP session with {host} "
            f"(tried: {', '.join(attempts) or 'nothing'})"
        )


class PayloadTooLargeError(NotifierError, ValueError):
    """Base class for payloads rejected by a size budget."""

    code = "payload_too_large"

    def __init__(self, size: int, limit: int, message: str):
        self.size = size
        self.limit = limit
        super().__init__(message)


class DeclaredSizeExceededError(PayloadTooLargeError):
    """Raised when the peer announces a body larger than the limit."""

    code = "declared_size_exceeded"

    def __init__(self, size: int, limit: int):
        super().__init__(
            size, limit, f"Declared body size {size} bytes exceeds limit ({limit} bytes)"
        )


class ActualSizeExceededError(PayloadTooLargeError):
    """Raised when the streamed body grows past the limit."""

    code = "actual_size_exceeded"

    def __init__(self, size: int, limit: int):
        super().__init__(
            size,
            limit,
            f"Body reached {size} bytes, exceeding limit ({limit} bytes); transfer aborted",
        )


class ArchiveError(NotifierError, ValueError):
    """Base class for archive payload errors."""

    code = "archive_error"


class InvalidArchiveError(ArchiveError):
    """Raised when the payload is not a readable archive."""

    code = "invalid_archive"


class EmptyArchiveError(ArchiveError):
    """Raised when the archive holds no entries."""

    code = "empty_archive"

    def __init__(self, message: str = "Archive contains no entries"):
        super().__init__(message)


class UncompressedSizeExceededError(ArchiveError):
    """Raised when an archive entry expands past the uncompressed ceiling."""

    code = "uncompressed_size_exceeded"

    def __init__(self, entry: str, size: int, limit: int, declared: bool = True):
        self.entry = entry
        self.size = size
        self.limit = limit
        self.declared = declared
        kind = "declares" if declared else "expanded to"
        super().__init__(
            f"Archive entry '{entry}' {kind} {size} bytes, exceeding limit ({limit} bytes)"
        )


class UpstreamError(NotifierError, RuntimeError):
    """Raised when the remote service answers with a non-success status."""

    code = "upstream_error"

    def __init__(self, status: int, url: str = "", reason: str | None = None):
        self.status = status
        self.url = url
        self.reason = reason
        detail = f" {reason}" if reason else ""
        target = f" from {url}" if url else ""
        super().__init__(f"Upstream returned HTTP {status}{detail}{target}")


class SessionClosedError(NotifierError, RuntimeError):
    """Raised when the SMTP session is used after shutdown."""

    code = "session_closed"

    def __init__(self, message: str = "SMTP session is closed"):
        super().__init__(message)


class NoRecipientsError(NotifierError, ValueError):
    """Raised when no recipient address could be parsed."""

    code = "no_recipients"

    def __init__(self, message: str = "No valid recipient address configured"):
        super().__init__(message)


class ResourceAlreadyInitializedError(NotifierError, RuntimeError):
    """Raised when a process-wide client is initialised twice."""

    code = "already_initialized"


class ResourceNotInitializedError(NotifierError, RuntimeError):
    """Raised when a process-wide client is used before initialisation."""

    code = "not_initialized"


__all__ = [
    "ActualSizeExceededError",
    "AllTransportsFailedError",
    "ArchiveError",
    "ConfigInvalidError",
    "DeclaredSizeExceededError",
    "EmptyArchiveError",
    "InvalidArchiveError",
    "NoRecipientsError",
    "NotifierError",
    "PayloadTooLargeError",
    "ResourceAlreadyInitializedError",
    "ResourceNotInitializedError",
    "SessionClosedError",
    "UncompressedSizeExceededError",
    "UpstreamError",
]
