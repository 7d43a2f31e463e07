"""Custom exception types raised by the Dust integration."""

from __future__ import annotations


class AdapterError(RuntimeError):
    """Raised when an adapter cannot fulfil a request."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigurationError(AdapterError):
    """Raised before any network call when required settings are missing."""


class TransportError(AdapterError):
    """Raised when the Dust API answers with a non-success status."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DecodeError(AdapterError):
    """Raised for a single undecodable event line.

    The stream decoder recovers from this error locally; it never reaches the
    consumer of a response stream.
    """

    def __init__(self, message: str, *, line: str) -> None:
        super().__init__(message)
        self.line = line


class ProtocolMismatchError(AdapterError):
    """Raised when a response body does not have any recognised shape."""
