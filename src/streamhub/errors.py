"""Application-level exception types for Streamhub."""

from __future__ import annotations


class StreamhubError(Exception):
    """Base exception for Streamhub."""


class ConfigurationError(StreamhubError):
    """Raised when settings are missing or invalid."""


class CredentialError(StreamhubError):
    """Raised when the token provider cannot supply a credential.

    Not retried by the reconnect backoff and never consumes a retry attempt.
    """


class TransportError(StreamhubError):
    """Raised when the streaming connection is refused or dropped."""


class NotConnectedError(TransportError):
    """Raised when a frame is sent while no transport is live."""


class RetryExhaustedError(StreamhubError):
    """Raised when connecting after the retry budget has been spent."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"Reconnect attempts exhausted after {attempts} retries")
        self.attempts = attempts


class FrameDecodeError(StreamhubError):
    """Raised when an inbound frame is not a well-formed envelope."""


class StructuredParseError(StreamhubError):
    """Raised when a reply is not a structured location payload."""


class GeocodeError(StreamhubError):
    """Raised when one address cannot be resolved to a coordinate."""

    def __init__(self, address: str, reason: str = "no result") -> None:
        super().__init__(f"Geocoding failed for {address!r}: {reason}")
        self.address = address
