"""Exception hierarchy for the personalization engine."""

from typing import Optional


class PersonalizeError(Exception):
    """Base exception for all personalization errors."""


class ConfigError(PersonalizeError):
    """AI configuration is missing a credential or endpoint.

    Never retried and never absorbed by the deterministic fallback.
    """


class ModelGatewayError(PersonalizeError):
    """Base class for failures talking to the model endpoint."""


class TransportError(ModelGatewayError):
    """Network failure or timeout while calling the model endpoint."""

    def __init__(self, message: str, timeout_ms: Optional[int] = None) -> None:
        super().__init__(message)
        self.timeout_ms = timeout_ms


class ProtocolError(ModelGatewayError):
    """Non-success status, unparseable payload or unexpected body shape."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body_preview: str = "",
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body_preview = body_preview

    @property
    def is_client_error(self) -> bool:
        """True for 4xx statuses other than 429 (rate limit)."""
        if self.status_code is None:
            return False
        return 400 <= self.status_code < 500 and self.status_code != 429


class ValidationError(ProtocolError):
    """Model reply parsed but does not match the expected schema."""


class StorageError(PersonalizeError):
    """Read or write failure on the key-value store."""
