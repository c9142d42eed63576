"""Base exceptions and protocols for the Source client."""

from typing import Protocol, runtime_checkable


class SourceClientError(Exception):
    """Base exception for all Source client errors."""

    pass


class UsageError(SourceClientError):
    """Raised when the caller breaks a client-side contract.

    Never retried; no request is sent.
    """

    pass


class ValidationError(SourceClientError):
    """Raised by an item's validate() when its data is not acceptable."""

    pass


class EncodeError(SourceClientError):
    """Raised when a value cannot be serialized to JSON."""

    pass


class DecodeError(SourceClientError):
    """Raised when a JSON payload does not match the requested shape."""

    pass


class SchemaError(SourceClientError):
    """Raised when a JSON schema cannot be derived from a type example."""

    pass


class TransportError(SourceClientError):
    """Raised when the service cannot be reached within the retry budget."""

    pass


class RemoteError(SourceClientError):
    """Raised when the Source service responds with a non-success status."""

    def __init__(
        self,
        operation: str,
        status_code: int,
        reason: str = "",
        body: str = "",
    ):
        self.operation = operation
        self.status_code = status_code
        self.reason = reason
        self.body = body

        message = (
            f"cannot {operation}, source server responded with: "
            f"{status_code} {reason}".rstrip()
        )
        if body:
            message = f"{message}, {body}"
        super().__init__(message)


@runtime_checkable
class Validatable(Protocol):
    """Protocol for values that can be saved as configuration items.

    Contract:
    - validate() returns None when the value is acceptable
    - validate() raises ValidationError otherwise
    - validate() must not perform I/O
    """

    def validate(self) -> None:
        """Check the value before it is sent to the service."""
        ...
