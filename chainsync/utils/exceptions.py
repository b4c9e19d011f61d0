"""
Exception handling utilities.

Defines categorized exception types for proper error handling.
"""


class ChainSyncError(Exception):
    """Base exception for chain synchronization errors."""
    pass


class SecurityError(ChainSyncError):
    """Raised when a security-critical operation fails."""
    pass


class ProvisioningError(ChainSyncError):
    """Raised when self-provisioning an identity fails at some stage."""

    def __init__(self, stage: str, cause: BaseException | str) -> None:
        self.stage = stage
        self.cause = cause
        super().__init__(f"Provisioning failed at stage '{stage}': {cause}")


class TransportError(ChainSyncError):
    """Raised on network or IO failures talking to a remote endpoint."""

    def __init__(self, message: str, status: int | None = None) -> None:
        self.status = status
        super().__init__(message)


class RemoteApplicationError(ChainSyncError):
    """Raised when a well-formed response carries application errors."""

    def __init__(self, messages: list[str]) -> None:
        self.messages = list(messages)
        super().__init__("; ".join(self.messages) or "Remote application error")


class DecodeError(ChainSyncError):
    """Raised when a response payload cannot be parsed."""
    pass


class EncodeError(ChainSyncError):
    """Raised when an argument cannot be encoded into a request body."""
    pass


class NotConnectedError(ChainSyncError):
    """Raised when an operation runs without a connected application."""
    pass


class BootstrapError(ChainSyncError):
    """Raised when the connection bootstrap reaches its failed state."""

    def __init__(self, cause: BaseException) -> None:
        self.cause = cause
        super().__init__(f"Connection bootstrap failed: {cause}")


# Exception categories based on handling strategy

# Recoverable by retrying the call later
RETRYABLE = (
    TransportError,
)


def is_retryable(exc: Exception) -> bool:
    """
    Check if exception is worth retrying.

    Args:
        exc: Exception to check

    Returns:
        True if the failure is transient
    """
    return isinstance(exc, RETRYABLE)
