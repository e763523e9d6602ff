"""
Custom exceptions for the chat server.
"""


class RelayChatError(Exception):
    """Base exception for server errors."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


class CredentialStoreError(RelayChatError):
    """Exception raised when the credential store is unusable."""
    pass


class ProtocolError(RelayChatError):
    """Exception raised for values that cannot be carried by the wire format."""
    pass

