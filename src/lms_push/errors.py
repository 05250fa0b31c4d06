"""
Error taxonomy shared by the provider, the snapshot store and the services.

Adapters translate library exceptions into these classes so callers can
match on type instead of inspecting messages.
"""

from typing import Optional


class ServiceError(Exception):
    """Base class for all errors raised by lms_push."""
    pass


class InvalidToken(ServiceError):
    """Raised when the LMS rejects an account token."""
    
    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)


class AccountAlreadyExists(ServiceError):
    """Raised when registering a token that is already registered."""
    
    def __init__(self, token: str):
        super().__init__("Account already exists")
        self.token = token


class AccountNotFound(ServiceError):
    """Raised when no stored profile exists for a token."""
    
    def __init__(self, token: str):
        super().__init__("Account not found")
        self.token = token


class DataIsEmpty(ServiceError):
    """
    Raised when no snapshot has ever been stored for a resource kind.
    
    Diffing code treats this as an empty baseline, not as a failure.
    """
    
    def __init__(self, kind: str):
        super().__init__(f"No stored {kind} data")
        self.kind = kind


class ProviderError(ServiceError):
    """Raised when the external LMS API fails."""
    
    def __init__(self, message: str, errorcode: Optional[str] = None):
        super().__init__(message)
        self.errorcode = errorcode


class StoreError(ServiceError):
    """Raised when the snapshot store cannot read or write."""
    pass


class InternalError(ServiceError):
    """Catch-all for unexpected failures."""
    pass
