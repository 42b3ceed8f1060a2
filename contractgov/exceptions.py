"""
ContractGov - Exceptions
Error hierarchy shared by the backends, the store proxy and the web layer.
"""

from typing import Any, Dict, Optional


class ContractGovError(Exception):
    """Base exception for all ContractGov errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotAuthenticatedError(ContractGovError):
    """Raised when a data operation runs without a session."""

    def __init__(self, message: str = 'Usuário não autenticado', **kwargs):
        super().__init__(message, **kwargs)


class AuthError(ContractGovError):
    """Sign-in, sign-up or sign-out rejected by the backend."""
    pass


class BackendError(ContractGovError):
    """Network or backend failure on a table operation."""

    def __init__(self, message: str, status_code: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.status_code = status_code


class ValidationError(ContractGovError):
    """Form data that cannot be turned into a contract."""
    pass


class InvalidTransition(ContractGovError):
    """Screen change not allowed from the current screen."""
    pass
