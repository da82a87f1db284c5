"""
PMS Kalender - Errores de dominio
=================================

Taxonomía de errores compartida por servicios, API y Streamlit.
"""


class PMSError(Exception):
    """Base error type for PMS domain errors."""


class NotAuthenticated(PMSError):
    """Raised when a mutating action runs without a current user."""

    def __init__(self, message: str = "Anda harus login untuk mengubah status"):
        super().__init__(message)


class PermissionDenied(PMSError):
    """Raised when the current user lacks the capability for an action."""


class NotFound(PMSError):
    """Raised when a referenced record does not exist."""


class ValidationError(PMSError):
    """Raised when a client-side precondition fails before touching the store."""


class InvalidTransition(ValidationError):
    """Raised when a booking status change is not allowed from its current state."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Invalid booking transition: {current} → {target}")


class BackendError(PMSError):
    """Raised when a data-access call fails (connection, constraint, permission)."""
