"""Exception hierarchy shared by the client components and the backend."""

from __future__ import annotations


class PortalError(Exception):
    """Base class for every error raised by the produce portal."""


class ValidationError(PortalError, ValueError):
    """Raised when user input is rejected before any backend call."""


class SessionClosed(PortalError):
    """Raised when a session is used after logout."""


class BackendError(PortalError):
    """Raised when the backend rejects a call."""


class AccessDenied(BackendError):
    """Raised when a token is unknown or lacks the needed permission."""


class NotFound(BackendError):
    """Raised when a referenced store, product, order or user is unknown."""


class InvalidTransition(BackendError):
    """Raised when an order status change skips or reverses a step."""


__all__ = [
    "PortalError",
    "ValidationError",
    "SessionClosed",
    "BackendError",
    "AccessDenied",
    "NotFound",
    "InvalidTransition",
]
