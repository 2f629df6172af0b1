"""Exceptions raised by the resolution workflow and its collaborators."""

from typing import Any, Optional


class DedupeError(Exception):
    """Base exception for all scanner-specific errors."""

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class ValidationError(DedupeError):
    """Arguments of a resolution action are unusable (missing or identical ids)."""


class NotFoundError(DedupeError):
    """Target record is missing or was already resolved. Re-scan before retrying."""

    def __init__(self, message: str, record_id: Optional[str] = None,
                 context: Optional[dict[str, Any]] = None):
        super().__init__(message, context)
        self.record_id = record_id


class PersistenceError(DedupeError):
    """Write failed at the storage boundary; the transaction was rolled back."""


class ConfigError(DedupeError):
    """Scanner threshold key or value is invalid."""

    def __init__(self, message: str, key: Optional[str] = None,
                 context: Optional[dict[str, Any]] = None):
        super().__init__(message, context)
        self.key = key


class AuthorizationError(DedupeError):
    """Actor lacks the role required for the requested action."""
