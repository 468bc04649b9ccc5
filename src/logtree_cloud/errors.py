"""Typed errors raised by the core services.

The HTTP layer maps these to status codes; batch jobs catch them per item.
"""

from __future__ import annotations


class LogtreeError(Exception):
    """Base class for all errors raised by Logtree services."""


class ValidationError(LogtreeError, ValueError):
    """Malformed input, e.g. an invalid folder path or conflicting filters."""


class ConflictError(LogtreeError):
    """The request would break an invariant, e.g. a subfolder under a folder with logs."""


class AuthError(LogtreeError, PermissionError):
    """Cross-tenant access attempt."""


class NotFoundError(LogtreeError):
    """A referenced folder, rule, or favorite does not exist."""


class QuotaExceededError(LogtreeError):
    """The organization has used up its log allowance for the current cycle."""
