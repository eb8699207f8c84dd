"""Error types raised by the marketplace workflow and its store."""

from __future__ import annotations


class LastBiteError(Exception):
    """Base class for all marketplace errors."""


class ValidationError(LastBiteError, ValueError):
    """Malformed or out-of-range input (negative price, empty title, ...)."""


class InvalidOperation(LastBiteError):
    """The operation violates a workflow rule, e.g. requesting your own listing."""


class Conflict(LastBiteError):
    """A conditional update lost against a concurrent change.

    Callers should re-fetch the entity and decide whether to retry.
    """


class NotFound(LastBiteError, LookupError):
    """The referenced listing, request or user does not exist."""


class StoreUnavailable(LastBiteError):
    """The backing store failed to respond."""
