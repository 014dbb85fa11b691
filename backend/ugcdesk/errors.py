"""
Domain errors raised by the lifecycle engine, content store and asset jobs.

Routes never translate these by hand: main.py registers a single handler
for UGCError that answers with the class status_code.
"""
from __future__ import annotations


class UGCError(Exception):
    """Base class for all domain errors."""

    status_code = 500

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body.update(self.details)
        return body


class NotFound(UGCError):
    """Referenced content, inbox item, rights request or job does not exist."""

    status_code = 404


class InvalidState(UGCError):
    """Operation is not allowed from the entity's current status."""

    status_code = 409


class ConflictError(UGCError):
    """Concurrent modification detected; the caller should re-read and retry."""

    status_code = 409


class ExternalServiceFailure(UGCError):
    """A discovery, classification or enhancement call failed or timed out."""

    status_code = 502
