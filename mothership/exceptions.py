"""Exceptions raised by the mothership core.

Per-device errors raised during a sync cycle are caught by the orchestrator and
recorded on the device record. Errors raised during a manual override propagate
to the caller and are mapped to HTTP status codes by the API layer.
"""
from typing import Optional


class MothershipError(Exception):
    """Base class for all mothership errors."""


class CredentialError(MothershipError):
    """Cloud credentials (client id/secret or space id) are missing."""


class AuthError(MothershipError):
    """The cloud token exchange was rejected or could not be completed."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class GatewayError(MothershipError):
    """Listing or publishing properties of a Thing failed."""

    def __init__(self, message: str, thing_id: Optional[str] = None,
                 status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.thing_id = thing_id
        self.status_code = status_code
        self.body = body


class UnknownPropertyError(GatewayError):
    """A property key matched neither a variable name nor a display name."""

    def __init__(self, thing_id: str, key: str):
        super().__init__(
            f'Unknown property "{key}" on thing {thing_id} (checked variable_name + name)',
            thing_id=thing_id,
        )
        self.key = key


class ValidationError(MothershipError):
    """Manual override input is malformed."""


class NotFoundError(MothershipError):
    """The Thing id is not part of the configured fleet."""


class SyncError(MothershipError):
    """A sync cycle failed outside of the per-device guards."""
