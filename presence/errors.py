"""Error kinds raised by the presence engine.

Repositories raise these instead of leaking driver exceptions; the service
and router layers decide how each one maps to a transport response.
"""

from __future__ import annotations


class PresenceError(Exception):
    """Base class for every failure the engine reports."""


class PersistenceFailure(PresenceError):
    """A storage read or write failed. Never retried internally."""


class DecryptionFailure(PresenceError):
    """A stored token cipher could not be decrypted."""


class ValidationFailure(PresenceError):
    """A request referenced state that does not allow the operation."""


class NotFound(PresenceError):
    """The referenced channel identity is not in the ledger."""


class NotAuthenticated(PresenceError):
    """No usable provider credentials are stored."""
