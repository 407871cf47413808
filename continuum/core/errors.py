"""
Continuum exception hierarchy.

Every error in the system inherits from ContinuumError.
Each subsystem has its own error class for targeted catching.

Usage:
    try:
        await relay.trigger(...)
    except BackendUnavailable as e:
        # Fall through to the next delivery tier
    except ContinuumError as e:
        # Handle any Continuum error

"Already in flight" is not an exception: a second claim on a
busy directive is an advisory no-op reported via ClaimOutcome.
"""


class ContinuumError(Exception):
    """Base exception for all Continuum errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


# ━━━ Configuration ━━━


class ConfigError(ContinuumError):
    """Configuration is invalid, missing, or malformed."""

    pass


# ━━━ Directives ━━━


class DirectiveError(ContinuumError):
    """A directive has an impossible shape (mode and fields disagree)."""

    def __init__(self, message: str, directive_id: str = "", details: dict | None = None):
        self.directive_id = directive_id
        super().__init__(message, details)


class ParseError(DirectiveError):
    """
    Interval text could not be parsed to a positive period.

    Never fatal: the directive stays in the store but is never due.
    """

    pass


class DirectiveNotFoundError(DirectiveError):
    """No directive with the requested id exists."""

    pass


class DirectiveDisabledError(DirectiveError):
    """The directive exists but is disabled, so it cannot be claimed."""

    pass


# ━━━ Delivery ━━━


class DeliveryError(ContinuumError):
    """A delivery tier could not produce a response."""

    def __init__(self, message: str, tier: str = "", details: dict | None = None):
        self.tier = tier
        super().__init__(message, details)


class BackendUnavailable(DeliveryError):
    """Relay or agent channel unreachable, or answered with a non-2xx status."""

    def __init__(
        self,
        message: str,
        tier: str = "",
        status_code: int | None = None,
        details: dict | None = None,
    ):
        self.status_code = status_code
        super().__init__(message, tier, details)


class NoBackendConfigured(DeliveryError):
    """No delivery tier applies to this target."""

    pass


# ━━━ Journal ━━━


class JournalError(ContinuumError):
    """Journal ledger failure."""

    pass


class JournalTransitionError(JournalError):
    """Entry is unknown or has already reached a terminal status."""

    pass


# ━━━ Storage ━━━


class StorageError(ContinuumError):
    """Storage backend failure — database errors, corruption, etc."""

    pass


class PersistenceWriteFailed(StorageError):
    """A save to the active persistence backend failed; retried next cycle."""

    pass
