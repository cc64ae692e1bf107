"""Exceptions for planmod."""


# ---------------------------------------------------------------------------
# Base Exception
# ---------------------------------------------------------------------------


class PlanmodError(Exception):
    """
    Base exception for all planmod errors.

    All exceptions raised by this library inherit from this class,
    allowing callers to catch all library-specific errors with a single
    except clause.

    Problems an operator should see during reconciliation are reported as
    diagnostics rather than raised. Exceptions are reserved for broken
    inputs detected while building schemas, manifests or private state.
    """

    pass


# ---------------------------------------------------------------------------
# Category Exceptions
# ---------------------------------------------------------------------------


class SchemaError(PlanmodError):
    """
    Raised when an attribute schema is malformed.

    This includes missing element or attribute schemas, illegal flag
    combinations, invalid attribute names and modifiers attached to a kind
    they do not support.
    """

    def __init__(self, where: str, reason: str) -> None:
        self.where = where
        self.reason = reason
        super().__init__(f"Invalid schema at {where}: {reason}")


class PrivateStateError(PlanmodError):
    """
    Base exception for private state errors.

    Raised while encoding, decoding or writing the opaque private state
    blob threaded through modifier calls.
    """

    pass


class ManifestError(PlanmodError):
    """Raised when a scenario manifest cannot be parsed."""

    pass


# ---------------------------------------------------------------------------
# Private State Exceptions
# ---------------------------------------------------------------------------


class RestrictedKeyError(PrivateStateError):
    """
    Raised when a provider key uses the framework-reserved namespace.

    Keys starting with a period are reserved for the framework.
    """

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(
            "Using a period ('.') as a prefix for a key used in private state is not allowed. "
            f'The key "{key}" is invalid.'
        )


class InvalidValueError(PrivateStateError):
    """Raised when a private state value is not valid UTF-8 JSON."""

    def __init__(self, key: str, reason: str) -> None:
        self.key = key
        self.reason = reason
        super().__init__(f'The value supplied for key "{key}" is not valid {reason}.')


class PrivateStateDecodeError(PrivateStateError):
    """Raised when a stored private state blob cannot be decoded."""

    pass
