"""Error taxonomy shared by the calculator, the record store and the API layer."""


class InvalidInput(ValueError):
    """The caller supplied malformed or out-of-range input. Never retried."""


class StoreUnavailable(RuntimeError):
    """The backing record store is unreachable or erroring. Safe to retry."""

    def __init__(self, message: str = "record store unavailable") -> None:
        super().__init__(message)


class InternalFault(RuntimeError):
    """Unexpected failure; surfaced to callers without internal detail."""
